"""
Exceptions raised by the consistent hash ring
"""

from typing import Optional


class HashRingError(Exception):
    """Base class for all hash ring failures"""

    def __init__(self, message: str, node_key: Optional[str] = None):
        super().__init__(message)
        self.node_key = node_key


class InvalidArgumentError(HashRingError, ValueError):
    """Node is None or the virtual replica count is below 1"""


class DuplicateNodeError(HashRingError, ValueError):
    """A node with the same key is already registered"""


class HashCollisionError(HashRingError):
    """Every attempt to place one virtual replica landed on an occupied position"""


class NodeNotFoundError(HashRingError, LookupError):
    """No node is registered under the given key"""


class EmptyRingError(HashRingError, LookupError):
    """A key was resolved while no nodes are registered"""
