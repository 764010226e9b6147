"""
Consistent hashing ring with virtual replicas and reader/writer locking.
"""

from .consistent_hash import (
    MAX_COLLISION_RETRIES,
    ConsistentHash,
    RingEntry,
    RingSnapshot,
    crc32_hash,
)
from .errors import (
    DuplicateNodeError,
    EmptyRingError,
    HashCollisionError,
    HashRingError,
    InvalidArgumentError,
    NodeNotFoundError,
)
from .node import Node, NodeInfo
from .rwlock import ReadWriteLock

__all__ = [
    "MAX_COLLISION_RETRIES",
    "ConsistentHash",
    "RingEntry",
    "RingSnapshot",
    "crc32_hash",
    "DuplicateNodeError",
    "EmptyRingError",
    "HashCollisionError",
    "HashRingError",
    "InvalidArgumentError",
    "NodeNotFoundError",
    "Node",
    "NodeInfo",
    "ReadWriteLock",
]
