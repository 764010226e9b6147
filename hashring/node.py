"""
Node identities that can be placed on a hash ring
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Node(Protocol):
    """Anything with a stable, unique string key"""

    def key(self) -> str:
        ...


class NodeInfo:
    """Information about a backend node"""
    def __init__(self, node_id: str, address: str, port: int):
        self.node_id = node_id
        self.address = address
        self.port = port
        self.last_heartbeat = time.time()
        self.status = "active"  # active, dead

    def key(self) -> str:
        return self.node_id

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"

    def to_dict(self):
        return {
            "node_id": self.node_id,
            "address": self.address,
            "port": self.port,
            "last_heartbeat": self.last_heartbeat,
            "status": self.status
        }

    @classmethod
    def from_dict(cls, data):
        node = cls(data["node_id"], data["address"], data["port"])
        node.last_heartbeat = data.get("last_heartbeat", node.last_heartbeat)
        node.status = data.get("status", node.status)
        return node

    def __repr__(self):
        return f"NodeInfo({self.node_id!r}, {self.address!r}, {self.port})"
