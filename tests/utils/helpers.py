"""
Test helper utilities and common functions
"""

import time
import requests
import random
import string
from typing import Any, Callable, Dict, Iterable, List, Optional
from collections import defaultdict


class KeyNode:
    """Minimal node: nothing but a key"""

    def __init__(self, name: str):
        self.name = name

    def key(self) -> str:
        return self.name

    def __repr__(self):
        return f"KeyNode({self.name!r})"


def table_hash(table: Dict[str, int], default: Optional[Callable[[str], int]] = None) -> Callable[[str], int]:
    """
    Build a hash function from a lookup table

    Args:
        table: Fixed hash values for specific inputs
        default: Fallback for inputs not in the table (KeyError if None)

    Returns:
        Hash function usable with ConsistentHash
    """
    def _hash(key: str) -> int:
        if key in table:
            return table[key]
        if default is None:
            raise KeyError(key)
        return default(key)
    return _hash


def wait_for_service(url: str, timeout: int = 30, interval: float = 0.5) -> bool:
    """
    Wait for a service to become available

    Args:
        url: Service URL to check
        timeout: Maximum time to wait in seconds
        interval: Check interval in seconds

    Returns:
        True if service becomes available, False if timeout
    """
    start_time = time.time()
    while time.time() - start_time < timeout:
        try:
            response = requests.get(url, timeout=2)
            if response.status_code == 200:
                return True
        except requests.RequestException:
            pass
        time.sleep(interval)
    return False


def generate_random_string(length: int = 10) -> str:
    """Generate a random string of specified length"""
    return ''.join(random.choices(string.ascii_letters + string.digits, k=length))


def generate_keys(count: int = 100, prefix: str = "key") -> List[str]:
    """Deterministic list of test keys"""
    return [f"{prefix}_{i}" for i in range(count)]


def owner_map(ring, keys: Iterable[str]) -> Dict[str, str]:
    """Map each key to the key of the node that owns it"""
    return {key: ring.resolve(key).key() for key in keys}


def count_remapped(before: Dict[str, str], after: Dict[str, str]) -> int:
    """Number of keys whose owner differs between two owner maps"""
    return sum(1 for key, owner in before.items() if after.get(key) != owner)


def analyze_key_distribution(ring, keys: List[str]) -> Dict[str, Any]:
    """
    Analyze how keys are distributed across nodes

    Args:
        ring: ConsistentHash to resolve keys against
        keys: List of keys to analyze

    Returns:
        Distribution analysis results
    """
    node_counts = defaultdict(int)

    for key in keys:
        node_counts[ring.resolve(key).key()] += 1

    counts = list(node_counts.values())
    if not counts:
        return {"node_counts": {}, "statistics": {}}

    min_count = min(counts)
    max_count = max(counts)
    avg_count = sum(counts) / len(counts)
    std_dev = (sum((x - avg_count) ** 2 for x in counts) / len(counts)) ** 0.5

    return {
        "node_counts": dict(node_counts),
        "statistics": {
            "min_keys_per_node": min_count,
            "max_keys_per_node": max_count,
            "avg_keys_per_node": avg_count,
            "std_deviation": std_dev,
            "load_balance_ratio": min_count / max_count if max_count > 0 else 0
        }
    }


class RingGatewayTestClient:
    """Test client for interacting with a running ring gateway"""

    def __init__(self, gateway_url: str):
        self.gateway_url = gateway_url
        self.session = requests.Session()

    def register(self, node_id: str, address: str, port: int,
                 virtual_replicas: Optional[int] = None) -> requests.Response:
        payload = {"node_id": node_id, "address": address, "port": port}
        if virtual_replicas is not None:
            payload["virtual_replicas"] = virtual_replicas
        return self.session.post(f"{self.gateway_url}/admin/nodes", json=payload, timeout=5)

    def unregister(self, node_id: str) -> requests.Response:
        return self.session.delete(f"{self.gateway_url}/admin/nodes/{node_id}", timeout=5)

    def heartbeat(self, node_id: str, address: str, port: int) -> requests.Response:
        return self.session.post(f"{self.gateway_url}/heartbeat",
                                 json={"node_id": node_id, "address": address, "port": port},
                                 timeout=5)

    def get_node_for_key(self, key: str) -> Optional[Dict[str, Any]]:
        """Get the node responsible for a key"""
        try:
            response = self.session.post(f"{self.gateway_url}/resolve", json={"key": key}, timeout=5)
            if response.status_code == 200:
                return response.json()["node"]
        except requests.RequestException:
            pass
        return None

    def get_all_nodes(self) -> Optional[Dict[str, Any]]:
        """Get information about all nodes"""
        try:
            response = self.session.get(f"{self.gateway_url}/nodes", timeout=5)
            if response.status_code == 200:
                return response.json()["nodes"]
        except requests.RequestException:
            pass
        return None
