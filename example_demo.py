#!/usr/bin/env python3
"""
Demo script for the Consistent Hash Ring

This script demonstrates how to:
1. Build a ring and register nodes with virtual replicas
2. Resolve keys to their owning node
3. Show how few keys move when a node joins or leaves
4. Optionally drive a running gateway over HTTP
"""

import argparse
import json
import sys
from collections import Counter
from typing import Dict, List

import requests

from hashring import ConsistentHash, DuplicateNodeError, EmptyRingError, NodeInfo


def owners(ring: ConsistentHash, keys: List[str]) -> Dict[str, str]:
    return {key: ring.resolve(key).node_id for key in keys}


def demo_basic_operations(ring: ConsistentHash, replicas: int):
    """Register nodes and resolve a few keys"""
    print("\n=== Basic Operations Demo ===")

    try:
        ring.resolve("user:1001")
    except EmptyRingError as e:
        print(f"Resolve on empty ring: {type(e).__name__}: {e}")

    for i in range(1, 5):
        node = NodeInfo(f"node{i}", "127.0.0.1", 8080 + i)
        ring.add(node, replicas)
        print(f"  ADD {node.node_id} ({replicas} virtual replicas)")

    try:
        ring.add(NodeInfo("node1", "127.0.0.1", 9999), replicas)
    except DuplicateNodeError as e:
        print(f"  ADD node1 again: {type(e).__name__}: {e}")

    print("\nKey distribution:")
    for key in ["user:1001", "user:1002", "product:2001", "order:3001", "cache:abc", "session:xyz"]:
        node = ring.resolve(key)
        print(f"  {key} -> {node.node_id} ({node.endpoint})")


def demo_consistent_hashing(ring: ConsistentHash, replicas: int, key_count: int):
    """Show the fraction of keys that move on membership changes"""
    print("\n=== Consistent Hashing Demo ===")

    keys = [f"key_{i}" for i in range(key_count)]
    before = owners(ring, keys)
    counts = Counter(before.values())
    print("Load per node:")
    for node_id, count in sorted(counts.items()):
        print(f"  {node_id}: {count} keys ({count / key_count:.1%})")

    new_node = NodeInfo("node5", "127.0.0.1", 8085)
    ring.add(new_node, replicas)
    after_add = owners(ring, keys)
    moved = sum(1 for k in keys if before[k] != after_add[k])
    print(f"\nAdded {new_node.node_id}: {moved}/{key_count} keys moved ({moved / key_count:.1%})")

    ring.remove("node2")
    after_remove = owners(ring, keys)
    moved = sum(1 for k in keys if after_add[k] != after_remove[k])
    from_node2 = sum(1 for k in keys if after_add[k] == "node2")
    print(f"Removed node2: {moved}/{key_count} keys moved, {from_node2} of them were on node2")


def demo_gateway(gateway_address: str, replicas: int):
    """Register nodes with a running gateway and resolve keys through it"""
    print("\n=== Gateway Demo ===")
    base_url = f"http://{gateway_address}"

    for i in range(1, 4):
        response = requests.post(f"{base_url}/admin/nodes", json={
            "node_id": f"demo-node{i}",
            "address": "127.0.0.1",
            "port": 8080 + i,
            "virtual_replicas": replicas
        }, timeout=5)
        print(f"  REGISTER demo-node{i}: {response.status_code}")

    for key in ["user:1001", "key/with/slashes", "clé_spéciale"]:
        response = requests.post(f"{base_url}/resolve", json={"key": key}, timeout=5)
        if response.status_code == 200:
            print(f"  {key} -> {response.json()['node']['node_id']}")
        else:
            print(f"  {key}: {response.status_code} {response.json().get('error')}")

    response = requests.get(f"{base_url}/ring/status", timeout=5)
    print(f"Ring Status: {json.dumps(response.json(), indent=2)}")


def main():
    parser = argparse.ArgumentParser(description="Consistent hash ring demo")
    parser.add_argument("--replicas", type=int, default=50, help="Virtual replicas per node")
    parser.add_argument("--keys", type=int, default=10000, help="Number of keys for the distribution demo")
    parser.add_argument("--gateway", help="host:port of a running gateway to drive over HTTP")
    args = parser.parse_args()

    print("🔄 Consistent Hash Ring Demo")
    print("=" * 50)

    ring = ConsistentHash()
    demo_basic_operations(ring, args.replicas)
    demo_consistent_hashing(ring, args.replicas, args.keys)

    if args.gateway:
        try:
            demo_gateway(args.gateway, args.replicas)
        except requests.RequestException as e:
            print(f"❌ Gateway at {args.gateway} not reachable: {e}")
            sys.exit(1)

    print("\n🎉 Demo completed")


if __name__ == "__main__":
    main()
