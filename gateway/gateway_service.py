"""
Ring Gateway Service for Consistent Hashing

This service embeds a consistent hash ring, registers backend nodes from
heartbeats or admin calls, answers "which node owns this key?" over HTTP,
and drops nodes that stop heartbeating or fail their health probe.
"""

import logging
import threading
import time
from typing import List, Optional, Tuple

import requests
from flask import Flask, request, jsonify

from hashring import (
    ConsistentHash,
    DuplicateNodeError,
    EmptyRingError,
    HashCollisionError,
    HashRingError,
    InvalidArgumentError,
    NodeInfo,
    NodeNotFoundError,
)

from .config import GatewayConfig


logger = logging.getLogger(__name__)


def _error_status(error: HashRingError) -> int:
    """HTTP status code for a ring error"""
    if isinstance(error, InvalidArgumentError):
        return 400
    if isinstance(error, (NodeNotFoundError, EmptyRingError)):
        return 404
    if isinstance(error, (DuplicateNodeError, HashCollisionError)):
        return 409
    return 500


class RingGatewayService:
    """HTTP front end for a single consistent hash ring"""

    def __init__(self, config: GatewayConfig):
        self.config = config
        self.gateway_id = config.gateway_id
        self.listen_port = config.listen_port

        # Hash ring for consistent hashing
        self.hash_ring = ConsistentHash()

        # Serializes check-then-act sequences on the ring (heartbeat, clear)
        self.node_lock = threading.RLock()

        # Flask app for HTTP API
        self.app = Flask(__name__)
        self.setup_routes()

        self.running = False

    def _register_node(self, node_data: dict, virtual_replicas: Optional[int] = None) -> NodeInfo:
        """Add a node to the hash ring. Raises HashRingError on failure."""
        replicas = self.config.virtual_replicas if virtual_replicas is None else virtual_replicas
        node = NodeInfo.from_dict(node_data)
        with self.node_lock:
            self.hash_ring.add(node, replicas)
        logger.info(f"Added node {node.node_id} to hash ring with {replicas} virtual replicas")
        return node

    def _unregister_node(self, node_id: str):
        """Remove a node from the hash ring. Raises NodeNotFoundError if unknown."""
        with self.node_lock:
            self.hash_ring.remove(node_id)
        logger.info(f"Removed node {node_id} from hash ring")

    def _resolve(self, key: str) -> Tuple[dict, int]:
        try:
            node = self.hash_ring.resolve(key)
        except EmptyRingError as e:
            return {"error": "No nodes in ring"}, _error_status(e)
        return {"key": key, "node": node.to_dict()}, 200

    def setup_routes(self):
        """Setup Flask routes for the gateway API"""

        @self.app.route('/heartbeat', methods=['POST'])
        def receive_heartbeat():
            """Receive heartbeat from backend nodes"""
            data = request.get_json(silent=True) or {}
            node_id = data.get('node_id')
            address = data.get('address')
            port = data.get('port', 8080)

            if not node_id or not address:
                return jsonify({"error": "Missing node_id or address"}), 400

            try:
                with self.node_lock:
                    node = self.hash_ring.get(node_id)
                    if node is None:
                        self._register_node({
                            "node_id": node_id,
                            "address": address,
                            "port": port
                        })
                    else:
                        node.last_heartbeat = time.time()
                        node.status = "active"
            except HashRingError as e:
                logger.error(f"Error processing heartbeat from {node_id}: {e}")
                return jsonify({"error": str(e)}), _error_status(e)

            return jsonify({"status": "heartbeat_received"}), 200

        @self.app.route('/admin/nodes', methods=['POST'])
        def register_node():
            """Explicitly register a node"""
            data = request.get_json(silent=True) or {}
            if not data.get('node_id') or not data.get('address') or 'port' not in data:
                return jsonify({"error": "Missing node_id, address or port"}), 400

            virtual_replicas = data.get('virtual_replicas')
            if virtual_replicas is not None and not isinstance(virtual_replicas, int):
                return jsonify({"error": "virtual_replicas must be an integer"}), 400

            try:
                node = self._register_node(data, virtual_replicas)
            except HashRingError as e:
                logger.error(f"Failed to add node {data['node_id']} to ring: {e}")
                return jsonify({"error": str(e)}), _error_status(e)

            return jsonify({
                "status": "registered",
                "node": node.to_dict(),
                "positions": len(self.hash_ring.positions_of(node))
            }), 201

        @self.app.route('/admin/nodes/<node_id>', methods=['DELETE'])
        def unregister_node(node_id):
            """Remove a node from the ring"""
            try:
                self._unregister_node(node_id)
            except NodeNotFoundError as e:
                return jsonify({"error": str(e)}), _error_status(e)
            return jsonify({"status": "removed", "node_id": node_id}), 200

        @self.app.route('/admin/clear_nodes', methods=['POST'])
        def clear_nodes():
            """Clear all registered nodes"""
            with self.node_lock:
                cleared_count = len(self.hash_ring)
                self.hash_ring = ConsistentHash()
            logger.info(f"Cleared {cleared_count} nodes from gateway {self.gateway_id}")
            return jsonify({
                "status": "success",
                "cleared_nodes": cleared_count,
                "gateway_id": self.gateway_id
            }), 200

        @self.app.route('/nodes', methods=['GET'])
        def get_nodes():
            """Get all nodes in the ring"""
            nodes = {node.node_id: node.to_dict() for node in self.hash_ring.nodes()}
            return jsonify({"nodes": nodes}), 200

        @self.app.route('/nodes/<path:key>', methods=['GET'])
        def get_node_for_key(key):
            """Get the node responsible for a given key"""
            body, status = self._resolve(key)
            return jsonify(body), status

        @self.app.route('/resolve', methods=['POST'])
        def resolve_key():
            """Same as GET /nodes/<key>, for keys that do not survive a URL path"""
            data = request.get_json(silent=True) or {}
            key = data.get('key')
            if key is None:
                return jsonify({"error": "Missing key"}), 400
            body, status = self._resolve(str(key))
            return jsonify(body), status

        @self.app.route('/ring/status', methods=['GET'])
        def get_ring_status():
            """Get hash ring status and statistics"""
            snapshot = self.hash_ring.snapshot()
            nodes = self.hash_ring.nodes()
            return jsonify({
                "gateway_id": self.gateway_id,
                "total_nodes": len(nodes),
                "active_nodes": len([n for n in nodes if n.status == "active"]),
                "ring_nodes": sorted(snapshot.node_positions),
                "total_positions": len(snapshot.positions),
                "virtual_replicas": self.config.virtual_replicas
            }), 200

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint"""
            nodes = self.hash_ring.nodes()
            return jsonify({
                "status": "healthy",
                "gateway_id": self.gateway_id,
                "nodes_count": len(nodes),
                "active_nodes": len([n for n in nodes if n.status == "active"]),
                "timestamp": time.time()
            }), 200

    def _probe_node(self, node: NodeInfo) -> bool:
        """Ping a node's /health endpoint"""
        health_url = f"http://{node.endpoint}/health"
        logger.debug(f"Checking health of {node.node_id} at {health_url}")
        try:
            response = requests.get(health_url, timeout=self.config.probe_timeout)
        except requests.RequestException as e:
            logger.warning(f"Node {node.node_id} health check failed: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"Node {node.node_id} health check failed with status {response.status_code}")
            return False
        return True

    def _check_node_health(self) -> List[str]:
        """Mark unresponsive nodes as dead and remove them from the ring"""
        current_time = time.time()
        dead_nodes = []

        nodes = self.hash_ring.nodes()
        logger.info(f"Health check running for {len(nodes)} nodes")
        for node in nodes:
            time_since_heartbeat = current_time - node.last_heartbeat
            if time_since_heartbeat > self.config.heartbeat_timeout:
                logger.warning(
                    f"Node {node.node_id} heartbeat timeout "
                    f"({time_since_heartbeat:.1f}s > {self.config.heartbeat_timeout}s)")
                node.status = "dead"
                dead_nodes.append(node.node_id)
                continue

            if self._probe_node(node):
                if node.status != "active":
                    logger.info(f"Node {node.node_id} health check passed - marking as active")
                node.status = "active"
            else:
                node.status = "dead"
                dead_nodes.append(node.node_id)

        if dead_nodes:
            logger.info(f"Removing {len(dead_nodes)} dead nodes: {dead_nodes}")
        for node_id in dead_nodes:
            try:
                self._unregister_node(node_id)
            except NodeNotFoundError:
                # removed concurrently by an admin call
                logger.debug(f"Node {node_id} already gone from ring")
        return dead_nodes

    def _health_check_loop(self):
        """Background task to check node health and remove dead nodes"""
        while self.running:
            try:
                self._check_node_health()
            except Exception as e:
                logger.error(f"Health check error: {e}")

            time.sleep(self.config.health_check_interval)

    def start(self):
        """Start the gateway service"""
        self.running = True

        health_thread = threading.Thread(target=self._health_check_loop, daemon=True)
        health_thread.start()

        logger.info(f"Starting Ring Gateway Service {self.gateway_id} on port {self.listen_port}")

        self.app.run(host='0.0.0.0', port=self.listen_port, threaded=True)

    def stop(self):
        """Stop the gateway service"""
        self.running = False
        logger.info("Gateway service stopped")


def parse_args(argv=None) -> GatewayConfig:
    import argparse

    parser = argparse.ArgumentParser(description='Ring Gateway Service for Consistent Hashing')
    parser.add_argument('--gateway-id', required=True, help='Unique gateway ID')
    parser.add_argument('--port', type=int, default=8000, help='HTTP port to listen on')
    parser.add_argument('--virtual-replicas', type=int, default=100,
                        help='Virtual replicas per registered node')
    parser.add_argument('--heartbeat-timeout', type=float, default=30.0,
                        help='Seconds without heartbeat before a node is dropped')
    parser.add_argument('--health-check-interval', type=float, default=10.0,
                        help='Seconds between health checks')
    parser.add_argument('--log-level', default='INFO', help='Logging level')

    args = parser.parse_args(argv)
    return GatewayConfig(
        gateway_id=args.gateway_id,
        listen_port=args.port,
        virtual_replicas=args.virtual_replicas,
        heartbeat_timeout=args.heartbeat_timeout,
        health_check_interval=args.health_check_interval,
        log_level=args.log_level,
    )


def main():
    """Main function to run gateway service"""
    # Use environment variables if available, otherwise use command line args
    config = GatewayConfig.from_env() or parse_args()

    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    gateway = RingGatewayService(config)

    try:
        gateway.start()
    except KeyboardInterrupt:
        gateway.stop()


if __name__ == "__main__":
    main()
