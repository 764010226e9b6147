"""
Pytest configuration and shared fixtures for consistent hashing tests
"""

import pytest
import time
import threading
import requests
import socket
from typing import Any, List, Optional
import os
import sys

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hashring import ConsistentHash, NodeInfo
from gateway import GatewayConfig, RingGatewayService


def find_free_port() -> int:
    """Find a free port on localhost"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('', 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


@pytest.fixture
def hash_ring():
    """Create a fresh hash ring for testing"""
    return ConsistentHash()


@pytest.fixture
def sample_nodes():
    """Sample nodes for testing"""
    return [
        NodeInfo("node1", "127.0.0.1", 8081),
        NodeInfo("node2", "127.0.0.1", 8082),
        NodeInfo("node3", "127.0.0.1", 8083),
    ]


@pytest.fixture
def populated_ring(sample_nodes):
    """Ring holding the sample nodes with 10 virtual replicas each"""
    ring = ConsistentHash()
    for node in sample_nodes:
        ring.add(node, 10)
    return ring


@pytest.fixture
def gateway_config():
    """Gateway config with small replica counts for faster tests"""
    return GatewayConfig(
        gateway_id="gateway-test",
        listen_port=find_free_port(),
        virtual_replicas=10,
        heartbeat_timeout=30,
        health_check_interval=60,
        probe_timeout=1,
    )


@pytest.fixture
def gateway_service(gateway_config):
    """Create a gateway service for testing"""
    service = RingGatewayService(gateway_config)

    yield service

    if service.running:
        service.stop()


@pytest.fixture
def test_keys():
    """Common test keys for consistent distribution testing"""
    return [
        "user:123", "user:456", "user:789",
        "product:abc", "product:def", "product:ghi",
        "order:001", "order:002", "order:003",
        "session:aaa", "session:bbb", "session:ccc"
    ]


class TestServiceManager:
    """Helper class to manage test services"""

    __test__ = False

    def __init__(self):
        self.services: List[Any] = []
        self.threads: List[threading.Thread] = []

    def start_gateway(self, gateway_id: Optional[str] = None, port: Optional[int] = None,
                      virtual_replicas: int = 10) -> RingGatewayService:
        """Start a gateway service"""
        if port is None:
            port = find_free_port()
        if gateway_id is None:
            gateway_id = f"gateway-{port}"

        config = GatewayConfig(
            gateway_id=gateway_id,
            listen_port=port,
            virtual_replicas=virtual_replicas,
            health_check_interval=60,
        )
        service = RingGatewayService(config)

        # Start in background thread
        thread = threading.Thread(target=service.start, daemon=True)
        thread.start()

        # Wait for service to be ready
        self._wait_for_service(f"http://127.0.0.1:{port}/health", timeout=10)

        self.services.append(service)
        self.threads.append(thread)

        return service

    def _wait_for_service(self, url: str, timeout: int = 10):
        """Wait for a service to become available"""
        start_time = time.time()
        while time.time() - start_time < timeout:
            try:
                response = requests.get(url, timeout=1)
                if response.status_code == 200:
                    return
            except requests.RequestException:
                pass
            time.sleep(0.1)
        raise TimeoutError(f"Service at {url} did not become available within {timeout} seconds")

    def stop_all(self):
        """Stop all managed services"""
        for service in self.services:
            service.stop()

        self.services.clear()
        self.threads.clear()


@pytest.fixture
def service_manager():
    """Service manager fixture for integration tests"""
    manager = TestServiceManager()
    yield manager
    manager.stop_all()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "e2e: mark test as an end-to-end test"
    )
    config.addinivalue_line(
        "markers", "chaos: mark test as a chaos engineering test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers to tests based on their location"""
    for item in items:
        # Add unit marker to unit tests
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add e2e marker to e2e tests
        if "e2e" in str(item.fspath):
            item.add_marker(pytest.mark.e2e)
            item.add_marker(pytest.mark.slow)

        # Add chaos marker to chaos tests
        if "chaos" in str(item.fspath):
            item.add_marker(pytest.mark.chaos)
            item.add_marker(pytest.mark.slow)
