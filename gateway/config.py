"""
Gateway configuration

Values come from environment variables when present, otherwise defaults.
"""

import os
from typing import Mapping, Optional


DEFAULT_LISTEN_PORT = 8000
DEFAULT_VIRTUAL_REPLICAS = 100
DEFAULT_HEARTBEAT_TIMEOUT = 30.0     # seconds
DEFAULT_HEALTH_CHECK_INTERVAL = 10.0 # seconds
DEFAULT_PROBE_TIMEOUT = 3.0          # seconds


class GatewayConfig:
    """Settings for a ring gateway instance"""

    def __init__(self,
                 gateway_id: str,
                 listen_port: int = DEFAULT_LISTEN_PORT,
                 virtual_replicas: int = DEFAULT_VIRTUAL_REPLICAS,
                 heartbeat_timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
                 health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
                 probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
                 log_level: str = "INFO"):
        if virtual_replicas < 1:
            raise ValueError(f"virtual_replicas must be at least 1, got {virtual_replicas}")
        self.gateway_id = gateway_id
        self.listen_port = listen_port
        self.virtual_replicas = virtual_replicas
        self.heartbeat_timeout = heartbeat_timeout
        self.health_check_interval = health_check_interval
        self.probe_timeout = probe_timeout
        self.log_level = log_level.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Optional["GatewayConfig"]:
        """
        Build a config from GATEWAY_ID, LISTEN_PORT, VIRTUAL_REPLICAS,
        HEARTBEAT_TIMEOUT, HEALTH_CHECK_INTERVAL, PROBE_TIMEOUT and LOG_LEVEL.

        Returns None when GATEWAY_ID is not set.
        """
        env = os.environ if environ is None else environ
        gateway_id = env.get("GATEWAY_ID")
        if not gateway_id:
            return None
        return cls(
            gateway_id=gateway_id,
            listen_port=int(env.get("LISTEN_PORT", DEFAULT_LISTEN_PORT)),
            virtual_replicas=int(env.get("VIRTUAL_REPLICAS", DEFAULT_VIRTUAL_REPLICAS)),
            heartbeat_timeout=float(env.get("HEARTBEAT_TIMEOUT", DEFAULT_HEARTBEAT_TIMEOUT)),
            health_check_interval=float(env.get("HEALTH_CHECK_INTERVAL", DEFAULT_HEALTH_CHECK_INTERVAL)),
            probe_timeout=float(env.get("PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT)),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )

    def to_dict(self):
        return {
            "gateway_id": self.gateway_id,
            "listen_port": self.listen_port,
            "virtual_replicas": self.virtual_replicas,
            "heartbeat_timeout": self.heartbeat_timeout,
            "health_check_interval": self.health_check_interval,
            "probe_timeout": self.probe_timeout,
            "log_level": self.log_level
        }
