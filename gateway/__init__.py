"""
HTTP gateway that serves a consistent hash ring.
"""

from .config import GatewayConfig
from .gateway_service import RingGatewayService

__all__ = ["GatewayConfig", "RingGatewayService"]
