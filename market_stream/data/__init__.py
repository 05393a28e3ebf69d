"""
Data module for real-time market data acquisition.

This module handles:
- Combined-stream WebSocket connections per symbol
- Stream name construction and message routing
- Reconnection with exponential backoff and keepalive
- Typed stream payloads
- REST market data requests
"""

from .websocket_client import SubscriptionManager
from .rest_client import BinanceRestClient

__all__ = [
    "SubscriptionManager",
    "BinanceRestClient",
]
