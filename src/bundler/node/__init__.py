"""
Chain Integration Layer.

Provides abstracted access to Ethereum chain data and new block notifications.
Supports HTTP (polling) and WebSocket (subscription) transports.
"""

from bundler.node.interface import (
    BlockHeader,
    ChainInterface,
    NodeConnectionError,
    NodeRequestError,
)
from bundler.node.http_adapter import HttpChainAdapter
from bundler.node.websocket_adapter import WebSocketChainAdapter

__all__ = [
    "BlockHeader",
    "ChainInterface",
    "NodeConnectionError",
    "NodeRequestError",
    "HttpChainAdapter",
    "WebSocketChainAdapter",
]
