"""
WebSocket JSON-RPC adapter for chain access.

New blocks arrive through an `eth_subscribe("newHeads")` subscription.
"""

import asyncio
import json
import uuid
from typing import Any, AsyncIterator, Dict, Optional

import structlog
import websockets
from websockets.asyncio.client import ClientConnection

from bundler.config import BundlerConfig, get_config
from bundler.node.interface import NodeConnectionError, NodeRequestError
from bundler.node.rpc import RpcChainAdapter, parse_quantity

logger = structlog.get_logger(__name__)


class WebSocketChainAdapter(RpcChainAdapter):
    """
    Chain adapter over WebSocket JSON-RPC.

    A background task routes responses to pending requests and
    subscription notifications to per-subscription queues.
    """

    def __init__(self, config: Optional[BundlerConfig] = None):
        """
        Initialize the WebSocket adapter.

        Args:
            config: Bundler configuration. Uses global config if not provided.
        """
        self.config = config or get_config()
        self.url = self.config.websocket_url
        self._ws: Optional[ClientConnection] = None
        self._pending_requests: Dict[str, asyncio.Future] = {}
        self._subscriptions: Dict[str, asyncio.Queue] = {}
        self._receive_task: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        """Establish WebSocket connection to the node."""
        if self._ws is not None:
            return

        try:
            self._ws = await websockets.connect(
                self.url,
                ping_interval=30,
                ping_timeout=10,
            )
        except Exception as e:
            raise NodeConnectionError(f"Failed to connect to {self.url}: {e}")

        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info("websocket_connected", url=self.url)

    async def disconnect(self) -> None:
        """Close WebSocket connection."""
        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        if self._ws:
            await self._ws.close()
            self._ws = None
            logger.info("websocket_disconnected")

    async def _receive_loop(self) -> None:
        """Background task to receive WebSocket messages."""
        error: Exception = NodeConnectionError("WebSocket connection closed")
        try:
            async for message in self._ws:
                self._dispatch(json.loads(message))
        except websockets.ConnectionClosed:
            logger.warning("websocket_connection_closed")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("websocket_receive_error", error=str(e))
            error = NodeConnectionError(f"WebSocket receive failed: {e}")

        # Wake everyone waiting on this connection
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()
        for queue in self._subscriptions.values():
            queue.put_nowait(error)

    def _dispatch(self, data: dict) -> None:
        """Route one incoming message."""
        if data.get("method") == "eth_subscription":
            params = data.get("params", {})
            queue = self._subscriptions.get(params.get("subscription"))
            if queue is not None:
                queue.put_nowait(params.get("result"))
            return

        request_id = data.get("id")
        if request_id and request_id in self._pending_requests:
            future = self._pending_requests.pop(request_id)
            if future.done():
                return
            if "error" in data:
                error = data["error"]
                future.set_exception(
                    NodeRequestError(error.get("message", "Unknown error"), error.get("code"))
                )
            else:
                future.set_result(data.get("result"))

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a JSON-RPC request and await response."""
        if not self._ws:
            await self.connect()

        request_id = str(uuid.uuid4())
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or [],
        }

        future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        try:
            await self._ws.send(json.dumps(request))
            return await asyncio.wait_for(future, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise NodeConnectionError(f"RPC request timeout: {method}")
        except (NodeRequestError, NodeConnectionError):
            raise
        except Exception as e:
            self._pending_requests.pop(request_id, None)
            raise NodeConnectionError(f"RPC request failed: {e}")

    async def subscribe_new_blocks(self) -> AsyncIterator[int]:
        """Yield block numbers from a `newHeads` subscription."""
        subscription_id = await self._request("eth_subscribe", ["newHeads"])
        queue: asyncio.Queue = asyncio.Queue()
        self._subscriptions[subscription_id] = queue
        logger.debug("new_heads_subscribed", subscription=subscription_id)

        try:
            while True:
                header = await queue.get()
                if isinstance(header, Exception):
                    raise header
                yield parse_quantity(header.get("number"))
        finally:
            self._subscriptions.pop(subscription_id, None)
