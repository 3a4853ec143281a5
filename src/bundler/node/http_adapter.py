"""
HTTP JSON-RPC adapter for chain access.

New blocks are detected by polling `eth_blockNumber`.
"""

import asyncio
import itertools
from typing import Any, AsyncIterator, Optional

import httpx
import structlog

from bundler.config import BundlerConfig, get_config
from bundler.node.interface import NodeConnectionError, NodeRequestError
from bundler.node.rpc import RpcChainAdapter, raise_for_rpc_error

logger = structlog.get_logger(__name__)


class HttpChainAdapter(RpcChainAdapter):
    """
    Chain adapter over HTTP JSON-RPC.

    Implements the ChainInterface using a plain `httpx.AsyncClient`.
    """

    def __init__(
        self,
        config: Optional[BundlerConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the HTTP adapter.

        Args:
            config: Bundler configuration. Uses global config if not provided.
            client: Pre-built HTTP client (tests inject a mock transport)
        """
        self.config = config or get_config()
        self.url = self.config.ethereum_rpc_url
        self.poll_interval = self.config.poll_interval_seconds
        self._client = client
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the HTTP client and check the node answers."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.request_timeout_seconds,
                headers={"Content-Type": "application/json"},
            )

        chain_id = await self.get_chain_id()
        logger.info("rpc_connected", url=self.url, chain_id=chain_id)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected")

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a JSON-RPC request over HTTP."""
        if self._client is None:
            await self.connect()

        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        try:
            response = await self._client.post(self.url, json=request)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise NodeConnectionError(f"RPC request failed: {e}")

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise NodeConnectionError(f"RPC error {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError:
            raise NodeRequestError(f"Invalid JSON-RPC response: {response.text}")

        if not isinstance(payload, dict):
            raise NodeRequestError(f"Invalid JSON-RPC response: {response.text}")

        return raise_for_rpc_error(payload)

    async def subscribe_new_blocks(self) -> AsyncIterator[int]:
        """Poll for new blocks and yield each new block number once."""
        last_seen = await self.get_block_number()
        logger.debug("block_polling_started", block_number=last_seen)

        while True:
            await asyncio.sleep(self.poll_interval)
            current = await self.get_block_number()
            if current > last_seen:
                last_seen = current
                yield current
