"""
Shared Ethereum JSON-RPC method mapping.

Concrete adapters only provide the transport (`_request`); this base maps
the chain interface onto standard `eth_*` methods.
"""

from abc import abstractmethod
from typing import Any, List, Optional

import structlog

from bundler.core.operation import UnsignedOperation
from bundler.node.interface import (
    BlockHeader,
    BlockTag,
    ChainInterface,
    NodeConnectionError,
    NodeRequestError,
)

logger = structlog.get_logger(__name__)


def to_block_param(block: BlockTag) -> str:
    """Render a block number or tag as a JSON-RPC block parameter."""
    if isinstance(block, int):
        return hex(block)
    return block


def parse_quantity(value: Any) -> int:
    """Parse a hex-encoded JSON-RPC quantity."""
    if value is None:
        raise NodeRequestError("Missing quantity in node response")
    if isinstance(value, int):
        return value
    return int(value, 16)


def raise_for_rpc_error(payload: dict) -> Any:
    """Return the JSON-RPC result or raise the error it carries."""
    error = payload.get("error")
    if error:
        message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
        code = error.get("code") if isinstance(error, dict) else None
        raise NodeRequestError(message, error_code=code)
    return payload.get("result")


class RpcChainAdapter(ChainInterface):
    """Chain interface over Ethereum JSON-RPC."""

    _chain_id: Optional[int] = None

    @abstractmethod
    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a JSON-RPC request and return its result."""
        pass

    async def get_latest_block(self) -> BlockHeader:
        """Get the latest block header."""
        block = await self._request("eth_getBlockByNumber", ["latest", False])
        if block is None:
            raise NodeConnectionError("Node returned no latest block")

        return BlockHeader(
            number=parse_quantity(block.get("number")),
            base_fee_per_gas=parse_quantity(block.get("baseFeePerGas") or "0x0"),
            hash=block.get("hash"),
        )

    async def get_block_number(self) -> int:
        """Get the number of the latest block."""
        return parse_quantity(await self._request("eth_blockNumber"))

    async def estimate_gas(self, operation: UnsignedOperation) -> int:
        """Estimate gas for an operation."""
        result = await self._request("eth_estimateGas", [operation.to_call()])
        gas = parse_quantity(result)
        logger.debug("gas_estimated", to=operation.to, gas=gas)
        return gas

    async def call(self, operation: UnsignedOperation) -> str:
        """Execute a read-only call against latest state."""
        return await self._request("eth_call", [operation.to_call(), "latest"])

    async def get_transaction_count(
        self,
        address: str,
        block: BlockTag = "latest",
    ) -> int:
        """Get the nonce of an account."""
        result = await self._request(
            "eth_getTransactionCount",
            [address, to_block_param(block)],
        )
        return parse_quantity(result)

    async def get_chain_id(self) -> int:
        """Get the chain id (cached after the first call)."""
        if self._chain_id is None:
            self._chain_id = parse_quantity(await self._request("eth_chainId"))
        return self._chain_id

    async def get_block_transactions(self, block_number: int) -> Optional[List[str]]:
        """Get the transaction hashes of a block."""
        block = await self._request(
            "eth_getBlockByNumber",
            [to_block_param(block_number), False],
        )
        if block is None:
            return None
        return [tx if isinstance(tx, str) else tx["hash"] for tx in block.get("transactions", [])]
