"""
Flashbots relay client.

Implements the RelayInterface over the relay's JSON-RPC API
(`eth_callBundle`, `eth_sendBundle`). Every request is authenticated
with the `X-Flashbots-Signature` header signed by the relay identity.
"""

import asyncio
import itertools
import json
from typing import Any, List, Optional

import httpx
import structlog

from bundler.config import BundlerConfig, get_config
from bundler.core.bundle import BundleEntry, BundleResolution, SignedBundle
from bundler.errors import RelayTransportError
from bundler.node.interface import ChainInterface
from bundler.relay.interface import (
    BundleSubmission,
    RelayInterface,
    SimulationResult,
    TransactionSimulation,
)
from bundler.tx.signer import TransactionSigner, sign_bundle_entries

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Flashbots-Signature"


def _to_int(value: Any) -> int:
    """Parse a relay quantity, which may be an int, decimal or hex string."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return int(value)


def parse_simulation(payload: dict) -> SimulationResult:
    """Parse an `eth_callBundle` result."""
    results = [
        TransactionSimulation(
            tx_hash=item.get("txHash", ""),
            gas_used=_to_int(item.get("gasUsed")),
            gas_price=_to_int(item.get("gasPrice")),
            error=item.get("error"),
            revert=item.get("revert"),
        )
        for item in payload.get("results", [])
    ]
    state_block = payload.get("stateBlockNumber")

    return SimulationResult(
        bundle_hash=payload.get("bundleHash"),
        coinbase_diff=_to_int(payload.get("coinbaseDiff")),
        total_gas_used=_to_int(payload.get("totalGasUsed")),
        state_block_number=_to_int(state_block) if state_block is not None else None,
        results=results,
    )


class FlashbotsBundleSubmission(BundleSubmission):
    """
    Submission handle that resolves by watching the target block.

    Once the target block exists: all bundle transactions in it means
    the bundle was included; otherwise a signer whose nonce at that block
    has moved past the signed nonce means the bundle can never land.
    """

    def __init__(
        self,
        chain: ChainInterface,
        signed_bundle: SignedBundle,
        target_block: int,
        bundle_hash: Optional[str] = None,
        poll_interval: float = 2.0,
    ):
        self.chain = chain
        self.signed_bundle = signed_bundle
        self.target_block = target_block
        self.bundle_hash = bundle_hash
        self.poll_interval = poll_interval

    async def wait(self) -> BundleResolution:
        """Wait for the target block and resolve the submission."""
        block_transactions = await self.chain.get_block_transactions(self.target_block)
        while block_transactions is None:
            await asyncio.sleep(self.poll_interval)
            block_transactions = await self.chain.get_block_transactions(self.target_block)

        included = {tx_hash.lower() for tx_hash in block_transactions}
        if all(tx_hash.lower() in included for tx_hash in self.signed_bundle.tx_hashes):
            return BundleResolution.INCLUDED

        for tx in self.signed_bundle.transactions:
            nonce = await self.chain.get_transaction_count(tx.sender, self.target_block)
            if nonce > tx.nonce:
                logger.debug(
                    "bundle_nonce_stale",
                    sender=tx.sender,
                    signed_nonce=tx.nonce,
                    account_nonce=nonce,
                )
                return BundleResolution.ACCOUNT_NONCE_TOO_HIGH

        return BundleResolution.BLOCK_PASSED_WITHOUT_INCLUSION


class FlashbotsRelay(RelayInterface):
    """Flashbots-compatible relay client over HTTP."""

    def __init__(
        self,
        chain: ChainInterface,
        auth_signer: TransactionSigner,
        config: Optional[BundlerConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the relay client.

        Args:
            chain: Chain used for nonces, block lookups and resolution
            auth_signer: Relay signing identity (reputation key, holds no funds)
            config: Bundler configuration. Uses global config if not provided.
            client: Pre-built HTTP client (tests inject a mock transport)
        """
        self.chain = chain
        self.auth_signer = auth_signer
        self.config = config or get_config()
        self.url = self.config.relay_url
        self._client = client
        self._ids = itertools.count(1)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, params: list) -> Any:
        """Send an authenticated JSON-RPC request to the relay."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout_seconds)

        body = json.dumps(
            {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params},
            separators=(",", ":"),
        )
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: self.auth_signer.sign_request_body(body),
        }

        try:
            response = await self._client.post(self.url, content=body, headers=headers)
        except httpx.RequestError as e:
            logger.error("relay_request_error", method=method, error=str(e))
            raise RelayTransportError(f"Relay request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            raise RelayTransportError(f"Relay error {response.status_code}: {response.text}")

        if not isinstance(payload, dict):
            raise RelayTransportError(f"Unexpected relay response: {response.text}")

        if response.status_code != 200 and "error" not in payload:
            raise RelayTransportError(f"Relay error {response.status_code}: {response.text}")

        return payload

    async def sign_bundle(self, entries: List[BundleEntry]) -> SignedBundle:
        """Sign bundle entries using current nonces from the chain."""
        return await sign_bundle_entries(entries, self.chain)

    async def simulate(
        self,
        signed_bundle: SignedBundle,
        block_tag: str = "latest",
    ) -> SimulationResult:
        """Simulate the bundle with `eth_callBundle` on top of `block_tag`."""
        if block_tag == "latest":
            block_number = (await self.chain.get_latest_block()).number
        else:
            block_number = int(block_tag, 0)

        payload = await self._request(
            "eth_callBundle",
            [{
                "txs": signed_bundle.raw_transactions,
                "blockNumber": hex(block_number),
                "stateBlockNumber": "latest",
            }],
        )

        error = payload.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            logger.warning("bundle_simulation_error", error=message)
            return SimulationResult(error=message)

        result = parse_simulation(payload.get("result") or {})
        logger.debug(
            "bundle_simulated",
            block_number=block_number,
            bundle_hash=result.bundle_hash,
            coinbase_diff=result.coinbase_diff,
            total_gas_used=result.total_gas_used,
        )
        return result

    async def send_bundle(
        self,
        signed_bundle: SignedBundle,
        target_block: int,
    ) -> FlashbotsBundleSubmission:
        """Broadcast the bundle with `eth_sendBundle` for `target_block`."""
        payload = await self._request(
            "eth_sendBundle",
            [{
                "txs": signed_bundle.raw_transactions,
                "blockNumber": hex(target_block),
            }],
        )

        error = payload.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            logger.error("bundle_send_failed", target_block=target_block, error=message)
            raise RelayTransportError(message, error_code=code)

        result = payload.get("result")
        bundle_hash = result.get("bundleHash") if isinstance(result, dict) else result
        logger.debug("bundle_sent", target_block=target_block, bundle_hash=bundle_hash)

        return FlashbotsBundleSubmission(
            chain=self.chain,
            signed_bundle=signed_bundle,
            target_block=target_block,
            bundle_hash=bundle_hash,
            poll_interval=self.config.poll_interval_seconds,
        )
