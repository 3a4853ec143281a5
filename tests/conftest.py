"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Set, Union

import pytest
import pytest_asyncio

from bundler.config import BundlerConfig, NodeProvider
from bundler.core.bundle import GWEI, BundleEntry, BundleResolution, GasParameters, SignedBundle
from bundler.core.operation import UnsignedOperation
from bundler.node.interface import BlockHeader, ChainInterface, NodeRequestError
from bundler.plans.base import ActionPlan
from bundler.relay.interface import (
    BundleSubmission,
    RelayInterface,
    SimulationResult,
    TransactionSimulation,
)
from bundler.tx.builder import BundleBuilder
from bundler.tx.signer import TransactionSigner, sign_bundle_entries


# Well-known throwaway keys, never funded anywhere
EXECUTOR_KEY = "0x" + "11" * 32
SPONSOR_KEY = "0x" + "22" * 32
RELAY_KEY = "0x" + "33" * 32

RECIPIENT = "0x" + "44" * 20
TOKEN = "0x" + "55" * 20
STAKING = "0x" + "66" * 20
VAULT = "0x" + "77" * 20


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> BundlerConfig:
    """Create a test configuration."""
    return BundlerConfig(
        private_key_executor=EXECUTOR_KEY,
        private_key_sponsor=SPONSOR_KEY,
        flashbots_relay_signing_key=RELAY_KEY,
        recipient=RECIPIENT,
        token_address=TOKEN,
        node_provider=NodeProvider.HTTP,
        ethereum_rpc_url="http://localhost:8545",
        relay_url="https://relay.test",
        poll_interval_seconds=0.01,
        log_level="DEBUG",
    )


@pytest.fixture
def dry_run_config(test_config) -> BundlerConfig:
    """Create a dry-run configuration."""
    return test_config.model_copy(update={"dry_run": True})


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without bundler environment variables or a local .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "PRIVATE_KEY_EXECUTOR",
        "PRIVATE_KEY_SPONSOR",
        "FLASHBOTS_RELAY_SIGNING_KEY",
        "RECIPIENT",
        "DRY_RUN",
        "MAX_SUBMISSION_ATTEMPTS",
        "PLAN",
        "NODE_PROVIDER",
        "ETHEREUM_RPC_URL",
        "ETHEREUM_WS_URL",
        "RELAY_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# Signers
# ============================================================================

@pytest.fixture
def executor() -> TransactionSigner:
    return TransactionSigner.from_key(EXECUTOR_KEY, role="executor")


@pytest.fixture
def sponsor() -> TransactionSigner:
    return TransactionSigner.from_key(SPONSOR_KEY, role="sponsor")


@pytest.fixture
def relay_signer() -> TransactionSigner:
    return TransactionSigner.from_key(RELAY_KEY, role="relay")


# ============================================================================
# Mock Chain Interface
# ============================================================================

class MockChain(ChainInterface):
    """
    Mock chain for testing.

    New blocks are emitted one at a time: after yielding a block the
    subscription waits for `release_block()` before yielding the next.
    """

    def __init__(
        self,
        base_fee_per_gas: int = 30 * GWEI,
        chain_id: int = 1,
        block_number: int = 100,
    ):
        self.base_fee_per_gas = base_fee_per_gas
        self.chain_id = chain_id
        self.block_number = block_number

        self.gas_estimates: Dict[str, int] = {}
        self.failing_estimates: Set[str] = set()
        self.estimate_calls: List[UnsignedOperation] = []
        self.call_results: Dict[str, str] = {}
        self.nonces: Dict[str, int] = {}
        self.nonces_at_block: Dict[int, Dict[str, int]] = {}
        self.blocks: Dict[int, List[str]] = {}
        self.new_blocks: List[int] = []

        self._released = asyncio.Event()
        self._connected = False
        self.disconnect_calls = 0

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False
        self.disconnect_calls += 1

    async def get_latest_block(self) -> BlockHeader:
        return BlockHeader(number=self.block_number, base_fee_per_gas=self.base_fee_per_gas)

    async def get_block_number(self) -> int:
        return self.block_number

    async def estimate_gas(self, operation: UnsignedOperation) -> int:
        self.estimate_calls.append(operation)
        if operation.to.lower() in self.failing_estimates:
            raise NodeRequestError("execution reverted", error_code=-32000)
        return self.gas_estimates.get(operation.to.lower(), 21_000)

    async def call(self, operation: UnsignedOperation) -> str:
        return self.call_results.get(operation.to.lower(), "0x" + "00" * 32)

    async def get_transaction_count(self, address: str, block: Union[int, str] = "latest") -> int:
        if isinstance(block, int) and address in self.nonces_at_block.get(block, {}):
            return self.nonces_at_block[block][address]
        return self.nonces.get(address, 0)

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def get_block_transactions(self, block_number: int) -> Optional[List[str]]:
        if block_number in self.blocks:
            return self.blocks[block_number]
        if block_number <= self.block_number:
            return []
        return None

    async def subscribe_new_blocks(self):
        for block_number in self.new_blocks:
            self.block_number = block_number
            yield block_number
            await self._released.wait()
            self._released.clear()

    def release_block(self) -> None:
        """Let the subscription emit its next block."""
        self._released.set()

    def set_estimate(self, address: str, gas: int) -> None:
        self.gas_estimates[address.lower()] = gas

    def fail_estimate(self, address: str) -> None:
        self.failing_estimates.add(address.lower())


@pytest.fixture
def mock_chain() -> MockChain:
    """Create a mock chain."""
    return MockChain()


# ============================================================================
# Mock Relay Interface
# ============================================================================

def passing_simulation(signed_bundle: SignedBundle, gas_price: int = 80 * GWEI) -> SimulationResult:
    """Build a clean simulation result for a signed bundle."""
    results = [
        TransactionSimulation(tx_hash=tx_hash, gas_used=21_000, gas_price=gas_price)
        for tx_hash in signed_bundle.tx_hashes
    ]
    total_gas_used = 21_000 * len(results)
    return SimulationResult(
        bundle_hash="0x" + "ab" * 32,
        coinbase_diff=total_gas_used * gas_price,
        total_gas_used=total_gas_used,
        results=results,
    )


class MockSubmission(BundleSubmission):
    """Submission that resolves with the relay's next scripted resolution."""

    def __init__(self, relay: "MockRelay", target_block: int):
        self.relay = relay
        self.target_block = target_block
        self.bundle_hash = "0x" + "cd" * 32

    async def wait(self) -> BundleResolution:
        if self.relay.resolutions:
            resolution = self.relay.resolutions.pop(0)
        else:
            resolution = BundleResolution.BLOCK_PASSED_WITHOUT_INCLUSION
        self.relay.chain.release_block()
        return resolution


class MockRelay(RelayInterface):
    """
    Mock relay for testing.

    Simulations and resolutions are consumed in order from the scripted
    lists; once those run out every simulation passes and every
    submission misses its block.
    """

    def __init__(self, chain: MockChain):
        self.chain = chain
        self.simulations: List[Union[SimulationResult, Exception]] = []
        self.resolutions: List[BundleResolution] = []
        self.send_error: Optional[Exception] = None

        self.simulate_calls: List[SignedBundle] = []
        self.sent: List[SignedBundle] = []
        self.targets: List[int] = []
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    async def sign_bundle(self, entries: List[BundleEntry]) -> SignedBundle:
        return await sign_bundle_entries(entries, self.chain)

    async def simulate(self, signed_bundle: SignedBundle, block_tag: str = "latest") -> SimulationResult:
        self.simulate_calls.append(signed_bundle)
        if self.simulations:
            scripted = self.simulations.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            return scripted
        return passing_simulation(signed_bundle)

    async def send_bundle(self, signed_bundle: SignedBundle, target_block: int) -> MockSubmission:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(signed_bundle)
        self.targets.append(target_block)
        return MockSubmission(self, target_block)


@pytest.fixture
def mock_relay(mock_chain) -> MockRelay:
    """Create a mock relay bound to the mock chain."""
    return MockRelay(mock_chain)


# ============================================================================
# Action Plans
# ============================================================================

class StaticPlan(ActionPlan):
    """Plan returning a fixed list of operations."""

    def __init__(self, operations: Sequence[UnsignedOperation], description: str = "static plan"):
        self.operations = list(operations)
        self.description = description

    async def build_operations(self) -> List[UnsignedOperation]:
        return list(self.operations)

    async def describe(self) -> str:
        return self.description


def make_operations(count: int) -> List[UnsignedOperation]:
    """Create `count` distinct contract calls."""
    targets = [STAKING, VAULT, TOKEN]
    return [
        UnsignedOperation(to=targets[i % len(targets)], data=f"0x{i:08x}")
        for i in range(count)
    ]


@pytest.fixture
def three_step_plan(mock_chain) -> StaticPlan:
    """Three-operation plan whose first two calls estimate to 50000 and 80000 gas."""
    mock_chain.set_estimate(STAKING, 50_000)
    mock_chain.set_estimate(VAULT, 80_000)
    return StaticPlan(make_operations(3), description="unstake, claim and transfer")


@pytest_asyncio.fixture
async def signed_bundle(mock_chain, executor, sponsor) -> SignedBundle:
    """Signed four-transaction bundle for the three-step plan at 80 gwei."""
    builder = BundleBuilder(executor, sponsor)
    bundle = builder.assemble(
        make_operations(3),
        [50_000, 80_000, 100_000],
        GasParameters(base_fee_per_gas=30 * GWEI),
    )
    return await sign_bundle_entries(bundle.entries, mock_chain)
