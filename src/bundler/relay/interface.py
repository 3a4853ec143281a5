"""
Abstract interface for private relay access.

Defines the contract for bundle signing, simulation and submission that
all relay clients must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from bundler.core.bundle import BundleEntry, BundleResolution, SignedBundle


@dataclass
class TransactionSimulation:
    """Per-transaction result of a bundle simulation."""
    tx_hash: str
    gas_used: int = 0
    gas_price: int = 0
    error: Optional[str] = None
    revert: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.revert is not None


@dataclass
class SimulationResult:
    """
    Result of simulating a bundle against a block.

    Attributes:
        bundle_hash: Relay's hash of the simulated bundle
        coinbase_diff: Wei paid to the block builder by the bundle
        total_gas_used: Gas used by all transactions
        state_block_number: Block whose state the simulation ran on
        results: Per-transaction results, in bundle order
        error: Relay-level error message, if the simulation itself failed
    """
    bundle_hash: Optional[str] = None
    coinbase_diff: int = 0
    total_gas_used: int = 0
    state_block_number: Optional[int] = None
    results: List[TransactionSimulation] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def first_failure(self) -> Optional[int]:
        """Index of the first reverted or errored transaction."""
        for index, result in enumerate(self.results):
            if result.failed:
                return index
        return None

    @property
    def effective_gas_price(self) -> int:
        """Coinbase payment per unit of gas actually used."""
        gas_used = sum(result.gas_used for result in self.results) or self.total_gas_used
        if gas_used == 0:
            return 0
        return self.coinbase_diff // gas_used


class BundleSubmission(ABC):
    """Handle on one bundle broadcast targeting a single block."""

    bundle_hash: Optional[str]
    target_block: int

    @abstractmethod
    async def wait(self) -> BundleResolution:
        """
        Wait until the relay's verdict for the target block is known.

        Returns:
            Resolution of this submission
        """
        pass


class RelayInterface(ABC):
    """
    Abstract interface for a private transaction relay.

    This interface defines the relay operations needed by the bundler:
    - Bundle signing
    - Simulation against chain state
    - Submission for a target block
    """

    @abstractmethod
    async def sign_bundle(self, entries: List[BundleEntry]) -> SignedBundle:
        """
        Sign every entry with its signer, filling nonces and chain id.

        Args:
            entries: Bundle entries in execution order

        Returns:
            Signed bundle in the same order
        """
        pass

    @abstractmethod
    async def simulate(
        self,
        signed_bundle: SignedBundle,
        block_tag: str = "latest",
    ) -> SimulationResult:
        """
        Simulate a signed bundle on top of a block.

        Args:
            signed_bundle: Bundle to simulate
            block_tag: Block to simulate against

        Returns:
            Simulation result; relay-level errors are reported in `error`

        Raises:
            RelayTransportError: If the relay cannot be reached
        """
        pass

    @abstractmethod
    async def send_bundle(
        self,
        signed_bundle: SignedBundle,
        target_block: int,
    ) -> BundleSubmission:
        """
        Broadcast a signed bundle for inclusion in a target block.

        Args:
            signed_bundle: Bundle to broadcast, unchanged
            target_block: Block the bundle must land in

        Returns:
            Submission handle to await the resolution on

        Raises:
            RelayTransportError: If the relay cannot be reached or rejects the bundle
        """
        pass
