"""
Main Bundler orchestrator.

Prepares a sponsored bundle once, then resubmits it on every new block
until the relay includes it or it becomes unusable.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

import structlog

from bundler.config import BundlerConfig, get_config
from bundler.core.bundle import Bundle, BundleResolution, SignedBundle, gas_price_to_gwei
from bundler.core.operation import UnsignedOperation
from bundler.engine.gas import GasEstimator
from bundler.engine.simulator import Simulator
from bundler.errors import BundlerError, NonceInvalidatedError
from bundler.node.interface import ChainInterface, NodeConnectionError, NodeRequestError
from bundler.plans.base import ActionPlan
from bundler.relay.interface import RelayInterface, SimulationResult
from bundler.tx.builder import BundleBuilder
from bundler.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# Blocks of lead time given to the relay
BLOCKS_IN_FUTURE = 2

_STREAM_CLOSED = object()


class SubmissionState(str, Enum):
    """State of the submission loop."""
    IDLE = "idle"
    SIMULATE_AND_BROADCAST = "simulate_and_broadcast"
    AWAIT_RESOLUTION = "await_resolution"
    TERMINATED = "terminated"


class OutcomeStatus(str, Enum):
    """Terminal status of a run."""
    INCLUDED = "included"
    DRY_RUN = "dry_run"
    NONCE_INVALID = "nonce_invalid"
    EXHAUSTED = "exhausted"
    FATAL = "fatal"


@dataclass
class BundleOutcome:
    """Typed terminal result of a run, mapped to an exit code by the caller."""

    status: OutcomeStatus
    reason: Optional[str] = None
    target_block: Optional[int] = None
    attempts: int = 0

    @property
    def exit_code(self) -> int:
        if self.status in (OutcomeStatus.INCLUDED, OutcomeStatus.DRY_RUN):
            return 0
        return 1


@dataclass
class PreparedBundle:
    """Everything known about the bundle once it is signed and simulated."""

    operations: List[UnsignedOperation]
    description: str
    bundle: Bundle
    signed_bundle: SignedBundle
    simulation: SimulationResult

    @property
    def gas_price(self) -> int:
        return self.bundle.gas_price

    @property
    def total_gas_units(self) -> int:
        return self.bundle.total_gas_units

    @property
    def funding_value(self) -> int:
        return self.bundle.funding_value


def offer_latest(queue: asyncio.Queue, item: Any) -> Optional[Any]:
    """
    Put an item on a bounded queue, dropping the oldest one if full.

    Returns:
        The dropped item, or None
    """
    dropped = None
    if queue.full():
        dropped = queue.get_nowait()
    queue.put_nowait(item)
    return dropped


class Bundler:
    """
    Main bundler orchestrator.

    Coordinates all bundler components:
    - Gas estimation of the action plan
    - Funding calculation and bundle assembly
    - Signing and pre-flight simulation
    - Per-block simulation, broadcast and resolution

    Usage:
        ```python
        bundler = Bundler(plan, chain, relay, executor, sponsor)
        outcome = await bundler.execute()
        sys.exit(outcome.exit_code)
        ```
    """

    def __init__(
        self,
        plan: ActionPlan,
        chain: ChainInterface,
        relay: RelayInterface,
        executor: TransactionSigner,
        sponsor: TransactionSigner,
        config: Optional[BundlerConfig] = None,
    ):
        """
        Initialize the bundler.

        Args:
            plan: Action plan producing the executor's operations
            chain: Chain client
            relay: Private relay client
            executor: Identity performing the operations
            sponsor: Identity paying for gas
            config: Bundler configuration
        """
        self.config = config or get_config()
        self.plan = plan
        self.chain = chain
        self.relay = relay
        self.executor = executor
        self.sponsor = sponsor

        self.estimator = GasEstimator(chain, executor.address)
        self.builder = BundleBuilder(executor, sponsor)
        self.simulator = Simulator(relay)

        # State
        self.state = SubmissionState.IDLE
        self.attempts = 0
        self._prepared: Optional[PreparedBundle] = None
        self._stream_error: Optional[Exception] = None

        # Callbacks
        self._on_prepared: Optional[Callable[[PreparedBundle], None]] = None

    @property
    def prepared(self) -> Optional[PreparedBundle]:
        return self._prepared

    async def prepare(self) -> PreparedBundle:
        """
        Estimate, assemble, sign and simulate the bundle once.

        Raises:
            EstimationError: If the plan cannot currently execute
            SimulationRevertError: If the signed bundle would revert
        """
        operations = await self.plan.build_operations()
        description = await self.plan.describe()

        gas_estimates = await self.estimator.estimate(operations)
        gas_parameters = await self.estimator.current_gas_parameters()

        bundle = self.builder.assemble(operations, gas_estimates, gas_parameters)
        signed_bundle = await self.relay.sign_bundle(bundle.entries)
        simulation = await self.simulator.check(signed_bundle)

        self._prepared = PreparedBundle(
            operations=list(operations),
            description=description,
            bundle=bundle,
            signed_bundle=signed_bundle,
            simulation=simulation,
        )

        logger.info(
            "bundle_prepared",
            size=bundle.size,
            gas_price_gwei=gas_price_to_gwei(bundle.gas_price),
            total_gas_units=bundle.total_gas_units,
            funding_value=bundle.funding_value,
        )

        if self._on_prepared:
            self._on_prepared(self._prepared)

        return self._prepared

    async def execute(self) -> BundleOutcome:
        """
        Run the whole flow and return its terminal outcome.

        Fatal errors are logged and reported as outcomes rather than raised.
        """
        try:
            await self.prepare()

            if self.config.dry_run:
                logger.info("dry_run_complete")
                self.state = SubmissionState.TERMINATED
                return BundleOutcome(OutcomeStatus.DRY_RUN)

            return await self.run()

        except NonceInvalidatedError as e:
            self.state = SubmissionState.TERMINATED
            return BundleOutcome(
                OutcomeStatus.NONCE_INVALID,
                reason=str(e),
                target_block=e.target_block,
                attempts=self.attempts,
            )
        except (BundlerError, NodeConnectionError, NodeRequestError) as e:
            self.state = SubmissionState.TERMINATED
            logger.error("bundler_fatal", error_type=type(e).__name__, error=str(e))
            return BundleOutcome(OutcomeStatus.FATAL, reason=str(e), attempts=self.attempts)

    async def run(self) -> BundleOutcome:
        """
        Resubmit the prepared bundle on every new block.

        Block ticks are funnelled through a queue of depth one, so only one
        submission cycle is ever in flight; ticks arriving meanwhile are
        collapsed into the newest one.
        """
        if self._prepared is None:
            raise RuntimeError("Bundle not prepared")

        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        feeder = asyncio.create_task(self._feed_blocks(queue))
        logger.info("submission_loop_started")

        try:
            while True:
                block_number = await queue.get()

                if block_number is _STREAM_CLOSED:
                    self.state = SubmissionState.TERMINATED
                    if self._stream_error is not None:
                        raise self._stream_error
                    return BundleOutcome(
                        OutcomeStatus.FATAL,
                        reason="Block subscription ended",
                        attempts=self.attempts,
                    )

                outcome = await self.handle_block(block_number)
                if outcome is not None:
                    return outcome
        finally:
            feeder.cancel()
            try:
                await feeder
            except asyncio.CancelledError:
                pass

    async def _feed_blocks(self, queue: asyncio.Queue) -> None:
        """Pump new block numbers into the loop's queue."""
        try:
            async for block_number in self.chain.subscribe_new_blocks():
                dropped = offer_latest(queue, block_number)
                if dropped is not None:
                    logger.debug("block_tick_dropped", block_number=dropped)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("block_subscription_failed", error=str(e))
            self._stream_error = e

        await queue.put(_STREAM_CLOSED)

    async def handle_block(self, block_number: int) -> Optional[BundleOutcome]:
        """
        Run one simulate, broadcast and resolve cycle.

        Args:
            block_number: Newly observed block

        Returns:
            Terminal outcome, or None to keep waiting for the next block

        Raises:
            SimulationRevertError: If the bundle no longer simulates cleanly
            RelayTransportError: If the broadcast fails
            NonceInvalidatedError: If the bundle's nonces went stale
        """
        prepared = self._prepared
        self.attempts += 1

        self.state = SubmissionState.SIMULATE_AND_BROADCAST
        simulation = await self.simulator.check(prepared.signed_bundle)
        target_block = block_number + BLOCKS_IN_FUTURE

        logger.info(
            "bundle_submitting",
            current_block=block_number,
            target_block=target_block,
            gas_price_gwei=gas_price_to_gwei(simulation.effective_gas_price),
            attempt=self.attempts,
        )
        submission = await self.relay.send_bundle(prepared.signed_bundle, target_block)

        self.state = SubmissionState.AWAIT_RESOLUTION
        resolution = await submission.wait()

        if resolution == BundleResolution.INCLUDED:
            self.state = SubmissionState.TERMINATED
            logger.info("bundle_included", target_block=target_block, attempts=self.attempts)
            return BundleOutcome(
                OutcomeStatus.INCLUDED,
                target_block=target_block,
                attempts=self.attempts,
            )

        if resolution == BundleResolution.ACCOUNT_NONCE_TOO_HIGH:
            logger.error("bundle_nonce_too_high", target_block=target_block)
            raise NonceInvalidatedError("Nonce too high, bailing", target_block=target_block)

        self.state = SubmissionState.IDLE
        logger.info("bundle_not_included", target_block=target_block)

        max_attempts = self.config.max_submission_attempts
        if max_attempts is not None and self.attempts >= max_attempts:
            self.state = SubmissionState.TERMINATED
            logger.warning("submission_attempts_exhausted", attempts=self.attempts)
            return BundleOutcome(
                OutcomeStatus.EXHAUSTED,
                reason=f"Not included after {self.attempts} attempts",
                target_block=target_block,
                attempts=self.attempts,
            )

        return None

    # Callback registration

    def on_prepared(self, callback: Callable[[PreparedBundle], None]) -> None:
        """Register callback for the prepared (signed and simulated) bundle."""
        self._on_prepared = callback
