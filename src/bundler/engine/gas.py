"""
Gas Estimator - sizes the gas budget of an action plan.

Every operation except the trailing one is estimated against latest
state; the trailing operation usually only succeeds after the earlier
ones have executed, so it is covered by a fixed reserve instead.
"""

import asyncio
from typing import List, Sequence

import structlog

from bundler.core.bundle import PRIORITY_FEE_PER_GAS, GasParameters
from bundler.core.operation import UnsignedOperation
from bundler.errors import EstimationError
from bundler.node.interface import ChainInterface

logger = structlog.get_logger(__name__)

# Gas limit reserved for the trailing, unestimated operation
FUNDING_RESERVE_GAS = 100_000


class GasEstimator:
    """Estimates per-operation gas limits and current gas pricing."""

    def __init__(
        self,
        chain: ChainInterface,
        executor_address: str,
        priority_fee_per_gas: int = PRIORITY_FEE_PER_GAS,
    ):
        """
        Initialize the gas estimator.

        Args:
            chain: Chain used for estimates and base fee
            executor_address: Sender for operations that do not name one
            priority_fee_per_gas: Static premium on top of the base fee
        """
        self.chain = chain
        self.executor_address = executor_address
        self.priority_fee_per_gas = priority_fee_per_gas

    async def estimate(self, operations: Sequence[UnsignedOperation]) -> List[int]:
        """
        Estimate gas limits for a plan.

        Args:
            operations: Full action plan, trailing placeholder included

        Returns:
            One gas limit per operation; the last is FUNDING_RESERVE_GAS

        Raises:
            EstimationError: If any single estimate fails
        """
        if not operations:
            raise EstimationError("Action plan is empty")

        estimated = [op.with_sender(self.executor_address) for op in operations[:-1]]

        try:
            results = await asyncio.gather(
                *(self.chain.estimate_gas(op) for op in estimated)
            )
        except Exception as e:
            logger.error("gas_estimation_failed", operations=len(estimated), error=str(e))
            raise EstimationError(f"Gas estimation failed: {e}") from e

        estimates = list(results) + [FUNDING_RESERVE_GAS]
        logger.info("gas_estimated", estimates=estimates, total=sum(estimates))
        return estimates

    async def current_gas_parameters(self) -> GasParameters:
        """Build gas parameters from the latest block's base fee."""
        block = await self.chain.get_latest_block()
        return GasParameters(
            base_fee_per_gas=block.base_fee_per_gas,
            priority_fee_per_gas=self.priority_fee_per_gas,
        )
