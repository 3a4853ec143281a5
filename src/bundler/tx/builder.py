"""
Bundle Builder - computes the sponsor's funding and assembles bundles.

The funding transfer pays exactly the gas budget of the action
transactions, so funding and spending land in the same atomic unit.
"""

from dataclasses import dataclass
from typing import Sequence

import structlog

from bundler.core.bundle import Bundle, BundleEntry, GasParameters
from bundler.core.operation import UnsignedOperation
from bundler.errors import BundlerError
from bundler.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# Minimum cost of a plain value transfer
FUNDING_TRANSFER_GAS_LIMIT = 21_000


class BundleBuildError(BundlerError):
    """Raised when a bundle cannot be assembled."""
    pass


@dataclass(frozen=True)
class FundingPlan:
    """Gas budget the sponsor must cover."""

    total_gas_units: int
    gas_price: int

    @property
    def value(self) -> int:
        return self.total_gas_units * self.gas_price


def calculate_funding(gas_estimates: Sequence[int], gas_parameters: GasParameters) -> FundingPlan:
    """
    Compute the sponsor's funding for a set of gas estimates.

    Args:
        gas_estimates: Per-transaction gas limits, funding reserve included
        gas_parameters: Pricing for this bundle

    Returns:
        FundingPlan with total gas units and wei value
    """
    return FundingPlan(
        total_gas_units=sum(gas_estimates),
        gas_price=gas_parameters.gas_price,
    )


class BundleBuilder:
    """
    Assembles bundles from an action plan and its gas estimates.

    Entry 0 is the sponsor's funding transfer to the executor; every
    following entry is a plan operation signed by the executor.
    """

    def __init__(self, executor: TransactionSigner, sponsor: TransactionSigner):
        """
        Initialize the bundle builder.

        Args:
            executor: Identity performing the plan operations
            sponsor: Identity paying for gas
        """
        self.executor = executor
        self.sponsor = sponsor

    def build_funding_operation(self, funding: FundingPlan) -> UnsignedOperation:
        """Build the plain transfer from sponsor to executor."""
        return UnsignedOperation(
            to=self.executor.address,
            value=funding.value,
            sender=self.sponsor.address,
        )

    def assemble(
        self,
        operations: Sequence[UnsignedOperation],
        gas_estimates: Sequence[int],
        gas_parameters: GasParameters,
    ) -> Bundle:
        """
        Assemble an unsigned bundle.

        Args:
            operations: Full action plan, trailing placeholder included
            gas_estimates: One gas limit per operation, by position
            gas_parameters: Shared pricing for every transaction

        Returns:
            Bundle of len(operations) + 1 entries

        Raises:
            BundleBuildError: If the plan is empty or estimates do not line up
        """
        if not operations:
            raise BundleBuildError("Cannot build a bundle for an empty plan")
        if len(gas_estimates) != len(operations):
            raise BundleBuildError(
                f"Expected {len(operations)} gas estimates, got {len(gas_estimates)}"
            )
        if not self.executor.is_loaded or not self.sponsor.is_loaded:
            raise BundleBuildError("Executor and sponsor keys must be loaded")

        funding = calculate_funding(gas_estimates, gas_parameters)
        gas_price = gas_parameters.gas_price

        entries = [
            BundleEntry(
                operation=self.build_funding_operation(funding),
                gas_price=gas_price,
                gas_limit=FUNDING_TRANSFER_GAS_LIMIT,
                signer=self.sponsor,
            )
        ]
        for operation, gas_limit in zip(operations, gas_estimates):
            entries.append(
                BundleEntry(
                    operation=operation.with_sender(self.executor.address),
                    gas_price=gas_price,
                    gas_limit=gas_limit,
                    signer=self.executor,
                )
            )

        logger.info(
            "bundle_assembled",
            size=len(entries),
            total_gas_units=funding.total_gas_units,
            gas_price=gas_price,
            funding_value=funding.value,
        )

        return Bundle(
            entries=entries,
            gas_parameters=gas_parameters,
            gas_estimates=list(gas_estimates),
        )

    def reprice(self, bundle: Bundle, gas_parameters: GasParameters) -> Bundle:
        """
        Rebuild a bundle at a new gas price.

        Bodies, order and signer assignment are kept; the funding value
        follows the new price.
        """
        action_operations = [entry.operation for entry in bundle.action_entries]
        return self.assemble(action_operations, bundle.gas_estimates, gas_parameters)
