"""
Action plan abstraction.

A plan produces the ordered operations the executor performs inside the
bundle. Insertion order is execution order; the last operation is the
trailing placeholder that is not gas-estimated.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from bundler.config import BundlerConfig, PlanType, get_config
from bundler.core.operation import UnsignedOperation
from bundler.errors import BundlerError, ConfigurationError
from bundler.node.interface import ChainInterface


class PlanError(BundlerError):
    """Raised when a plan cannot produce its operations."""
    pass


class ActionPlan(ABC):
    """
    Abstract base class for action plans.

    Implement this to define which operations are submitted.
    """

    @abstractmethod
    async def build_operations(self) -> List[UnsignedOperation]:
        """
        Build the plan's operations in execution order.

        Returns:
            Non-empty list of unsigned operations
        """
        pass

    @abstractmethod
    async def describe(self) -> str:
        """Human-readable summary of what the plan does."""
        pass


def _require(config: BundlerConfig, *names: str) -> None:
    missing = [name.upper() for name in names if getattr(config, name) in (None, "")]
    if missing:
        raise ConfigurationError(
            f"Plan {config.plan.value} requires {', '.join(missing)} environment variable(s)"
        )


def create_plan(
    chain: ChainInterface,
    executor_address: str,
    config: Optional[BundlerConfig] = None,
) -> ActionPlan:
    """
    Create the action plan selected in the configuration.

    Args:
        chain: Chain for plans that read state
        executor_address: Account performing the operations
        config: Bundler configuration

    Returns:
        The configured ActionPlan

    Raises:
        ConfigurationError: If a setting the plan needs is missing
    """
    from bundler.plans.erc20 import TransferERC20Plan, UnstakeAndTransferERC20Plan

    config = config or get_config()
    _require(config, "recipient", "token_address")

    if config.plan == PlanType.UNSTAKE_AND_TRANSFER_ERC20:
        _require(config, "staking_address", "staked_balance", "expected_balance")
        return UnstakeAndTransferERC20Plan(
            chain=chain,
            sender=executor_address,
            recipient=config.recipient,
            token_address=config.token_address,
            staking_address=config.staking_address,
            staked_balance=config.staked_balance,
            expected_balance=config.expected_balance,
        )

    return TransferERC20Plan(
        chain=chain,
        sender=executor_address,
        recipient=config.recipient,
        token_address=config.token_address,
    )
