"""
Action plans.

Strategies that decide which operations the executor performs.
"""

from bundler.plans.base import ActionPlan, PlanError, create_plan
from bundler.plans.erc20 import TransferERC20Plan, UnstakeAndTransferERC20Plan

__all__ = [
    "ActionPlan",
    "PlanError",
    "create_plan",
    "TransferERC20Plan",
    "UnstakeAndTransferERC20Plan",
]
