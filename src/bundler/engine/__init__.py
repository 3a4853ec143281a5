"""
Bundling Engine module.

Contains the gas estimator for sizing the plan's gas budget and the
simulator for pre-flight checks.
"""

from bundler.engine.gas import FUNDING_RESERVE_GAS, GasEstimator
from bundler.engine.simulator import Simulator

__all__ = [
    "FUNDING_RESERVE_GAS",
    "GasEstimator",
    "Simulator",
]
