"""
Private relay module.

Handles bundle simulation, submission and resolution tracking.
"""

from bundler.relay.interface import (
    BundleSubmission,
    RelayInterface,
    SimulationResult,
    TransactionSimulation,
)
from bundler.relay.flashbots import FlashbotsBundleSubmission, FlashbotsRelay

__all__ = [
    "BundleSubmission",
    "RelayInterface",
    "SimulationResult",
    "TransactionSimulation",
    "FlashbotsBundleSubmission",
    "FlashbotsRelay",
]
