"""
Sponsored Bundle Submitter

Submits an ordered set of operations from an executor account as one
atomic bundle to a private relay. A separate sponsor account funds the
executor's gas inside the same bundle, so the executor never needs to
hold ETH.
"""

__version__ = "0.1.0"

from bundler.core.bundler import Bundler, BundleOutcome, OutcomeStatus
from bundler.core.bundle import Bundle, BundleResolution, GasParameters
from bundler.core.operation import UnsignedOperation

__all__ = [
    "Bundler",
    "BundleOutcome",
    "OutcomeStatus",
    "Bundle",
    "BundleResolution",
    "GasParameters",
    "UnsignedOperation",
]
