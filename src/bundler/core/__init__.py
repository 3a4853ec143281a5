"""
Core bundle model and submission orchestration.

The orchestrator itself lives in `bundler.core.bundler`; this package
exports the data model shared by every layer.
"""

from bundler.core.operation import UnsignedOperation
from bundler.core.bundle import (
    Bundle,
    BundleEntry,
    BundleResolution,
    GasParameters,
    SignedBundle,
    SignedBundleTransaction,
)

__all__ = [
    "UnsignedOperation",
    "Bundle",
    "BundleEntry",
    "BundleResolution",
    "GasParameters",
    "SignedBundle",
    "SignedBundleTransaction",
]
