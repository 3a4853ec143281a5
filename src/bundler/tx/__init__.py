"""
Transaction module.

Handles funding calculation, bundle assembly and signing.
"""

from bundler.tx.builder import (
    FUNDING_TRANSFER_GAS_LIMIT,
    BundleBuilder,
    BundleBuildError,
    FundingPlan,
    calculate_funding,
)
from bundler.tx.signer import TransactionSigner, sign_bundle_entries

__all__ = [
    "FUNDING_TRANSFER_GAS_LIMIT",
    "BundleBuilder",
    "BundleBuildError",
    "FundingPlan",
    "calculate_funding",
    "TransactionSigner",
    "sign_bundle_entries",
]
