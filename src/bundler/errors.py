"""
Error taxonomy for the bundle submitter.

Every fatal condition of a run is a BundlerError subclass. The only
expected non-error outcome is a block passing without inclusion, which
is not represented here.
"""

from typing import Optional


class BundlerError(Exception):
    """Base class for all fatal bundler errors."""
    pass


class ConfigurationError(BundlerError):
    """Raised when a required identity or address is missing at startup."""
    pass


class EstimationError(BundlerError):
    """Raised when any gas estimate for the action plan fails."""
    pass


class SimulationRevertError(BundlerError):
    """Raised when the bundle would revert against current chain state."""

    def __init__(self, message: str, tx_index: Optional[int] = None):
        super().__init__(message)
        self.tx_index = tx_index


class RelayTransportError(BundlerError):
    """Raised when a relay call itself fails."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code


class NonceInvalidatedError(BundlerError):
    """Raised when a signer's nonce advanced past the bundle's nonces."""

    def __init__(self, message: str, target_block: Optional[int] = None):
        super().__init__(message)
        self.target_block = target_block
