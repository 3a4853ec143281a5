"""
Unsigned operation model.

An operation is a candidate on-chain call, before gas and signing.
"""

from dataclasses import dataclass, replace
from typing import Optional

from eth_utils import to_checksum_address


@dataclass(frozen=True)
class UnsignedOperation:
    """
    A single call to be executed as part of a bundle.

    Attributes:
        to: Target address
        data: Hex-encoded calldata ("0x" for a plain transfer)
        value: Wei sent with the call
        sender: Account expected to send it; the executor when unset
    """

    to: str
    data: str = "0x"
    value: int = 0
    sender: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "to", to_checksum_address(self.to))
        if self.sender is not None:
            object.__setattr__(self, "sender", to_checksum_address(self.sender))
        if not self.data.startswith("0x"):
            object.__setattr__(self, "data", "0x" + self.data)
        if self.value < 0:
            raise ValueError("Operation value cannot be negative")

    def with_sender(self, default_sender: str) -> "UnsignedOperation":
        """Return this operation with the sender filled in if unset."""
        if self.sender is not None:
            return self
        return replace(self, sender=default_sender)

    def to_call(self) -> dict:
        """Render as a JSON-RPC call object (eth_call / eth_estimateGas)."""
        call = {
            "to": self.to,
            "data": self.data,
            "value": hex(self.value),
        }
        if self.sender is not None:
            call["from"] = self.sender
        return call
