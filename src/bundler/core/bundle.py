"""
Bundle model.

Represents the ordered, gas-stamped set of transactions submitted to the
relay as one atomic unit, and its signed form.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List

from bundler.core.operation import UnsignedOperation

if TYPE_CHECKING:
    from bundler.tx.signer import TransactionSigner


GWEI = 10 ** 9

# Static premium paid to the block builder on top of the base fee
PRIORITY_FEE_PER_GAS = 50 * GWEI


def gas_price_to_gwei(gas_price: int) -> float:
    """Convert a wei amount to gwei, truncated to two decimals."""
    return (gas_price * 100 // GWEI) / 100


class BundleResolution(str, Enum):
    """Relay verdict for one targeted submission."""
    INCLUDED = "included"
    BLOCK_PASSED_WITHOUT_INCLUSION = "block_passed_without_inclusion"
    ACCOUNT_NONCE_TOO_HIGH = "account_nonce_too_high"


@dataclass(frozen=True)
class GasParameters:
    """Gas pricing shared by every transaction in a bundle."""

    base_fee_per_gas: int
    priority_fee_per_gas: int = PRIORITY_FEE_PER_GAS

    @property
    def gas_price(self) -> int:
        return self.base_fee_per_gas + self.priority_fee_per_gas


@dataclass
class BundleEntry:
    """
    One transaction of a bundle together with its signer.

    Attributes:
        operation: The call body
        gas_price: Legacy gas price in wei
        gas_limit: Gas limit for this transaction
        signer: Identity that signs this transaction
    """

    operation: UnsignedOperation
    gas_price: int
    gas_limit: int
    signer: "TransactionSigner"

    def to_transaction(self, nonce: int, chain_id: int) -> dict:
        """Render as a transaction dict ready for signing."""
        return {
            "to": self.operation.to,
            "value": self.operation.value,
            "data": self.operation.data,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }


@dataclass
class Bundle:
    """
    An assembled, unsigned bundle.

    Entry 0 is always the sponsor's funding transfer; the remaining
    entries are the action plan in execution order.
    """

    entries: List[BundleEntry]
    gas_parameters: GasParameters
    gas_estimates: List[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.entries)

    @property
    def funding_entry(self) -> BundleEntry:
        return self.entries[0]

    @property
    def action_entries(self) -> List[BundleEntry]:
        return self.entries[1:]

    @property
    def gas_price(self) -> int:
        return self.gas_parameters.gas_price

    @property
    def total_gas_units(self) -> int:
        """Gas budget of the actions, including the funding reserve."""
        return sum(self.gas_estimates)

    @property
    def funding_value(self) -> int:
        """Wei the sponsor transfers to the executor."""
        return self.funding_entry.operation.value

    def __repr__(self) -> str:
        return f"Bundle(size={self.size}, gas_price={self.gas_price})"


@dataclass(frozen=True)
class SignedBundleTransaction:
    """A signed transaction of a bundle."""

    raw: str
    tx_hash: str
    sender: str
    nonce: int


@dataclass
class SignedBundle:
    """Signed, ordered bundle as sent to the relay."""

    transactions: List[SignedBundleTransaction]

    @property
    def raw_transactions(self) -> List[str]:
        return [tx.raw for tx in self.transactions]

    @property
    def tx_hashes(self) -> List[str]:
        return [tx.tx_hash for tx in self.transactions]

    def __len__(self) -> int:
        return len(self.transactions)
