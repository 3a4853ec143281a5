"""
Transaction Signer - handles transaction signing.

Wraps one Ethereum account and signs bundle transactions and relay
request bodies with it.
"""

from typing import TYPE_CHECKING, Dict, List, Optional

import structlog
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import encode_hex, keccak

from bundler.core.bundle import BundleEntry, SignedBundle, SignedBundleTransaction

if TYPE_CHECKING:
    from bundler.node.interface import ChainInterface

logger = structlog.get_logger(__name__)


def normalize_key(key: str) -> str:
    """Ensure a hex private key carries the 0x prefix."""
    key = key.strip()
    if key.startswith("0x"):
        return key
    return "0x" + key


class TransactionSigner:
    """
    Holds one signing identity (executor, sponsor or relay).

    Security note: keys are held in process memory for the duration of
    the run only.
    """

    def __init__(self, role: str = "signer"):
        """
        Initialize the transaction signer.

        Args:
            role: Name of the identity, used in logs
        """
        self.role = role
        self._account: Optional[LocalAccount] = None

    @classmethod
    def from_key(cls, private_key: str, role: str = "signer") -> "TransactionSigner":
        """Create a signer from a hex private key."""
        signer = cls(role)
        signer.load_key(private_key)
        return signer

    def load_key(self, private_key: str) -> None:
        """
        Load signing key from a hex string.

        Args:
            private_key: Hex-encoded private key, with or without 0x
        """
        self._account = Account.from_key(normalize_key(private_key))
        logger.info("signing_key_loaded", role=self.role, address=self._account.address)

    @property
    def address(self) -> Optional[str]:
        """Get the checksummed account address."""
        return self._account.address if self._account else None

    @property
    def is_loaded(self) -> bool:
        """Check if a signing key is loaded."""
        return self._account is not None

    def _require_account(self) -> LocalAccount:
        if not self._account:
            raise RuntimeError("No signing key loaded")
        return self._account

    def sign_transaction(self, transaction: dict) -> SignedBundleTransaction:
        """
        Sign a transaction dict.

        Args:
            transaction: Fully populated legacy transaction

        Returns:
            Signed transaction with raw bytes and hash as 0x-hex
        """
        account = self._require_account()
        signed = account.sign_transaction(transaction)

        tx_hash = encode_hex(signed.hash)
        logger.debug("transaction_signed", role=self.role, tx_hash=tx_hash, nonce=transaction["nonce"])

        return SignedBundleTransaction(
            raw=encode_hex(signed.raw_transaction),
            tx_hash=tx_hash,
            sender=account.address,
            nonce=transaction["nonce"],
        )

    def sign_request_body(self, body: str) -> str:
        """
        Sign a relay request body.

        The relay expects an EIP-191 signature over the hex keccak hash of
        the exact body bytes, sent as `address:signature`.
        """
        account = self._require_account()
        body_hash = encode_hex(keccak(text=body))
        signed = account.sign_message(encode_defunct(text=body_hash))
        return f"{account.address}:{encode_hex(signed.signature)}"

    def __repr__(self) -> str:
        return f"TransactionSigner(role={self.role}, address={self.address})"


async def sign_bundle_entries(
    entries: List[BundleEntry],
    chain: "ChainInterface",
) -> SignedBundle:
    """
    Sign every entry of a bundle with its own signer.

    Each signer starts at its account's current nonce and increments it
    for every further entry it signs, so one signer can appear several
    times in a bundle.

    Args:
        entries: Bundle entries in execution order
        chain: Chain used for nonces and chain id

    Returns:
        Signed bundle in the same order
    """
    chain_id = await chain.get_chain_id()
    nonces: Dict[str, int] = {}
    transactions = []

    for entry in entries:
        address = entry.signer.address
        if address is None:
            raise RuntimeError(f"Signer {entry.signer.role} has no key loaded")
        if address not in nonces:
            nonces[address] = await chain.get_transaction_count(address, "latest")

        transactions.append(
            entry.signer.sign_transaction(entry.to_transaction(nonces[address], chain_id))
        )
        nonces[address] += 1

    return SignedBundle(transactions=transactions)


def generate_test_key(role: str = "signer") -> TransactionSigner:
    """
    Generate a new random signing key for testing.

    WARNING: Do not use in production. The key is not persisted.

    Returns:
        TransactionSigner with a new random key
    """
    signer = TransactionSigner(role)
    signer._account = Account.create()

    logger.warning("test_key_generated", role=role, address=signer.address)

    return signer
