"""
Abstract interface for Ethereum chain access.

Defines the contract for blockchain access that all chain adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Union

from bundler.core.operation import UnsignedOperation


BlockTag = Union[int, str]


@dataclass
class BlockHeader:
    """Subset of a block header needed for pricing and targeting."""
    number: int
    base_fee_per_gas: int
    hash: Optional[str] = None


class ChainInterface(ABC):
    """
    Abstract interface for chain access.

    This interface defines all chain operations needed by the bundler:
    - Block and fee queries
    - Gas estimation and read-only calls
    - Nonce lookups for signing and resolution
    - New block notifications
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node."""
        pass

    @abstractmethod
    async def get_latest_block(self) -> BlockHeader:
        """
        Get the latest block header.

        Returns:
            Number and base fee of the latest block
        """
        pass

    @abstractmethod
    async def get_block_number(self) -> int:
        """Get the number of the latest block."""
        pass

    @abstractmethod
    async def estimate_gas(self, operation: UnsignedOperation) -> int:
        """
        Estimate the gas limit of an operation against latest state.

        Args:
            operation: Operation with its sender filled in

        Returns:
            Estimated gas units

        Raises:
            NodeRequestError: If the call would revert
        """
        pass

    @abstractmethod
    async def call(self, operation: UnsignedOperation) -> str:
        """
        Execute a read-only call.

        Returns:
            Hex-encoded return data
        """
        pass

    @abstractmethod
    async def get_transaction_count(
        self,
        address: str,
        block: BlockTag = "latest",
    ) -> int:
        """
        Get the nonce of an account.

        Args:
            address: Account address
            block: Block number or tag to read at

        Returns:
            Number of transactions sent from the account
        """
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Get the chain id used for transaction signing."""
        pass

    @abstractmethod
    async def get_block_transactions(self, block_number: int) -> Optional[List[str]]:
        """
        Get the transaction hashes of a block.

        Returns:
            Transaction hashes, or None if the block does not exist yet
        """
        pass

    @abstractmethod
    def subscribe_new_blocks(self) -> AsyncIterator[int]:
        """
        Stream new block numbers as they are observed.

        Delivery is ordered and at-least-once; consumers must tolerate
        duplicates and gaps.
        """
        pass


class NodeConnectionError(Exception):
    """Raised when connection to the node fails."""
    pass


class NodeRequestError(Exception):
    """Raised when the node rejects a request (e.g. execution reverted)."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
