"""
ERC20 action plans.

Move an executor's token balance to the recipient, optionally
withdrawing it from a staking contract first.
"""

from typing import Any, List, Sequence

import structlog
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, function_signature_to_4byte_selector, to_bytes

from bundler.core.operation import UnsignedOperation
from bundler.node.interface import ChainInterface
from bundler.plans.base import ActionPlan, PlanError

logger = structlog.get_logger(__name__)


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    """
    ABI-encode a contract call.

    Args:
        signature: Canonical function signature, e.g. "transfer(address,uint256)"
        arg_types: ABI types of the arguments
        args: Argument values

    Returns:
        0x-prefixed calldata
    """
    selector = function_signature_to_4byte_selector(signature)
    return encode_hex(selector + encode(list(arg_types), list(args)))


async def balance_of(chain: ChainInterface, token_address: str, owner: str) -> int:
    """Read an ERC20 balance."""
    result = await chain.call(
        UnsignedOperation(
            to=token_address,
            data=encode_call("balanceOf(address)", ["address"], [owner]),
        )
    )
    try:
        return decode(["uint256"], to_bytes(hexstr=result))[0]
    except DecodingError as e:
        raise PlanError(f"Cannot read token balance @ {token_address}: {e}") from e


class TransferERC20Plan(ActionPlan):
    """
    Transfer the executor's entire token balance to the recipient.

    The transfer is the plan's only, trailing operation.
    """

    def __init__(
        self,
        chain: ChainInterface,
        sender: str,
        recipient: str,
        token_address: str,
    ):
        self.chain = chain
        self.sender = sender
        self.recipient = recipient
        self.token_address = token_address

    async def build_operations(self) -> List[UnsignedOperation]:
        balance = await balance_of(self.chain, self.token_address, self.sender)
        if balance == 0:
            raise PlanError(f"No token balance for {self.sender} @ {self.token_address}")

        return [
            UnsignedOperation(
                to=self.token_address,
                data=encode_call(
                    "transfer(address,uint256)",
                    ["address", "uint256"],
                    [self.recipient, balance],
                ),
                sender=self.sender,
            )
        ]

    async def describe(self) -> str:
        balance = await balance_of(self.chain, self.token_address, self.sender)
        return (
            f"Transfer ERC20 balance {balance} @ {self.token_address} "
            f"from {self.sender} to {self.recipient}"
        )


class UnstakeAndTransferERC20Plan(ActionPlan):
    """
    Withdraw a staked balance, then transfer the resulting tokens.

    The transfer only succeeds once the withdrawal has executed, which is
    why it is the trailing operation and is not estimated up front.
    """

    def __init__(
        self,
        chain: ChainInterface,
        sender: str,
        recipient: str,
        token_address: str,
        staking_address: str,
        staked_balance: int,
        expected_balance: int,
    ):
        self.chain = chain
        self.sender = sender
        self.recipient = recipient
        self.token_address = token_address
        self.staking_address = staking_address
        self.staked_balance = staked_balance
        self.expected_balance = expected_balance

    async def build_operations(self) -> List[UnsignedOperation]:
        if self.staked_balance <= 0 or self.expected_balance <= 0:
            raise PlanError("Staked and expected balances must be positive")

        return [
            UnsignedOperation(
                to=self.staking_address,
                data=encode_call("withdraw(uint256)", ["uint256"], [self.staked_balance]),
                sender=self.sender,
            ),
            UnsignedOperation(
                to=self.token_address,
                data=encode_call(
                    "transfer(address,uint256)",
                    ["address", "uint256"],
                    [self.recipient, self.expected_balance],
                ),
                sender=self.sender,
            ),
        ]

    async def describe(self) -> str:
        return (
            f"Unstake {self.staked_balance} from {self.staking_address} and transfer "
            f"ERC20 balance {self.expected_balance} @ {self.token_address} "
            f"from {self.sender} to {self.recipient}"
        )
