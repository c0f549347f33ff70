"""Read/write access to the EVM chain used by the gasless flow."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from tools.errors import ChainReadError, SubmissionError
from tools.polling import poll_until

logger = logging.getLogger(__name__)

ERC20_ALLOWANCE_ABI = [
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

APPROVE_SELECTOR = function_signature_to_4byte_selector("approve(address,uint256)")


class WaitOutcome(str, Enum):
    FUNDED = "funded"
    TIMED_OUT = "timed_out"


def encode_approve(spender: str, amount: int) -> str:
    """Calldata for ERC-20 ``approve(spender, amount)``."""
    args = encode(["address", "uint256"], [to_checksum_address(spender), amount])
    return "0x" + (APPROVE_SELECTOR + args).hex()


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


class ChainClient:
    """Allowance inspection, native balance polling and receipt lookup.

    Holds no per-run state, so one instance can serve concurrent runs.
    """

    def __init__(self, web3: AsyncWeb3, token_address: str, *, rpc_timeout: float = 15.0):
        self.web3 = web3
        self.token_address = to_checksum_address(token_address)
        self.rpc_timeout = rpc_timeout
        self._token = web3.eth.contract(address=self.token_address, abi=ERC20_ALLOWANCE_ABI)

    @classmethod
    def from_rpc_url(cls, rpc_url: str, token_address: str, *, rpc_timeout: float = 15.0) -> "ChainClient":
        web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout}))
        return cls(web3, token_address, rpc_timeout=rpc_timeout)

    async def _read(self, what: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.rpc_timeout)
        except asyncio.TimeoutError as exc:
            raise ChainReadError(f"{what} timed out after {self.rpc_timeout}s") from exc
        except Exception as exc:
            raise ChainReadError(f"{what} failed: {exc}") from exc

    async def get_allowance(self, owner: str, spender: str) -> int:
        call = self._token.functions.allowance(to_checksum_address(owner), to_checksum_address(spender)).call()
        allowance = int(await self._read("allowance()", call))
        logger.debug("allowance(%s, %s) = %d", short_address(owner), short_address(spender), allowance)
        return allowance

    async def requires_approval(self, owner: str, spender: str, amount: int) -> bool:
        """True when the existing allowance is strictly below ``amount``."""
        return await self.get_allowance(owner, spender) < amount

    async def get_native_balance(self, address: str) -> int:
        balance = await self._read("eth_getBalance", self.web3.eth.get_balance(to_checksum_address(address)))
        return int(balance)

    async def wait_for_balance(
        self,
        address: str,
        minimum: int,
        *,
        interval: float = 2.0,
        attempts: int = 10,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> WaitOutcome:
        result = await poll_until(
            lambda: self.get_native_balance(address),
            lambda balance: balance >= minimum,
            interval=interval,
            attempts=attempts,
            sleep=sleep or asyncio.sleep,
        )
        if result.satisfied:
            logger.info("Balance of %s reached %d wei after %d polls", short_address(address), result.value, result.attempts)
            return WaitOutcome.FUNDED
        logger.warning("Balance of %s still %s wei after %d polls", short_address(address), result.value, result.attempts)
        return WaitOutcome.TIMED_OUT

    async def wait_for_receipt(self, tx_hash: str, *, timeout: float = 120.0) -> Dict[str, Any]:
        """Wait until ``tx_hash`` is mined; a revert or timeout is a SubmissionError."""
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as exc:
            raise SubmissionError(f"Transaction {tx_hash} not mined within {timeout}s", tx_hash=tx_hash) from exc
        except Exception as exc:
            raise SubmissionError(f"Could not confirm transaction {tx_hash}: {exc}", tx_hash=tx_hash) from exc
        if receipt.get("status") != 1:
            raise SubmissionError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return dict(receipt)
