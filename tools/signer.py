"""Wallet signer capability.

The orchestrator only depends on :class:`Signer`; browser or hardware wallets
live in the enclosing application. :class:`LocalAccountSigner` signs with a
private key held by this process (used by the MCP server).
"""

import logging
from typing import Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import AsyncWeb3

from tools.errors import SignerRejected, SubmissionError

logger = logging.getLogger(__name__)


@runtime_checkable
class Signer(Protocol):
    address: str

    async def sign_message(self, text: str) -> str:
        """EIP-191 personal_sign over ``text``; raises SignerRejected."""
        ...

    async def send_transaction(self, to: str, data: str) -> str:
        """Sign and broadcast a call; raises SignerRejected or SubmissionError."""
        ...


class LocalAccountSigner:
    def __init__(self, private_key: str, web3: AsyncWeb3, chain_id: int):
        try:
            self.account = Account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise SignerRejected("Signer key is not a valid private key") from exc
        self.address = self.account.address
        self.web3 = web3
        self.chain_id = chain_id

    async def sign_message(self, text: str) -> str:
        signed = self.account.sign_message(encode_defunct(text=text))
        return AsyncWeb3.to_hex(signed.signature)

    async def send_transaction(self, to: str, data: str) -> str:
        try:
            tx = {
                "from": self.address,
                "to": AsyncWeb3.to_checksum_address(to),
                "data": data,
                "value": 0,
                "chainId": self.chain_id,
                "nonce": await self.web3.eth.get_transaction_count(self.address),
                "gasPrice": await self.web3.eth.gas_price,
            }
            gas_estimate = await self.web3.eth.estimate_gas(tx)
            tx["gas"] = int(gas_estimate * 1.2)
        except Exception as exc:
            # nothing was signed or broadcast yet
            raise SignerRejected(f"Signer unavailable, could not prepare transaction: {exc}") from exc

        signed = self.account.sign_transaction(tx)
        try:
            tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise SubmissionError(f"Broadcast failed: {exc}", tx_hash=AsyncWeb3.to_hex(signed.hash)) from exc
        logger.info("Broadcast %s from %s", AsyncWeb3.to_hex(tx_hash), self.address)
        return AsyncWeb3.to_hex(tx_hash)
