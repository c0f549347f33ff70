import logging
from enum import Enum
from typing import Optional

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel
from web3 import AsyncWeb3

from config import GaslessNetworkConfig
from tools.chain import ChainClient, WaitOutcome, encode_approve, short_address
from tools.errors import FundingTimeout, GaslessFlowError, MalformedIntent, SignerRejected
from tools.intent_parser import TransferIntent, parse_intent
from tools.services import FundingClient, FundingReason, RelayClient, RelayReceipt, RelayRequest
from tools.signer import Signer

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    PARSING = "parsing"
    CHECKING_ALLOWANCE = "checking_allowance"
    FUNDING = "funding"
    WAITING = "waiting"
    APPROVING = "approving"
    SIGNING_INTENT = "signing_intent"
    RELAYING = "relaying"
    DONE = "done"
    FAILED = "failed"


class TransferOutcome(BaseModel):
    status: str = "pending"
    state: FlowState = FlowState.PARSING
    intent: Optional[TransferIntent] = None
    funding_requested: bool = False
    approval_tx_hash: Optional[str] = None
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    failed_state: Optional[FlowState] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None


class GaslessRelayTool:
    """
    Gasless USDC transfers through an off-chain relay.

    The user never needs ETH up front: when an approve() is required and the
    wallet cannot pay for it, a funding service tops the wallet up first.
    Each call is one linear run; nothing is shared between runs.
    """

    def __init__(
        self,
        config: GaslessNetworkConfig,
        *,
        chain: Optional[ChainClient] = None,
        funding: Optional[FundingClient] = None,
        relay: Optional[RelayClient] = None,
    ):
        self.config = config
        self.network = config.network_config
        self.token = config.token
        self.spender = to_checksum_address(config.spender)
        self.chain = chain or ChainClient.from_rpc_url(
            config.resolved_rpc_url, self.token.address, rpc_timeout=config.rpc_timeout
        )
        self.funding = funding or FundingClient(config.funding_api, timeout=config.http_timeout)
        self.relay = relay or RelayClient(config.relay_api, timeout=config.http_timeout)
        self.reserve_wei = AsyncWeb3.to_wei(config.min_user_eth_reserve, "ether")
        self.funded_wei = AsyncWeb3.to_wei(config.funded_balance_threshold, "ether")

    # ────────────────────────────────────────────────
    # Tool: parse_transfer_intent
    # ────────────────────────────────────────────────
    def parse(self, intent_text: str) -> TransferIntent:
        return parse_intent(intent_text, token=self.token.symbol, decimals=self.token.decimals)

    # ────────────────────────────────────────────────
    # Tool: execute_gasless_transfer
    # ────────────────────────────────────────────────
    async def execute_gasless_transfer(self, intent_text: str, user_address: str, signer: Signer) -> RelayReceipt:
        """
        Run the whole flow and return the relay's receipt.

        Raises the typed :class:`GaslessFlowError` of the first failing step,
        with ``state`` set to the step that failed.
        """
        return await self._execute(intent_text, user_address, signer, TransferOutcome())

    async def run(self, intent_text: str, user_address: str, signer: Signer) -> TransferOutcome:
        """Same as :meth:`execute_gasless_transfer` but returns a typed outcome instead of raising."""
        outcome = TransferOutcome()
        try:
            await self._execute(intent_text, user_address, signer, outcome)
        except GaslessFlowError as exc:
            outcome.status = "failed"
            outcome.failed_state = FlowState(exc.state) if exc.state else None
            outcome.error_kind = exc.kind.value
            outcome.error_message = exc.message
        return outcome

    # ────────────────────────────────────────────────
    # Flow
    # ────────────────────────────────────────────────
    async def _execute(
        self, intent_text: str, user_address: str, signer: Signer, outcome: TransferOutcome
    ) -> RelayReceipt:
        try:
            receipt = await self._run_steps(intent_text, user_address, signer, outcome)
        except GaslessFlowError as exc:
            exc.state = outcome.state.value
            logger.warning("Gasless transfer failed in %s: %s (%s)", exc.state, exc.kind.value, exc.message)
            outcome.state = FlowState.FAILED
            raise
        self._enter(outcome, FlowState.DONE)
        outcome.status = "done"
        return receipt

    def _enter(self, outcome: TransferOutcome, state: FlowState) -> None:
        logger.info("gasless flow: %s -> %s", outcome.state.value, state.value)
        outcome.state = state

    async def _run_steps(
        self, intent_text: str, user_address: str, signer: Signer, outcome: TransferOutcome
    ) -> RelayReceipt:
        # 1. Parse
        intent = self.parse(intent_text)
        outcome.intent = intent
        if not is_address(user_address):
            raise MalformedIntent(f"Invalid sender address {user_address}")
        user = to_checksum_address(user_address)
        if to_checksum_address(signer.address) != user:
            raise SignerRejected(f"Signer {signer.address} does not control {user}")

        # 2. Allowance is evaluated exactly once per run
        self._enter(outcome, FlowState.CHECKING_ALLOWANCE)
        if await self.chain.requires_approval(user, self.spender, intent.amount):
            eth_balance = await self.chain.get_native_balance(user)
            if eth_balance < self.reserve_wei:
                await self._fund(user, eth_balance, outcome)
            else:
                logger.info("%s can pay for approve() itself (%d wei)", short_address(user), eth_balance)
            await self._approve(intent, signer, outcome)
        else:
            logger.info("Allowance of %s already covers %s %s", short_address(user), intent.amount_display, intent.token)

        # 3. Sign the intent
        self._enter(outcome, FlowState.SIGNING_INTENT)
        signature = await signer.sign_message(intent.canonical_text())

        # 4. Relay
        self._enter(outcome, FlowState.RELAYING)
        request = RelayRequest(
            chain=self.network.relay_chain,
            sender=user,
            to=intent.recipient,
            token=intent.token,
            amount=intent.amount_display,
            signature=signature,
        )
        receipt = await self.relay.submit(request)
        if not receipt.explorer:
            receipt.explorer = self.network.explorer_tx_url(receipt.hash)
        outcome.tx_hash = receipt.hash
        outcome.explorer_url = receipt.explorer
        logger.info(
            "Relayed %s %s %s -> %s: %s",
            intent.amount_display, intent.token, short_address(user), short_address(intent.recipient), receipt.hash,
        )
        return receipt

    async def _fund(self, user: str, balance_before: int, outcome: TransferOutcome) -> None:
        self._enter(outcome, FlowState.FUNDING)
        outcome.funding_requested = True
        await self.funding.request_funding(user, FundingReason.APPROVAL_NEEDED)

        self._enter(outcome, FlowState.WAITING)
        # funds count as arrived only once the balance actually grows
        waited = await self.chain.wait_for_balance(
            user,
            max(self.funded_wei, balance_before + 1),
            interval=self.config.funding_poll_interval,
            attempts=self.config.funding_poll_attempts,
        )
        if waited is WaitOutcome.TIMED_OUT:
            raise FundingTimeout(
                f"Funding for {user} did not arrive after {self.config.funding_poll_attempts} balance checks",
                attempts=self.config.funding_poll_attempts,
            )

    async def _approve(self, intent: TransferIntent, signer: Signer, outcome: TransferOutcome) -> None:
        self._enter(outcome, FlowState.APPROVING)
        data = encode_approve(self.spender, intent.amount * self.config.approval_headroom)
        tx_hash = await signer.send_transaction(self.token.address, data)
        outcome.approval_tx_hash = tx_hash
        logger.info("approve() broadcast: %s", tx_hash)
        # the relay pulls funds right away, so the approval must be mined first
        if self.config.wait_for_approval_receipt:
            await self.chain.wait_for_receipt(tx_hash, timeout=self.config.approval_receipt_timeout)
