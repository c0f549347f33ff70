"""Recording test doubles for the chain, services and wallet signer."""

from unittest.mock import AsyncMock, MagicMock

from eth_utils import to_checksum_address

from tools.errors import FundingRequestRejected, RelayError, SignerRejected
from tools.services import RelayReceipt

USER = to_checksum_address("0x" + "b" * 40)
RECIPIENT = "0x" + "A" * 40
RECIPIENT_CHECKSUM = to_checksum_address(RECIPIENT)
INTENT = f"10 USDC to {RECIPIENT}"
ONE_ETH = 10 ** 18


def balances_then(*values):
    """side_effect that yields ``values`` in order, then repeats the last one."""
    remaining = list(values)

    def _next(*_args, **_kwargs):
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return _next


def make_web3(allowance=0, balances=(0,), receipt_status=1):
    web3 = MagicMock()
    web3.eth.contract.return_value.functions.allowance.return_value.call = AsyncMock(return_value=allowance)
    web3.eth.get_balance = AsyncMock(side_effect=balances_then(*balances))
    web3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": receipt_status})
    return web3


class FakeFunding:
    def __init__(self, calls, reject=False):
        self.calls = calls
        self.reject = reject

    async def request_funding(self, user_address, reason):
        self.calls.append(("fund", user_address, reason.value))
        if self.reject:
            raise FundingRequestRejected("Already funded recently", status_code=429)
        return {"success": True}


class FakeRelay:
    def __init__(self, calls, fail=False):
        self.calls = calls
        self.fail = fail
        self.requests = []

    async def submit(self, request):
        self.calls.append(("relay", request.to, request.amount))
        self.requests.append(request)
        if self.fail:
            raise RelayError("Relay returned HTTP 400: Insufficient allowance", status_code=400)
        return RelayReceipt(hash="0xrelayhash")


class FakeSigner:
    def __init__(self, calls, address=USER, reject_sign=False, reject_send=False):
        self.calls = calls
        self.address = address
        self.reject_sign = reject_sign
        self.reject_send = reject_send
        self.messages = []
        self.transactions = []

    async def sign_message(self, text):
        self.calls.append(("sign", text))
        if self.reject_sign:
            raise SignerRejected("User rejected the request")
        self.messages.append(text)
        return "0x" + "11" * 65

    async def send_transaction(self, to, data):
        self.calls.append(("approve", to, data))
        if self.reject_send:
            raise SignerRejected("User rejected the request")
        self.transactions.append((to, data))
        return "0xapprovehash"


