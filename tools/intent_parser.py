import re

from eth_utils import is_hex_address, to_checksum_address
from pydantic import BaseModel, ConfigDict

from tools.errors import MalformedIntent

USDC_DECIMALS = 6

_AMOUNT_RE = re.compile(r"^[0-9]+(\.[0-9]+)?$", re.ASCII)


def _intent_pattern(token: str) -> "re.Pattern[str]":
    return re.compile(
        rf"([0-9]+(?:\.[0-9]+)?)\s+{re.escape(token)}\s+to\s+(0x[a-fA-F0-9]{{40}})\b",
        re.IGNORECASE | re.ASCII,
    )


class TransferIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int               # base units of the token
    amount_display: str       # as typed by the user
    recipient: str            # checksummed
    token: str = "USDC"
    decimals: int = USDC_DECIMALS
    raw_text: str = ""

    def canonical_text(self) -> str:
        """Text the wallet signs; binds amount and recipient."""
        return f"{self.amount_display} {self.token} to {self.recipient}"


def to_base_units(display: str, decimals: int) -> int:
    if not _AMOUNT_RE.fullmatch(display):
        raise MalformedIntent(f"Invalid amount {display!r}")
    whole, _, frac = display.partition(".")
    frac = frac.rstrip("0")
    if len(frac) > decimals:
        raise MalformedIntent(f"Amount {display} has more than {decimals} decimal places")
    return int(whole) * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")


def format_units(amount: int, decimals: int) -> str:
    whole, frac = divmod(amount, 10 ** decimals)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"


def parse_intent(text: str, *, token: str = "USDC", decimals: int = USDC_DECIMALS) -> TransferIntent:
    """Parse ``"<amount> <token> to <address>"`` out of a free text instruction.

    The match may appear anywhere in ``text`` ("send 10 USDC to 0x..." works).
    Raises :class:`MalformedIntent` when nothing matches, the address is not
    well formed, or the amount is zero or not representable with ``decimals``.
    """
    match = _intent_pattern(token).search(text or "")
    if not match:
        raise MalformedIntent(f"Expected '<amount> {token} to <address>', got {text!r}")

    amount_display, address = match.group(1), match.group(2)
    if not is_hex_address(address):
        raise MalformedIntent(f"Invalid recipient address {address}")

    amount = to_base_units(amount_display, decimals)
    if amount <= 0:
        raise MalformedIntent("Amount must be greater than zero")

    return TransferIntent(
        amount=amount,
        amount_display=amount_display,
        recipient=to_checksum_address(address),
        token=token,
        decimals=decimals,
        raw_text=text,
    )
