"""HTTP clients for the external funding and relay services."""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, Field

from tools.errors import FundingRequestRejected, RelayError

logger = logging.getLogger(__name__)

FUNDING_PATH = "/api/fund-user-eth"
RELAY_PATH = "/api/relay"


class FundingReason(str, Enum):
    APPROVAL_NEEDED = "approval_needed"


class FundingRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    userAddress: str
    reason: FundingReason = FundingReason.APPROVAL_NEEDED


class RelayRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chain: str
    sender: str = Field(alias="from")
    to: str
    token: str
    amount: str                # display string, e.g. "10.5"
    signature: str


class RelayReceipt(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hash: str
    fee: Optional[Union[str, float]] = None
    net_amount: Optional[Union[str, float]] = Field(default=None, alias="netAmount")
    explorer: Optional[str] = None


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason or ""
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)


def _post_json(url: str, payload: Dict[str, Any], timeout: float) -> requests.Response:
    return requests.post(url, json=payload, headers={"Content-Type": "application/json"}, timeout=timeout)


class FundingClient:
    def __init__(self, base_url: str, *, timeout: float = 10.0):
        self.url = base_url.rstrip("/") + FUNDING_PATH
        self.timeout = timeout

    async def request_funding(
        self, user_address: str, reason: FundingReason = FundingReason.APPROVAL_NEEDED
    ) -> Dict[str, Any]:
        """Ask the funding service for approval gas. Sent once, never retried."""
        request = FundingRequest(userAddress=user_address, reason=reason)
        try:
            resp = await asyncio.to_thread(_post_json, self.url, request.model_dump(mode="json"), self.timeout)
        except requests.RequestException as exc:
            raise FundingRequestRejected(f"Funding service unreachable: {exc}") from exc

        if not resp.ok:
            message = _error_message(resp)
            logger.warning("Funding request rejected (HTTP %s): %s", resp.status_code, message)
            raise FundingRequestRejected(
                f"Funding service returned HTTP {resp.status_code}: {message}",
                status_code=resp.status_code,
            )
        try:
            body = resp.json()
        except ValueError:
            body = {}
        logger.debug("Funding response: %s", body)
        return body if isinstance(body, dict) else {}


class RelayClient:
    def __init__(self, base_url: str, *, timeout: float = 10.0):
        self.url = base_url.rstrip("/") + RELAY_PATH
        self.timeout = timeout

    async def submit(self, request: RelayRequest) -> RelayReceipt:
        payload = request.model_dump(mode="json", by_alias=True)
        try:
            resp = await asyncio.to_thread(_post_json, self.url, payload, self.timeout)
        except requests.RequestException as exc:
            raise RelayError(f"Relay service unreachable: {exc}") from exc

        if not resp.ok:
            raise RelayError(
                f"Relay returned HTTP {resp.status_code}: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise RelayError("Relay returned a non-JSON response", status_code=resp.status_code) from exc
        if not isinstance(body, dict) or not body.get("hash"):
            raise RelayError(f"Relay response carries no transaction hash: {body}", status_code=resp.status_code)
        return RelayReceipt.model_validate(body)
