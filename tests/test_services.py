import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from tests.doubles import RECIPIENT_CHECKSUM, USER
from tools.errors import FundingRequestRejected, RelayError
from tools.services import FundingClient, FundingReason, RelayClient, RelayRequest


def response(status, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = text
    resp.reason = ""
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def relay_request():
    return RelayRequest(
        chain="base", sender=USER, to=RECIPIENT_CHECKSUM, token="USDC", amount="10", signature="0xsig"
    )


class TestFundingClient:

    def test_posts_user_and_reason(self):
        client = FundingClient("http://funding.test/", timeout=3)
        with patch("requests.post", return_value=response(200, {"success": True, "hash": "0xfund"})) as mock_post:
            body = asyncio.run(client.request_funding(USER, FundingReason.APPROVAL_NEEDED))

        assert body["hash"] == "0xfund"
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "http://funding.test/api/fund-user-eth"
        assert kwargs["json"] == {"userAddress": USER, "reason": "approval_needed"}
        assert kwargs["timeout"] == 3

    def test_any_2xx_is_success(self):
        client = FundingClient("http://funding.test")
        with patch("requests.post", return_value=response(204)):
            assert asyncio.run(client.request_funding(USER)) == {}

    @pytest.mark.parametrize("status", [400, 429, 500])
    def test_non_2xx_is_rejected(self, status):
        client = FundingClient("http://funding.test")
        with patch("requests.post", return_value=response(status, {"error": "Already funded recently"})) as mock_post:
            with pytest.raises(FundingRequestRejected, match="Already funded recently") as excinfo:
                asyncio.run(client.request_funding(USER))

        assert excinfo.value.status_code == status
        assert mock_post.call_count == 1

    def test_transport_failure_is_surfaced_not_retried(self):
        client = FundingClient("http://funding.test")
        with patch("requests.post", side_effect=requests.ConnectionError("refused")) as mock_post:
            with pytest.raises(FundingRequestRejected, match="unreachable"):
                asyncio.run(client.request_funding(USER))
        assert mock_post.call_count == 1


class TestRelayClient:

    def test_submits_wire_format(self):
        client = RelayClient("http://relay.test")
        body = {"success": True, "hash": "0xrelay", "fee": "0.05", "netAmount": "9.95",
                "explorer": "https://sepolia.basescan.org/tx/0xrelay"}
        with patch("requests.post", return_value=response(200, body)) as mock_post:
            receipt = asyncio.run(client.submit(relay_request()))

        assert receipt.hash == "0xrelay"
        assert receipt.net_amount == "9.95"
        assert receipt.explorer.endswith("0xrelay")
        args, kwargs = mock_post.call_args
        assert args[0] == "http://relay.test/api/relay"
        assert kwargs["json"] == {
            "chain": "base",
            "from": USER,
            "to": RECIPIENT_CHECKSUM,
            "token": "USDC",
            "amount": "10",
            "signature": "0xsig",
        }

    def test_error_status(self):
        client = RelayClient("http://relay.test")
        with patch("requests.post", return_value=response(400, {"success": False, "error": "Rate limit exceeded"})):
            with pytest.raises(RelayError, match="Rate limit exceeded") as excinfo:
                asyncio.run(client.submit(relay_request()))
        assert excinfo.value.status_code == 400

    def test_missing_hash(self):
        client = RelayClient("http://relay.test")
        with patch("requests.post", return_value=response(200, {"success": True})):
            with pytest.raises(RelayError, match="no transaction hash"):
                asyncio.run(client.submit(relay_request()))

    def test_non_json_body(self):
        client = RelayClient("http://relay.test")
        with patch("requests.post", return_value=response(502, text="Bad Gateway")):
            with pytest.raises(RelayError, match="Bad Gateway"):
                asyncio.run(client.submit(relay_request()))

    def test_transport_failure(self):
        client = RelayClient("http://relay.test")
        with patch("requests.post", side_effect=requests.Timeout("read timed out")) as mock_post:
            with pytest.raises(RelayError, match="unreachable"):
                asyncio.run(client.submit(relay_request()))
        assert mock_post.call_count == 1
