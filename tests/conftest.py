import pytest

from config import GaslessNetworkConfig
from tests.doubles import FakeFunding, FakeRelay
from tools.chain import ChainClient
from tools.gasless_relay import GaslessRelayTool


@pytest.fixture
def config():
    return GaslessNetworkConfig(
        network="base-sepolia",
        rpc_url="http://rpc.test",
        funding_api="http://funding.test",
        relay_api="http://relay.test",
        funding_poll_interval=0.0,
        funding_poll_attempts=10,
    )


@pytest.fixture
def calls():
    return []


@pytest.fixture
def build_tool(config, calls):
    def _build(web3, funding=None, relay=None, cfg=None):
        cfg = cfg or config
        return GaslessRelayTool(
            cfg,
            chain=ChainClient(web3, cfg.token.address),
            funding=funding or FakeFunding(calls),
            relay=relay or FakeRelay(calls),
        )

    return _build
