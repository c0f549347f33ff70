# tests/integration_test_gasless_relay.py
# Runs the full flow against a live testnet plus running funding and relay services.
# Requires GASLESS_INTEGRATION=1, GASLESS_SIGNER_KEY and GASLESS_RECIPIENT in the environment.

import asyncio
import os

import pytest

from config import load_config
from tools.gasless_relay import GaslessRelayTool
from tools.signer import LocalAccountSigner


@pytest.mark.skipif(not os.getenv("GASLESS_INTEGRATION"), reason="needs a testnet, funding and relay services")
def test_gasless_transfer_on_testnet():
    config = load_config()
    tool = GaslessRelayTool(config)
    signer = LocalAccountSigner(config.signer_private_key, tool.chain.web3, config.network_config.chain_id)

    outcome = asyncio.run(tool.run(f"0.01 USDC to {os.environ['GASLESS_RECIPIENT']}", signer.address, signer))

    assert outcome.status == "done", outcome.error_message
    assert outcome.tx_hash
