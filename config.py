import os
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class TokenConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    decimals: int


class PoolConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    fee: int
    token0: str
    token1: str


class NetworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    chain_id: int
    relay_chain: str               # chain name the relay service expects
    router_address: str            # relay-operated spender for approvals
    explorer: str
    tokens: Dict[str, TokenConfig]
    pools: Dict[str, PoolConfig] = {}

    def token(self, symbol: str) -> TokenConfig:
        try:
            return self.tokens[symbol.upper()]
        except KeyError:
            raise ValueError(f"Token {symbol} is not configured on {self.name}") from None

    def explorer_tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer.rstrip('/')}/tx/{tx_hash}"


NETWORKS: Dict[str, NetworkConfig] = {
    "eth-sepolia": NetworkConfig(
        name="Ethereum Sepolia",
        chain_id=11155111,
        relay_chain="ethereum-sepolia",
        router_address="0x3bFA4769FB09eefC5a80d6E87c3B9C650f7Ae48E",
        explorer="https://sepolia.etherscan.io",
        tokens={
            "ETH": TokenConfig(symbol="ETH", address="0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14", decimals=18),
            "USDC": TokenConfig(symbol="USDC", address="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", decimals=6),
        },
        pools={
            "USDC-ETH": PoolConfig(
                address="0xC31a3878E3B0739866F8fC52b97Ae9611aBe427c",
                fee=3000,
                token0="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
                token1="0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14",
            ),
        },
    ),
    "arb-sepolia": NetworkConfig(
        name="Arbitrum Sepolia",
        chain_id=421614,
        relay_chain="arbitrum-sepolia",
        router_address="0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD",
        explorer="https://sepolia.arbiscan.io",
        tokens={
            "ETH": TokenConfig(symbol="ETH", address="0x980B62Da83eFf3D4576C647993b0c1D7faf17c73", decimals=18),
            "USDC": TokenConfig(symbol="USDC", address="0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d", decimals=6),
        },
    ),
    "base-sepolia": NetworkConfig(
        name="Base Sepolia",
        chain_id=84532,
        relay_chain="base",
        router_address="0x4648a43B2C14Da09FdF82B161150d3F634f40491",
        explorer="https://sepolia.basescan.org",
        tokens={
            "ETH": TokenConfig(symbol="ETH", address="0x4200000000000000000000000000000000000006", decimals=18),
            "USDC": TokenConfig(symbol="USDC", address="0x036CbD53842c5426634e7929541eC2318f3dCF7e", decimals=6),
        },
    ),
}

DEFAULT_RPC_URLS = {
    "eth-sepolia": "https://rpc.sepolia.org",
    "arb-sepolia": "https://sepolia-rollup.arbitrum.io/rpc",
    "base-sepolia": "https://sepolia.base.org",
}


class GaslessNetworkConfig(BaseModel):
    network: str = "base-sepolia"
    rpc_url: Optional[str] = None
    funding_api: str = "http://localhost:3000"
    relay_api: str = "http://localhost:3000"
    relay_spender: Optional[str] = None        # defaults to the network router
    token_symbol: str = "USDC"
    min_user_eth_reserve: Decimal = Decimal("0.001")     # below this the user cannot pay for approve()
    funded_balance_threshold: Decimal = Decimal("0.0005")
    funding_poll_interval: float = 2.0
    funding_poll_attempts: int = 10
    approval_headroom: int = 2
    wait_for_approval_receipt: bool = True
    approval_receipt_timeout: float = 120.0
    rpc_timeout: float = 15.0
    http_timeout: float = 10.0
    signer_private_key: Optional[str] = None   # only used by mcp_server (keep it secret!)

    @property
    def network_config(self) -> NetworkConfig:
        try:
            return NETWORKS[self.network]
        except KeyError:
            raise ValueError(f"Unknown network {self.network!r}, expected one of {sorted(NETWORKS)}") from None

    @property
    def token(self) -> TokenConfig:
        return self.network_config.token(self.token_symbol)

    @property
    def spender(self) -> str:
        return self.relay_spender or self.network_config.router_address

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or DEFAULT_RPC_URLS[self.network]


_ENV_FIELDS = {
    "GASLESS_NETWORK": "network",
    "GASLESS_RPC_URL": "rpc_url",
    "GASLESS_FUNDING_API": "funding_api",
    "GASLESS_RELAY_API": "relay_api",
    "GASLESS_RELAY_SPENDER": "relay_spender",
    "GASLESS_TOKEN": "token_symbol",
    "GASLESS_MIN_USER_ETH": "min_user_eth_reserve",
    "GASLESS_FUNDED_THRESHOLD_ETH": "funded_balance_threshold",
    "GASLESS_POLL_INTERVAL": "funding_poll_interval",
    "GASLESS_POLL_ATTEMPTS": "funding_poll_attempts",
    "GASLESS_WAIT_FOR_APPROVAL": "wait_for_approval_receipt",
    "GASLESS_SIGNER_KEY": "signer_private_key",
}


def load_config(environ: Optional[Dict[str, str]] = None) -> GaslessNetworkConfig:
    """Build the process-wide configuration once, from environment variables."""
    env = os.environ if environ is None else environ
    values = {field: env[name] for name, field in _ENV_FIELDS.items() if env.get(name)}
    config = GaslessNetworkConfig(**values)
    # fail fast on an unknown network
    config.network_config
    return config
