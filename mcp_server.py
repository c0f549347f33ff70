import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

from fastmcp import FastMCP

from config import GaslessNetworkConfig, load_config
from tools.errors import MalformedIntent
from tools.gasless_relay import GaslessRelayTool
from tools.signer import LocalAccountSigner, Signer

logger = logging.getLogger(__name__)


def make_handlers(tool: GaslessRelayTool, signer: Signer) -> Dict[str, Callable[..., Awaitable[Dict[str, Any]]]]:
    async def parse_transfer_intent(intent: str) -> Dict[str, Any]:
        """Parse '<amount> USDC to <address>' into a structured transfer."""
        try:
            parsed = tool.parse(intent)
        except MalformedIntent as exc:
            return {"ok": False, "error": exc.to_dict()}
        return {"ok": True, **parsed.model_dump(mode="json")}

    async def execute_gasless_transfer(intent: str, user_address: Optional[str] = None) -> Dict[str, Any]:
        """Send USDC without holding ETH: funds approve() if needed, signs and relays."""
        outcome = await tool.run(intent, user_address or signer.address, signer)
        return outcome.model_dump(mode="json")

    return {
        "parse_transfer_intent": parse_transfer_intent,
        "execute_gasless_transfer": execute_gasless_transfer,
    }


def build_server(config: GaslessNetworkConfig, *, tool: Optional[GaslessRelayTool] = None,
                 signer: Optional[Signer] = None) -> FastMCP:
    tool = tool or GaslessRelayTool(config)
    if signer is None:
        if not config.signer_private_key:
            raise ValueError("GASLESS_SIGNER_KEY is required to run the MCP server")
        signer = LocalAccountSigner(config.signer_private_key, tool.chain.web3, config.network_config.chain_id)

    mcp = FastMCP(name="Gasless USDC Relay MCP")
    for name, handler in make_handlers(tool, signer).items():
        mcp.tool(handler, name=name)
    return mcp


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = load_config()
    mcp = build_server(config)
    logger.info("Serving gasless relay tools for %s", config.network_config.name)
    mcp.run(
        transport="http",
        host=os.getenv("MCP_HOST", "0.0.0.0"),
        port=int(os.getenv("MCP_PORT", "8000")),
        path="/mcp",
    )


if __name__ == "__main__":
    main()
