"""Minimal sanity checks for the Starknet MCP tools against a live node."""

from __future__ import annotations

import asyncio
import json
import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from starknet_mcp.config import load_config  # noqa: E402
from starknet_mcp.server import build_dispatcher  # noqa: E402

# Tokens to read balances for; override via env (comma separated).
SAMPLE_TOKENS = [t.strip() for t in os.getenv("STARKNET_SAMPLE_TOKENS", "ETH,STRK").split(",") if t.strip()]
# Opt-in to an aggregator quote in the sanity check (needs network access to avnu).
RUN_QUOTE = os.getenv("RUN_QUOTE_SANITY", "false").lower() in {"1", "true", "yes"}
# Optional agent id for an identity-registry lookup.
SAMPLE_AGENT_ID = os.getenv("STARKNET_SAMPLE_AGENT_ID")


def show(label: str, envelope) -> None:
    print(f"{label}:", json.dumps(envelope.to_dict(), indent=2))


async def main() -> None:
    dispatcher = build_dispatcher(load_config())
    try:
        print("Tools:", [tool["name"] for tool in dispatcher.list_tools()])
        for token in SAMPLE_TOKENS:
            show(f"Balance {token}", await dispatcher.dispatch("get_balance", {"token": token}))

        if RUN_QUOTE:
            show(
                "Quote ETH->USDC (0.001)",
                await dispatcher.dispatch("get_quote", {"sell_token": "ETH", "buy_token": "USDC", "amount": "0.001"}),
            )

        if SAMPLE_AGENT_ID:
            show("Agent info", await dispatcher.dispatch("get_agent_info", {"agent_id": SAMPLE_AGENT_ID}))
    finally:
        await dispatcher.aclose()


if __name__ == "__main__":
    asyncio.run(main())
