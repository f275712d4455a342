"""
Starknet MCP server package.

This package exposes LLM-friendly tools for balances, transfers, contract
calls, swaps, fee estimation, deployment and agent identity on Starknet. See
DESIGN.md for full details.
"""

__all__ = ["config", "errors", "mcp"]
