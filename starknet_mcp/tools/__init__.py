"""LLM-facing tool implementations."""

from .account import get_balance, transfer
from .contracts import call_contract, deploy_contract, estimate_fee, invoke_contract
from .swap import get_quote, swap
from .identity import get_agent_card, get_agent_info, get_task_status, register_agent
from .context import ToolContext
from . import validators

__all__ = [
    "get_balance",
    "transfer",
    "call_contract",
    "invoke_contract",
    "estimate_fee",
    "deploy_contract",
    "get_quote",
    "swap",
    "register_agent",
    "get_agent_info",
    "get_agent_card",
    "get_task_status",
    "ToolContext",
    "validators",
]
