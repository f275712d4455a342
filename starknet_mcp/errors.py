"""
Error taxonomy for the Starknet MCP server.

Every collaborator (ledger, aggregator, paymaster, identity registry) raises a
``StarknetMcpError`` subclass carrying an ``ErrorKind``. The dispatcher turns
any exception into a ``NormalizedError`` via ``normalize_error`` so callers can
match on ``kind`` instead of parsing upstream text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    UNKNOWN_TOKEN = "UnknownToken"
    INVALID_AMOUNT = "InvalidAmount"
    NO_LIQUIDITY = "NoLiquidity"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"
    QUOTE_EXPIRED = "QuoteExpired"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    LEDGER_REJECTED = "LedgerRejected"
    UNCONFIGURED = "Unconfigured"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"


ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.UNKNOWN_TOOL: "Unknown tool.",
    ErrorKind.INVALID_ARGUMENTS: "Invalid arguments for this tool.",
    ErrorKind.UNKNOWN_TOKEN: "Unknown token. Use a supported symbol or a 0x-prefixed token address.",
    ErrorKind.INVALID_AMOUNT: "Invalid amount. Use a non-negative decimal string such as '1.5'.",
    ErrorKind.NO_LIQUIDITY: "No swap routes available for this token pair. The pair may not have liquidity.",
    ErrorKind.SLIPPAGE_EXCEEDED: "Slippage exceeded. Try increasing slippage tolerance.",
    ErrorKind.QUOTE_EXPIRED: "Quote expired. Please retry the operation.",
    ErrorKind.INSUFFICIENT_BALANCE: "Insufficient token balance for this operation.",
    ErrorKind.LEDGER_REJECTED: "Transaction rejected by the network.",
    ErrorKind.UNCONFIGURED: "Required configuration is missing for this operation.",
    ErrorKind.UPSTREAM_UNAVAILABLE: "Upstream service unreachable.",
}


class StarknetMcpError(Exception):
    """Base exception; ``kind`` selects the user-facing category."""

    kind: ErrorKind = ErrorKind.LEDGER_REJECTED

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        code: Optional[str | int] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.code = code
        self.status_code = status_code


class UnknownToolError(StarknetMcpError):
    kind = ErrorKind.UNKNOWN_TOOL


class InvalidArgumentsError(StarknetMcpError):
    kind = ErrorKind.INVALID_ARGUMENTS


class UnknownTokenError(StarknetMcpError):
    kind = ErrorKind.UNKNOWN_TOKEN


class InvalidAmountError(StarknetMcpError):
    kind = ErrorKind.INVALID_AMOUNT


class NoLiquidityError(StarknetMcpError):
    kind = ErrorKind.NO_LIQUIDITY


class SlippageExceededError(StarknetMcpError):
    kind = ErrorKind.SLIPPAGE_EXCEEDED


class QuoteExpiredError(StarknetMcpError):
    kind = ErrorKind.QUOTE_EXPIRED


class InsufficientBalanceError(StarknetMcpError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class LedgerRejectedError(StarknetMcpError):
    kind = ErrorKind.LEDGER_REJECTED


class UnconfiguredError(StarknetMcpError):
    kind = ErrorKind.UNCONFIGURED


class UpstreamUnavailableError(StarknetMcpError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


# Ordered: the first matching needle wins.
_TEXT_SIGNALS = (
    (ErrorKind.NO_LIQUIDITY, ("INSUFFICIENT_LIQUIDITY", "insufficient liquidity", "no quotes available")),
    (ErrorKind.SLIPPAGE_EXCEEDED, ("SLIPPAGE", "slippage", "insufficient tokens received")),
    (ErrorKind.QUOTE_EXPIRED, ("QUOTE_EXPIRED", "quote expired")),
    (
        ErrorKind.INSUFFICIENT_BALANCE,
        ("INSUFFICIENT_BALANCE", "insufficient balance", "u256_sub overflow", "exceeds balance"),
    ),
)


def classify_failure_text(text: Optional[str]) -> Optional[ErrorKind]:
    """
    Classify free-form upstream failure text.

    Only used where a collaborator gives nothing but a message (revert reasons,
    aggregator error strings). Matching on wording is fragile: upstream text
    changes silently turn a specific kind into the generic fallback.
    """
    if not text:
        return None
    lowered = text.lower()
    for kind, needles in _TEXT_SIGNALS:
        for needle in needles:
            if needle.lower() in lowered:
                return kind
    return None


@dataclass(frozen=True, slots=True)
class NormalizedError:
    kind: ErrorKind
    message: str
    original: Optional[str] = None

    def to_dict(self, tool: Optional[str]) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "error": True,
            "kind": self.kind.value,
            "message": self.message,
            "tool": tool,
        }
        if self.original is not None:
            payload["originalError"] = self.original
        return payload


def normalize_error(exc: BaseException) -> NormalizedError:
    """Map any exception onto the fixed taxonomy, keeping the raw text when it differs."""
    raw = str(exc) or exc.__class__.__name__
    if isinstance(exc, StarknetMcpError):
        kind = exc.kind
        if kind is ErrorKind.LEDGER_REJECTED:
            # Reverts often carry the real cause only in their text.
            kind = classify_failure_text(raw) or kind
    else:
        kind = classify_failure_text(raw) or ErrorKind.LEDGER_REJECTED
    message = ERROR_MESSAGES[kind]
    return NormalizedError(kind=kind, message=message, original=raw if raw != message else None)
