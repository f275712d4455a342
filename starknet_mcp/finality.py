"""Block until a submitted transaction reaches finality."""

from __future__ import annotations

import asyncio
import logging

from starknet_mcp.errors import LedgerRejectedError
from starknet_mcp.starknet_api.types import Ledger, TransactionStatus

logger = logging.getLogger(__name__)


async def wait_for_finality(
    ledger: Ledger, transaction_hash: str, *, poll_interval: float = 2.0
) -> TransactionStatus:
    """
    Poll the ledger until the transaction is final.

    The first read happens immediately, so an already-final transaction costs
    exactly one status read. There is no local deadline; transport timeouts
    bound each read.

    Raises:
        LedgerRejectedError: the transaction was rejected or reverted.
    """
    polls = 0
    while True:
        status = await ledger.get_transaction_status(transaction_hash)
        polls += 1
        if status.is_final:
            break
        logger.debug(
            "tx=%s finality=%s polls=%d", transaction_hash, status.finality_status, polls
        )
        await asyncio.sleep(poll_interval)

    if not status.succeeded:
        reason = status.failure_reason or f"Transaction {status.execution_status or status.finality_status}"
        raise LedgerRejectedError(reason, code=status.finality_status)
    return status
