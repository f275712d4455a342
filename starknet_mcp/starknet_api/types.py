"""Collaborator contracts shared by the ledger, aggregator and registry adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from starknet_mcp.fees import ExecutionOptions

FINAL_STATUSES = frozenset({"ACCEPTED_ON_L2", "ACCEPTED_ON_L1", "REJECTED"})


@dataclass(frozen=True, slots=True)
class ContractCall:
    contract_address: str
    entrypoint: str
    calldata: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TransactionStatus:
    finality_status: str
    execution_status: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.finality_status in FINAL_STATUSES or self.execution_status == "REVERTED"

    @property
    def succeeded(self) -> bool:
        return self.is_final and self.finality_status != "REJECTED" and self.execution_status != "REVERTED"


@dataclass(frozen=True, slots=True)
class FeeEstimate:
    overall_fee: int
    unit: str = "FRI"
    resource_bounds: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, slots=True)
class DeployResult:
    transaction_hash: str
    contract_address: str


class Ledger(Protocol):
    """Read/write capabilities consumed from the Starknet node and signing account."""

    @property
    def account_address(self) -> str: ...

    async def call(self, call: ContractCall) -> List[str]: ...

    async def execute(self, calls: Sequence[ContractCall], options: ExecutionOptions) -> str: ...

    async def deploy(
        self, class_hash: str, constructor_calldata: Sequence[str], options: ExecutionOptions
    ) -> DeployResult: ...

    async def estimate_invoke_fee(self, calls: Sequence[ContractCall]) -> FeeEstimate: ...

    async def get_transaction_status(self, transaction_hash: str) -> TransactionStatus: ...

    async def aclose(self) -> None: ...


class SwapAggregator(Protocol):
    """Quote oracle: ranked quotes in, executable calls out."""

    async def get_quotes(
        self, sell_token: str, buy_token: str, sell_amount: int, taker_address: str
    ) -> List[Dict[str, Any]]: ...

    async def build_swap_calls(
        self, quote_id: str, taker_address: str, slippage: float, *, include_approve: bool = True
    ) -> List[ContractCall]: ...

    async def aclose(self) -> None: ...
