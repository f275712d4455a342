"""Clients for Starknet-side collaborators (aggregator, paymaster, registries)."""

from .avnu import AggregatorError, AvnuClient
from .identity import IdentityRegistryClient
from .paymaster import PaymasterClient, PaymasterError
from .types import (
    ContractCall,
    DeployResult,
    FeeEstimate,
    Ledger,
    SwapAggregator,
    TransactionStatus,
)

__all__ = [
    "AvnuClient",
    "AggregatorError",
    "PaymasterClient",
    "PaymasterError",
    "IdentityRegistryClient",
    "ContractCall",
    "DeployResult",
    "FeeEstimate",
    "Ledger",
    "SwapAggregator",
    "TransactionStatus",
]
