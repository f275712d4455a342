"""
Ledger collaborator backed by a Starknet full node and a signing account.

Reads go through the node's JSON-RPC API; writes are signed locally by the
configured account, or signed as typed data and relayed by the paymaster when
execution options ask for sponsorship. Node errors are translated into
``LedgerError`` kinds from their JSON-RPC codes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from starknet_py.hash.selector import get_selector_from_name
from starknet_py.net.account.account import Account
from starknet_py.net.client_errors import ClientError
from starknet_py.net.client_models import Call, ResourceBoundsMapping
from starknet_py.net.full_node_client import FullNodeClient
from starknet_py.net.models import StarknetChainId
from starknet_py.net.signer.stark_curve_signer import KeyPair
from starknet_py.net.udc_deployer.deployer import Deployer

from starknet_mcp.config import StarknetMcpConfig
from starknet_mcp.errors import (
    ErrorKind,
    StarknetMcpError,
    UnconfiguredError,
    UpstreamUnavailableError,
)
from starknet_mcp.fees import ExecutionOptions
from starknet_mcp.starknet_api.felt import normalize_calldata, to_int
from starknet_mcp.starknet_api.paymaster import PaymasterClient
from starknet_mcp.starknet_api.types import (
    ContractCall,
    DeployResult,
    FeeEstimate,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

CHAIN_IDS = {
    "mainnet": StarknetChainId.MAINNET,
    "sepolia": StarknetChainId.SEPOLIA,
}

TRANSACTION_NOT_FOUND = 29

GAS_FIELDS = (
    "l1_gas_consumed",
    "l1_gas_price",
    "l2_gas_consumed",
    "l2_gas_price",
    "l1_data_gas_consumed",
    "l1_data_gas_price",
)

# Starknet JSON-RPC error codes.
RPC_ERROR_KINDS: Dict[int, ErrorKind] = {
    20: ErrorKind.INVALID_ARGUMENTS,  # CONTRACT_NOT_FOUND
    21: ErrorKind.INVALID_ARGUMENTS,  # ENTRYPOINT_NOT_FOUND
    28: ErrorKind.INVALID_ARGUMENTS,  # CLASS_HASH_NOT_FOUND
    40: ErrorKind.LEDGER_REJECTED,  # CONTRACT_ERROR
    41: ErrorKind.LEDGER_REJECTED,  # TRANSACTION_EXECUTION_ERROR
    52: ErrorKind.LEDGER_REJECTED,  # INVALID_TRANSACTION_NONCE
    53: ErrorKind.INSUFFICIENT_BALANCE,  # INSUFFICIENT_RESOURCES_FOR_VALIDATE
    54: ErrorKind.INSUFFICIENT_BALANCE,  # INSUFFICIENT_ACCOUNT_BALANCE
    55: ErrorKind.LEDGER_REJECTED,  # VALIDATION_FAILURE
}


class LedgerError(StarknetMcpError):
    """Raised when the node rejects a call or transaction."""


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _error_code(exc: ClientError) -> Optional[int]:
    try:
        return int(exc.code) if exc.code is not None else None
    except (TypeError, ValueError):
        return None


def _map_client_error(exc: ClientError) -> LedgerError:
    numeric = _error_code(exc)
    kind = RPC_ERROR_KINDS.get(numeric, ErrorKind.LEDGER_REJECTED)
    message = exc.message or str(exc)
    data = getattr(exc, "data", None)
    if data:
        message = f"{message}: {data}"
    return LedgerError(message, kind=kind, code=numeric)


def _to_call(call: ContractCall) -> Call:
    return Call(
        to_addr=to_int(call.contract_address),
        selector=get_selector_from_name(call.entrypoint),
        calldata=[to_int(item) for item in normalize_calldata(call.calldata)],
    )


class StarknetLedger:
    """Concrete ``Ledger`` over starknet-py's node client and account."""

    def __init__(
        self,
        client: FullNodeClient,
        account: Account,
        *,
        paymaster: Optional[PaymasterClient] = None,
    ) -> None:
        self._client = client
        self._account = account
        self._paymaster = paymaster

    @classmethod
    def from_config(
        cls, config: StarknetMcpConfig, *, paymaster: Optional[PaymasterClient] = None
    ) -> "StarknetLedger":
        client = FullNodeClient(node_url=config.rpc_url)
        account = Account(
            address=config.account_address,
            client=client,
            key_pair=KeyPair.from_private_key(int(config.private_key, 16)),
            chain=CHAIN_IDS[config.network],
        )
        return cls(client, account, paymaster=paymaster)

    @property
    def account_address(self) -> str:
        return hex(self._account.address)

    async def _guard(self, awaitable: Any) -> Any:
        try:
            return await awaitable
        except ClientError as exc:
            raise _map_client_error(exc) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            logger.warning("Starknet node unreachable")
            raise UpstreamUnavailableError("Node unreachable") from exc

    async def call(self, call: ContractCall) -> List[str]:
        result = await self._guard(self._client.call_contract(_to_call(call), block_number="latest"))
        return [hex(value) for value in result]

    async def execute(self, calls: Sequence[ContractCall], options: ExecutionOptions) -> str:
        if options.uses_paymaster:
            return await self._execute_with_paymaster(calls, options)
        response = await self._guard(
            self._account.execute_v3(calls=[_to_call(call) for call in calls], auto_estimate=True)
        )
        return hex(response.transaction_hash)

    async def _execute_with_paymaster(self, calls: Sequence[ContractCall], options: ExecutionOptions) -> str:
        if self._paymaster is None:
            raise UnconfiguredError("Paymaster is not configured.")
        parameters = options.paymaster_parameters() or {}
        payload_calls = [
            {
                "to": call.contract_address,
                "selector": hex(get_selector_from_name(call.entrypoint)),
                "calldata": normalize_calldata(call.calldata),
            }
            for call in calls
        ]
        build = await self._paymaster.build_transaction(self.account_address, payload_calls, parameters)
        typed_data = build.get("typed_data")
        if not isinstance(typed_data, dict):
            raise LedgerError("Paymaster build returned no typed data.", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
        signature = self._account.sign_message(typed_data)
        return await self._paymaster.execute_transaction(
            self.account_address, typed_data, [hex(part) for part in signature], parameters
        )

    async def deploy(
        self, class_hash: str, constructor_calldata: Sequence[str], options: ExecutionOptions
    ) -> DeployResult:
        deployment = Deployer(account_address=self._account.address).create_contract_deployment(
            class_hash=to_int(class_hash),
            calldata=[to_int(item) for item in normalize_calldata(constructor_calldata)],
        )
        udc_call = ContractCall(
            contract_address=hex(deployment.udc.to_addr),
            entrypoint="deployContract",
            calldata=[hex(item) for item in deployment.udc.calldata],
        )
        transaction_hash = await self.execute([udc_call], options)
        return DeployResult(transaction_hash=transaction_hash, contract_address=hex(deployment.address))

    async def estimate_invoke_fee(self, calls: Sequence[ContractCall]) -> FeeEstimate:
        # Signed with zero bounds; estimate_fee only simulates it.
        transaction = await self._guard(
            self._account.sign_invoke_v3(
                calls=[_to_call(call) for call in calls],
                resource_bounds=ResourceBoundsMapping.init_with_zeros(),
            )
        )
        estimate = await self._guard(self._account.estimate_fee(transaction))
        bounds: Dict[str, Any] = {}
        for name in GAS_FIELDS:
            value = getattr(estimate, name, None)
            if value is not None:
                bounds[name] = hex(value)
        return FeeEstimate(
            overall_fee=int(estimate.overall_fee),
            unit=_enum_value(getattr(estimate, "unit", None)) or "FRI",
            resource_bounds=bounds or None,
        )

    async def get_transaction_status(self, transaction_hash: str) -> TransactionStatus:
        try:
            status = await self._client.get_transaction_status(tx_hash=to_int(transaction_hash))
        except ClientError as exc:
            if _error_code(exc) == TRANSACTION_NOT_FOUND:
                # Freshly submitted transactions can be unknown to the node for a moment.
                return TransactionStatus(finality_status="NOT_RECEIVED")
            raise _map_client_error(exc) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            logger.warning("Starknet node unreachable")
            raise UpstreamUnavailableError("Node unreachable") from exc
        return TransactionStatus(
            finality_status=_enum_value(status.finality_status) or "RECEIVED",
            execution_status=_enum_value(getattr(status, "execution_status", None)),
            failure_reason=getattr(status, "failure_reason", None),
        )

    async def aclose(self) -> None:
        if self._paymaster is not None:
            await self._paymaster.aclose()
