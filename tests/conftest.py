import os
import sys

import pytest

# Ensure repository root is on sys.path before importing project modules.
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from starknet_mcp.a2a import A2AAdapter  # noqa: E402
from starknet_mcp.metrics import default_metrics  # noqa: E402
from starknet_mcp.quotes import QuoteBroker  # noqa: E402
from starknet_mcp.starknet_api.identity import IdentityRegistryClient  # noqa: E402
from starknet_mcp.starknet_api.types import (  # noqa: E402
    DeployResult,
    FeeEstimate,
    TransactionStatus,
)
from starknet_mcp.tokens import MAINNET_TOKENS, TokenRegistry  # noqa: E402
from starknet_mcp.tools.context import ToolContext  # noqa: E402

ACCOUNT = "0x0123"
TX_HASH = "0xabc"
REGISTRY = "0x777"
FINAL = TransactionStatus("ACCEPTED_ON_L2", "SUCCEEDED")


class StubLedger:
    """In-memory ledger; ``results`` maps entrypoint -> felts, exception, or callable(call)."""

    def __init__(self, results=None, statuses=None, fee=None, execute_error=None):
        self.account_address = ACCOUNT
        self.results = dict(results or {})
        self.statuses = list(statuses or [FINAL])
        self.fee = fee or FeeEstimate(overall_fee=1_500_000_000_000_000, unit="FRI")
        self.execute_error = execute_error
        self.calls = []
        self.executed = []
        self.deployed = []
        self.status_reads = 0
        self.closed = False

    async def call(self, call):
        self.calls.append(call)
        result = self.results.get(call.entrypoint, ["0x0"])
        if callable(result):
            result = result(call)
        if isinstance(result, Exception):
            raise result
        return result

    async def execute(self, calls, options):
        self.executed.append((list(calls), options))
        if self.execute_error is not None:
            raise self.execute_error
        return TX_HASH

    async def deploy(self, class_hash, constructor_calldata, options):
        self.deployed.append((class_hash, list(constructor_calldata), options))
        return DeployResult(transaction_hash=TX_HASH, contract_address="0xdead")

    async def estimate_invoke_fee(self, calls):
        self.calls.extend(calls)
        return self.fee

    async def get_transaction_status(self, transaction_hash):
        self.status_reads += 1
        index = min(self.status_reads, len(self.statuses)) - 1
        status = self.statuses[index]
        if isinstance(status, Exception):
            raise status
        return status

    async def aclose(self):
        self.closed = True


class StubAggregator:
    def __init__(self, quotes=None, calls=None, build_error=None):
        self.quotes = list(quotes or [])
        self.calls = list(calls or [])
        self.build_error = build_error
        self.quote_requests = []
        self.build_requests = []
        self.closed = False

    async def get_quotes(self, sell_token, buy_token, sell_amount, taker_address):
        self.quote_requests.append((sell_token, buy_token, sell_amount, taker_address))
        return list(self.quotes)

    async def build_swap_calls(self, quote_id, taker_address, slippage, *, include_approve=True):
        self.build_requests.append((quote_id, taker_address, slippage, include_approve))
        if self.build_error is not None:
            raise self.build_error
        return list(self.calls)

    async def aclose(self):
        self.closed = True


def make_context(ledger, aggregator=None, *, has_api_credentials=False, with_identity=True):
    identity = IdentityRegistryClient(ledger, REGISTRY) if with_identity else None
    return ToolContext(
        ledger=ledger,
        tokens=TokenRegistry(MAINNET_TOKENS),
        broker=QuoteBroker(aggregator or StubAggregator(), ledger),
        identity=identity,
        a2a=A2AAdapter(ledger, identity) if identity else None,
        has_api_credentials=has_api_credentials,
        poll_interval=0,
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    default_metrics.reset()
    yield
    default_metrics.reset()


@pytest.fixture
def ledger():
    return StubLedger()


@pytest.fixture
def aggregator():
    return StubAggregator()


@pytest.fixture
def context(ledger, aggregator):
    return make_context(ledger, aggregator)
