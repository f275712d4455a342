"""
Configuration helpers for the Starknet MCP server.

Settings come from the environment. Required values (RPC URL, account address,
signing key) are validated up front by ``load_config`` so the server refuses to
start with a broken setup. The private key is never logged or returned to
callers.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlparse

DEFAULT_NETWORK = "mainnet"
SUPPORTED_NETWORKS = ("mainnet", "sepolia")
DEFAULT_AVNU_BASE_URL = "https://starknet.api.avnu.fi"
DEFAULT_AVNU_PAYMASTER_URL = "https://starknet.paymaster.avnu.fi"
DEFAULT_TIMEOUT = 10.0
DEFAULT_FINALITY_POLL_INTERVAL = 2.0
DEFAULT_RATE_LIMIT_QPS = 5.0
DEFAULT_SLIPPAGE = 0.01
FEE_TOKEN_DECIMALS = 18

LOG_LEVEL = os.getenv("STARKNET_MCP_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("STARKNET_MCP_LOG_FORMAT", "json")  # json or plain

HEX_ADDRESS_REGEX = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""

    def __init__(self, problems: List[str]) -> None:
        super().__init__("Invalid configuration: " + "; ".join(problems))
        self.problems = problems


def _load_float(raw: Optional[str], default: float) -> float:
    if raw:
        try:
            return float(raw)
        except ValueError:
            return default
    return default


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(slots=True)
class StarknetMcpConfig:
    """Runtime configuration for ledger, aggregator and paymaster access."""

    rpc_url: str
    account_address: str
    private_key: str = field(repr=False)
    network: str = DEFAULT_NETWORK
    identity_registry_address: Optional[str] = None
    reputation_registry_address: Optional[str] = None
    validation_registry_address: Optional[str] = None
    avnu_base_url: str = DEFAULT_AVNU_BASE_URL
    avnu_paymaster_url: str = DEFAULT_AVNU_PAYMASTER_URL
    avnu_api_key: Optional[str] = field(default=None, repr=False)
    timeout: float = DEFAULT_TIMEOUT
    finality_poll_interval: float = DEFAULT_FINALITY_POLL_INTERVAL
    rate_limit_qps: float = DEFAULT_RATE_LIMIT_QPS
    per_tool_rate_limits: Dict[str, float] = field(default_factory=dict)
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT
    a2a_agent_id: Optional[str] = None
    a2a_base_url: Optional[str] = None

    @property
    def has_api_credentials(self) -> bool:
        return bool(self.avnu_api_key)


def _optional(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_rate_limits(raw: Optional[str]) -> Dict[str, float]:
    """Parse ``tool=qps`` pairs separated by commas; malformed pairs are skipped."""
    limits: Dict[str, float] = {}
    if not raw:
        return limits
    for pair in raw.split(","):
        name, _, value = pair.partition("=")
        name = name.strip()
        if not name or not value.strip():
            continue
        try:
            limits[name] = float(value)
        except ValueError:
            continue
    return limits


def load_config(environ: Optional[Mapping[str, str]] = None) -> StarknetMcpConfig:
    """
    Build and validate the configuration.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``).

    Raises:
        ConfigError: listing every missing or malformed setting.
    """
    env = os.environ if environ is None else environ
    problems: List[str] = []

    rpc_url = _optional(env, "STARKNET_RPC_URL")
    account_address = _optional(env, "STARKNET_ACCOUNT_ADDRESS")
    private_key = _optional(env, "STARKNET_PRIVATE_KEY")

    if rpc_url is None:
        problems.append("STARKNET_RPC_URL is required")
    elif not _is_url(rpc_url):
        problems.append("STARKNET_RPC_URL must be an http(s) URL")
    if account_address is None:
        problems.append("STARKNET_ACCOUNT_ADDRESS is required")
    elif not HEX_ADDRESS_REGEX.fullmatch(account_address):
        problems.append("STARKNET_ACCOUNT_ADDRESS must be a 0x-prefixed hex address")
    if private_key is None:
        problems.append("STARKNET_PRIVATE_KEY is required")
    elif not HEX_ADDRESS_REGEX.fullmatch(private_key):
        # Never echo the key itself.
        problems.append("STARKNET_PRIVATE_KEY must be 0x-prefixed hex")

    network = (_optional(env, "STARKNET_NETWORK") or DEFAULT_NETWORK).lower()
    if network not in SUPPORTED_NETWORKS:
        problems.append(f"STARKNET_NETWORK must be one of {', '.join(SUPPORTED_NETWORKS)}")

    registries: Dict[str, Optional[str]] = {}
    for name in (
        "STARKNET_IDENTITY_REGISTRY_ADDRESS",
        "STARKNET_REPUTATION_REGISTRY_ADDRESS",
        "STARKNET_VALIDATION_REGISTRY_ADDRESS",
    ):
        value = _optional(env, name)
        if value is not None and not HEX_ADDRESS_REGEX.fullmatch(value):
            problems.append(f"{name} must be a 0x-prefixed hex address")
        registries[name] = value

    urls: Dict[str, str] = {}
    for name, default in (
        ("AVNU_BASE_URL", DEFAULT_AVNU_BASE_URL),
        ("AVNU_PAYMASTER_URL", DEFAULT_AVNU_PAYMASTER_URL),
    ):
        value = _optional(env, name) or default
        if not _is_url(value):
            problems.append(f"{name} must be an http(s) URL")
        urls[name] = value.rstrip("/")

    a2a_base_url = _optional(env, "A2A_BASE_URL")
    if a2a_base_url is not None and not _is_url(a2a_base_url):
        problems.append("A2A_BASE_URL must be an http(s) URL")

    poll_interval = _load_float(
        env.get("STARKNET_MCP_FINALITY_POLL_INTERVAL"), DEFAULT_FINALITY_POLL_INTERVAL
    )
    if poll_interval < 0:
        problems.append("STARKNET_MCP_FINALITY_POLL_INTERVAL must be >= 0")
    rate_limit = _load_float(env.get("STARKNET_MCP_RATE_LIMIT_QPS"), DEFAULT_RATE_LIMIT_QPS)
    if rate_limit <= 0:
        problems.append("STARKNET_MCP_RATE_LIMIT_QPS must be > 0")

    if problems:
        raise ConfigError(problems)

    return StarknetMcpConfig(
        rpc_url=rpc_url,  # type: ignore[arg-type]
        account_address=account_address,  # type: ignore[arg-type]
        private_key=private_key,  # type: ignore[arg-type]
        network=network,
        identity_registry_address=registries["STARKNET_IDENTITY_REGISTRY_ADDRESS"],
        reputation_registry_address=registries["STARKNET_REPUTATION_REGISTRY_ADDRESS"],
        validation_registry_address=registries["STARKNET_VALIDATION_REGISTRY_ADDRESS"],
        avnu_base_url=urls["AVNU_BASE_URL"],
        avnu_paymaster_url=urls["AVNU_PAYMASTER_URL"],
        avnu_api_key=_optional(env, "AVNU_API_KEY"),
        timeout=_load_float(env.get("STARKNET_MCP_HTTP_TIMEOUT"), DEFAULT_TIMEOUT),
        finality_poll_interval=poll_interval,
        rate_limit_qps=rate_limit,
        per_tool_rate_limits=_parse_rate_limits(env.get("STARKNET_MCP_TOOL_RATE_LIMITS")),
        log_level=_optional(env, "STARKNET_MCP_LOG_LEVEL") or LOG_LEVEL,
        log_format=_optional(env, "STARKNET_MCP_LOG_FORMAT") or LOG_FORMAT,
        a2a_agent_id=_optional(env, "A2A_AGENT_ID"),
        a2a_base_url=a2a_base_url.rstrip("/") if a2a_base_url else None,
    )
