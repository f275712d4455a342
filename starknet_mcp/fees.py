"""Fee sponsorship (paymaster) selection for state-changing calls."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

PAYMASTER_PARAMS_VERSION = "0x1"


class FeeMode(str, Enum):
    NONE = "none"
    SPONSORED = "sponsored"
    GAS_TOKEN = "gas_token"


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    mode: FeeMode = FeeMode.NONE
    gas_token: Optional[str] = None

    @property
    def uses_paymaster(self) -> bool:
        return self.mode is not FeeMode.NONE

    @property
    def sponsored(self) -> bool:
        return self.mode is FeeMode.SPONSORED

    @property
    def gasless(self) -> bool:
        return self.mode is FeeMode.GAS_TOKEN

    def paymaster_parameters(self) -> Optional[Dict[str, Any]]:
        """SNIP-29 execution parameters, or None when the caller pays native gas."""
        if self.mode is FeeMode.SPONSORED:
            fee_mode: Dict[str, Any] = {"mode": "sponsored"}
        elif self.mode is FeeMode.GAS_TOKEN:
            fee_mode = {"mode": "default", "gas_token": self.gas_token}
        else:
            return None
        return {"version": PAYMASTER_PARAMS_VERSION, "fee_mode": fee_mode}


NO_SPONSORSHIP = ExecutionOptions()


def select_execution_options(
    has_api_credentials: bool, explicit_gas_token: Optional[str] = None
) -> ExecutionOptions:
    """
    Decide how gas is paid.

    An explicit gas token always wins over blanket sponsorship: a caller who
    names a token wants gas metered in it even when an API key would cover it.
    """
    if explicit_gas_token:
        return ExecutionOptions(mode=FeeMode.GAS_TOKEN, gas_token=explicit_gas_token)
    if has_api_credentials:
        return ExecutionOptions(mode=FeeMode.SPONSORED)
    return NO_SPONSORSHIP
