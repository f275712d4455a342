"""
Agent-to-Agent (A2A) view over on-chain identity and transactions.

Agent cards are assembled from identity-registry metadata plus optional
reputation and validation registries. Tasks are not stored anywhere: a task id
is a transaction hash and its state is read straight from the ledger on every
query.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from starknet_mcp.errors import InvalidArgumentsError
from starknet_mcp.starknet_api.felt import join_u256, split_u256, to_int
from starknet_mcp.starknet_api.identity import IdentityRegistryClient
from starknet_mcp.starknet_api.types import ContractCall, Ledger, TransactionStatus

logger = logging.getLogger(__name__)

A2A_CONTEXT = "https://a2a-protocol.org/schema/1.0"
AGENT_CARD_VERSION = "1.0"
CARD_METADATA_KEYS = ("agentName", "name", "description", "a2aEndpoint", "capabilities")


class TaskState(str, Enum):
    SUBMITTED = "submitted"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"
    # Part of the protocol; a ledger read never yields it.
    CANCELED = "canceled"


@dataclass(slots=True)
class AgentCard:
    name: str
    description: str
    url: Optional[str]
    version: str
    skills: List[str]
    starknet_identity: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "version": self.version,
            "skills": list(self.skills),
            "starknetIdentity": dict(self.starknet_identity),
        }


@dataclass(slots=True)
class Task:
    id: str
    state: TaskState
    prompt: str
    transaction_hash: str
    created_at: float
    updated_at: float
    result: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "state": self.state.value,
            "prompt": self.prompt,
            "transactionHash": self.transaction_hash,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.result is not None:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        return payload


def task_state_for(status: TransactionStatus) -> TaskState:
    if not status.is_final:
        return TaskState.WORKING
    return TaskState.COMPLETED if status.succeeded else TaskState.FAILED


def _split_capabilities(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class A2AAdapter:
    """Builds agent cards and task views; holds no per-task state."""

    def __init__(
        self,
        ledger: Ledger,
        identity: IdentityRegistryClient,
        *,
        reputation_registry_address: Optional[str] = None,
        validation_registry_address: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self.identity = identity
        self.reputation_registry_address = reputation_registry_address
        self.validation_registry_address = validation_registry_address
        self._clock = clock

    async def _reputation_score(self, agent_id: int) -> Optional[int]:
        if not self.reputation_registry_address:
            return None
        result = await self.ledger.call(
            ContractCall(self.reputation_registry_address, "get_reputation_summary", split_u256(agent_id))
        )
        # (average_score: u8, feedback_count: u256)
        return to_int(result[0]) if result else None

    async def _validation_count(self, agent_id: int) -> Optional[int]:
        if not self.validation_registry_address:
            return None
        result = await self.ledger.call(
            ContractCall(self.validation_registry_address, "get_validation_count", split_u256(agent_id))
        )
        return join_u256(result) if result else None

    async def generate_agent_card(self, agent_id: str | int) -> AgentCard:
        """
        Assemble the card for a registered agent.

        Metadata keys, reputation and validation count are independent reads
        and are issued together.

        Raises:
            InvalidArgumentsError: the agent id is not registered.
        """
        numeric_id = to_int(agent_id)
        if not await self.identity.agent_exists(numeric_id):
            raise InvalidArgumentsError(f"Agent {agent_id} is not registered")

        results = await asyncio.gather(
            *(self.identity.get_metadata(numeric_id, key) for key in CARD_METADATA_KEYS),
            self._reputation_score(numeric_id),
            self._validation_count(numeric_id),
        )
        metadata = dict(zip(CARD_METADATA_KEYS, results[: len(CARD_METADATA_KEYS)]))
        reputation, validations = results[len(CARD_METADATA_KEYS):]

        identity: Dict[str, Any] = {
            "registryAddress": self.identity.address,
            "agentId": str(numeric_id),
        }
        if reputation is not None:
            identity["reputationScore"] = reputation
        if validations is not None:
            identity["validationCount"] = validations

        return AgentCard(
            name=metadata["agentName"] or metadata["name"] or f"Agent {numeric_id}",
            description=metadata["description"],
            url=metadata["a2aEndpoint"] or None,
            version=AGENT_CARD_VERSION,
            skills=_split_capabilities(metadata["capabilities"]),
            starknet_identity=identity,
        )

    def create_task(self, transaction_hash: str, prompt: str) -> Task:
        now = self._clock()
        return Task(
            id=transaction_hash,
            state=TaskState.SUBMITTED,
            prompt=prompt,
            transaction_hash=transaction_hash,
            created_at=now,
            updated_at=now,
        )

    async def get_task_status(self, task_id: str) -> Task:
        """One ledger read per call; concurrent queries never diverge through a cache."""
        status = await self.ledger.get_transaction_status(task_id)
        state = task_state_for(status)
        task = Task(
            id=task_id,
            state=state,
            prompt="",
            transaction_hash=task_id,
            created_at=0,
            updated_at=self._clock(),
        )
        if state is TaskState.COMPLETED:
            task.result = status.finality_status
        elif state is TaskState.FAILED:
            task.error = status.failure_reason or "Transaction reverted"
        logger.debug("task=%s state=%s", task_id, state.value)
        return task

    async def well_known_agent_json(self, agent_id: str | int, base_url: str) -> Dict[str, Any]:
        """Discovery document served at ``/.well-known/agent.json``."""
        card = await self.generate_agent_card(agent_id)
        base = base_url.rstrip("/")
        return {
            "@context": A2A_CONTEXT,
            "type": "Agent",
            "id": f"{base}/.well-known/agent.json",
            "name": card.name,
            "description": card.description,
            "url": base,
            "version": card.version,
            "capabilities": card.skills,
            "identity": {"starknet": card.starknet_identity},
            "endpoints": {
                "tasks": f"{base}/api/tasks",
                "status": f"{base}/api/tasks/:id",
            },
        }
