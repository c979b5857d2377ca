"""
Run outcomes and the result assembler.

The assembler turns a result store snapshot plus the loop's final text into
exactly one outcome. It is a pure function of those two inputs.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .coordinator import BlockDecision
from .store import StoredResult


@dataclass(frozen=True)
class Success:
    payload: dict
    metadata: dict = field(default_factory=dict)
    status: str = field(default="success", init=False)


@dataclass(frozen=True)
class Skipped:
    reason: str
    blocking_flags: Optional[tuple[str, ...]] = None
    status: str = field(default="skipped", init=False)


@dataclass(frozen=True)
class Failed:
    reason: str
    status: str = field(default="failed", init=False)


RunOutcome = Union[Success, Skipped, Failed]


def outcome_to_dict(outcome: RunOutcome) -> dict:
    """JSON-friendly rendering of an outcome."""
    if isinstance(outcome, Success):
        return {"status": outcome.status, "payload": outcome.payload, "metadata": outcome.metadata}
    if isinstance(outcome, Skipped):
        data: dict[str, Any] = {"status": outcome.status, "reason": outcome.reason}
        if outcome.blocking_flags:
            data["blocking_flags"] = list(outcome.blocking_flags)
        return data
    return {"status": outcome.status, "reason": outcome.reason}


class ResultAssembler:
    """
    Classifies a finished run.

    Subclasses name the commit and gate storage keys, the field carrying the
    committed artifact id, and how to read a gate verdict and build the
    success payload.
    """

    commit_key: str = "commit"
    gate_key: str = "gate"
    id_field: str = "id"

    def gate_verdict(self, gate_value: Any) -> Optional[BlockDecision]:
        """Return a decision when the stored gate result says do not proceed."""
        if isinstance(gate_value, dict) and gate_value.get("proceed") is False:
            return BlockDecision(
                reason=str(gate_value.get("reason") or "Blocked by validation"),
                blocking_flags=tuple(gate_value.get("blocking_flags") or ()),
            )
        return None

    def success_payload(self, artifact_id: str, snapshot: dict[str, StoredResult]) -> tuple[dict, dict]:
        """Payload and metadata for a committed run."""
        commit = snapshot[self.commit_key].value
        return {self.id_field: artifact_id, **commit}, {}

    def assemble(self, snapshot: dict[str, StoredResult], final_text: str) -> RunOutcome:
        commit = snapshot.get(self.commit_key)
        if commit is not None and commit.succeeded and isinstance(commit.value, dict):
            artifact_id = commit.value.get(self.id_field)
            if artifact_id:
                payload, metadata = self.success_payload(artifact_id, snapshot)
                return Success(payload=payload, metadata=metadata)

        gate = snapshot.get(self.gate_key)
        if gate is not None and gate.succeeded:
            decision = self.gate_verdict(gate.value)
            if decision is not None:
                return Skipped(
                    reason=decision.reason,
                    blocking_flags=decision.blocking_flags or None,
                )

        if not snapshot:
            return Skipped(reason=final_text)

        return Failed(reason=final_text)
