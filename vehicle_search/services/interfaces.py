"""
Contracts for the collaborators the search pipeline depends on

Any object with matching async methods can be plugged in: the rule-based
NLU and guardrail, the in-memory catalog, the Supabase backend and the HTTP
similarity backend all implement these.
"""
from typing import Dict, List, Protocol, Sequence

from pydantic import BaseModel

from vehicle_search.models import (
    ExactHit,
    FilterExpression,
    NLUResult,
    SemanticHit,
    Vehicle,
)


class GuardrailDecision(BaseModel):
    """Outcome of guardrail validation"""

    accepted: bool
    reason: str = ""

    class Config:
        frozen = True

    @classmethod
    def accept(cls) -> "GuardrailDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "GuardrailDecision":
        return cls(accepted=False, reason=reason)


class NLUProvider(Protocol):
    async def understand(self, text: str) -> NLUResult:
        """Extract intent and entities; raises NLUError on malformed input"""
        ...


class ExactBackend(Protocol):
    async def query(self, filter_expression: FilterExpression, limit: int) -> List[ExactHit]:
        """Vehicles satisfying the filter, most relevant first; raises BackendError"""
        ...


class SemanticBackend(Protocol):
    async def query(self, text: str, limit: int) -> List[SemanticHit]:
        """Vehicles by similarity in [0, 1], descending; raises BackendError"""
        ...


class VehicleStore(Protocol):
    async def get_many(self, vehicle_ids: Sequence[str]) -> Dict[str, Vehicle]:
        """Vehicle records keyed by id; unknown ids are omitted"""
        ...


class GuardrailValidator(Protocol):
    async def validate(self, text: str) -> GuardrailDecision:
        ...
