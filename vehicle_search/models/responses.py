"""
Response models for the search pipeline and its API
"""
from pydantic import BaseModel, Field
from typing import List, Tuple

from .constraints import QueryType, SearchApproach, SearchStrategy
from .conversation import ConversationTurn
from .nlu import IntentType
from .vehicles import VehicleResult


class CoordinatorResult(BaseModel):
    """Ranked results from one coordinator execution"""

    results: Tuple[VehicleResult, ...] = ()
    total_candidates: int = 0
    partial: bool = False
    backends_used: Tuple[SearchApproach, ...] = ()
    warnings: Tuple[str, ...] = ()

    class Config:
        frozen = True


class SearchOutcome(BaseModel):
    """Result of one conversational search turn"""

    results: List[VehicleResult] = Field(default_factory=list)
    total_count: int = 0
    strategy_used: SearchStrategy
    query_type: QueryType
    has_conflicts: bool = False
    partial: bool = False
    session_expired: bool = False
    turn_index: int = 0
    intent: IntentType = IntentType.GENERAL_SEARCH
    intent_confidence: float = Field(0.0, ge=0.0, le=1.0)
    warnings: List[str] = Field(default_factory=list)


class SearchResponse(SearchOutcome):
    """Search response payload"""

    query_id: str = Field(..., description="Unique query identifier")
    session_id: str
    query: str
    latency_ms: int = Field(..., description="Query latency in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "query_id": "a6b0f0e4-3d55-4d31-9a3c-2b6a0c7e4b91",
                "session_id": "3f1c2a9e-7b7d-4d0e-9a51-0c6a2d4b8e11",
                "query": "reliable BMW under £20000",
                "results": [],
                "total_count": 0,
                "strategy_used": {
                    "type": "hybrid",
                    "approaches": ["exact_match", "semantic_search"],
                    "weights": {"exact_match": 0.3, "semantic_search": 0.7},
                    "should_rerank": True
                },
                "query_type": "complex",
                "has_conflicts": False,
                "partial": False,
                "session_expired": False,
                "turn_index": 0,
                "intent": "search",
                "intent_confidence": 0.85,
                "warnings": [],
                "latency_ms": 42
            }
        }


class HistoryResponse(BaseModel):
    """Conversation history for a session"""

    session_id: str
    turns: List[ConversationTurn] = Field(default_factory=list)


class ClearHistoryResponse(BaseModel):
    """Acknowledgement of a cleared session"""

    session_id: str
    cleared: bool = True
