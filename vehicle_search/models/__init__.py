"""
Data models for the vehicle search pipeline
"""
from .constraints import (
    ConstraintOperator,
    ConstraintKind,
    QueryType,
    StrategyType,
    SearchApproach,
    SearchConstraint,
    ConstraintGroup,
    ComposedQuery,
    FilterExpression,
    SearchStrategy,
)
from .conversation import (
    ResultSummary,
    ConversationTurn,
    SessionContext,
    Direction,
    PronounMarker,
    ComparativeMarker,
    PositionalMarker,
    ReferenceMarker,
    ResolvedReferences,
)
from .nlu import IntentType, Entity, NLUResult
from .vehicles import Vehicle, ScoreBreakdown, VehicleResult, ExactHit, SemanticHit
from .requests import SearchRequest
from .responses import (
    CoordinatorResult,
    SearchOutcome,
    SearchResponse,
    HistoryResponse,
    ClearHistoryResponse,
)

__all__ = [
    # Constraints
    "ConstraintOperator",
    "ConstraintKind",
    "QueryType",
    "StrategyType",
    "SearchApproach",
    "SearchConstraint",
    "ConstraintGroup",
    "ComposedQuery",
    "FilterExpression",
    "SearchStrategy",
    # Conversation
    "ResultSummary",
    "ConversationTurn",
    "SessionContext",
    "Direction",
    "PronounMarker",
    "ComparativeMarker",
    "PositionalMarker",
    "ReferenceMarker",
    "ResolvedReferences",
    # NLU
    "IntentType",
    "Entity",
    "NLUResult",
    # Vehicles/results
    "Vehicle",
    "ScoreBreakdown",
    "VehicleResult",
    "ExactHit",
    "SemanticHit",
    # Request/Response
    "SearchRequest",
    "CoordinatorResult",
    "SearchOutcome",
    "SearchResponse",
    "HistoryResponse",
    "ClearHistoryResponse",
]
