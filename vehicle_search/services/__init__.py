"""
Core service modules for the vehicle search pipeline
"""
from .entity_extraction import extract_entities
from .intent_detection import detect_intent
from .nlu import RuleBasedNLUProvider
from .guardrails import RuleBasedGuardrail
from .attribute_mapper import map_entities, AttributeMapping
from .conversation_context import ConversationContext, summarize_results
from .query_composer import compose_query, to_filter_expression
from .strategy_selector import determine_strategy
from .fusion import reciprocal_rank_fusion
from .search_coordinator import SearchCoordinator
from .search_service import VehicleSearchService
from .catalog import InMemoryVehicleCatalog, InMemoryExactBackend, InMemorySimilarityBackend

__all__ = [
    "extract_entities",
    "detect_intent",
    "RuleBasedNLUProvider",
    "RuleBasedGuardrail",
    "map_entities",
    "AttributeMapping",
    "ConversationContext",
    "summarize_results",
    "compose_query",
    "to_filter_expression",
    "determine_strategy",
    "reciprocal_rank_fusion",
    "SearchCoordinator",
    "VehicleSearchService",
    "InMemoryVehicleCatalog",
    "InMemoryExactBackend",
    "InMemorySimilarityBackend",
]
