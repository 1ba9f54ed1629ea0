"""FastAPI dependencies for dependency injection."""
import logging
from typing import Optional

from vehicle_search.config import Settings, settings
from vehicle_search.services import (
    ConversationContext,
    InMemoryExactBackend,
    InMemorySimilarityBackend,
    InMemoryVehicleCatalog,
    RuleBasedGuardrail,
    RuleBasedNLUProvider,
    SearchCoordinator,
    VehicleSearchService,
)
from vehicle_search.services.backends import HttpSemanticBackend, SupabaseVehicleBackend
from vehicle_search.utils.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)


# Global service instances (initialized on startup)
_search_service: Optional[VehicleSearchService] = None
_semantic_backend: Optional[HttpSemanticBackend] = None


def build_search_service(config: Settings = settings) -> VehicleSearchService:
    """
    Wire the search pipeline from configuration

    Args:
        config: Application settings

    Returns:
        VehicleSearchService

    Raises:
        ValueError: If a backend name is not recognised
    """
    global _semantic_backend

    catalog = None
    if config.exact_backend == "memory" or config.semantic_backend == "memory":
        catalog = InMemoryVehicleCatalog.from_json(config.catalog_path)

    if config.exact_backend == "memory":
        exact_backend = InMemoryExactBackend(catalog)
        vehicle_store = catalog
    elif config.exact_backend == "supabase":
        supabase_backend = SupabaseVehicleBackend(get_supabase_client(), config.supabase_vehicles_table)
        exact_backend = supabase_backend
        vehicle_store = supabase_backend
    else:
        raise ValueError(f"Unknown exact backend: {config.exact_backend}")

    if config.semantic_backend == "memory":
        semantic_backend = InMemorySimilarityBackend(catalog)
    elif config.semantic_backend == "http":
        _semantic_backend = HttpSemanticBackend(
            base_url=config.semantic_service_url,
            api_key=config.semantic_service_api_key,
            timeout=config.backend_timeout_seconds,
        )
        semantic_backend = _semantic_backend
    else:
        raise ValueError(f"Unknown semantic backend: {config.semantic_backend}")

    coordinator = SearchCoordinator(
        exact_backend=exact_backend,
        semantic_backend=semantic_backend,
        vehicle_store=vehicle_store,
        backend_timeout=config.backend_timeout_seconds,
        request_timeout=config.request_timeout_seconds,
        retry_backoff=config.backend_retry_backoff_seconds,
        rrf_k=config.rrf_k,
        candidate_multiplier=config.hybrid_candidate_multiplier,
        max_per_make=config.diversity_max_per_make,
        max_per_model=config.diversity_max_per_model,
    )

    guardrail = None
    if config.guardrail_enabled:
        guardrail = RuleBasedGuardrail(config.query_min_length, config.query_max_length)

    logger.info(
        f"Search pipeline ready: exact={config.exact_backend}, semantic={config.semantic_backend}, "
        f"guardrail={'on' if guardrail else 'off'}"
    )

    return VehicleSearchService(
        nlu=RuleBasedNLUProvider(),
        coordinator=coordinator,
        context=ConversationContext(),
        guardrail=guardrail,
    )


def init_services(config: Settings = settings) -> VehicleSearchService:
    """Initialize global service instances."""
    global _search_service
    _search_service = build_search_service(config)
    return _search_service


async def shutdown_services() -> None:
    """Release clients held by the global services."""
    global _search_service, _semantic_backend
    if _semantic_backend is not None:
        await _semantic_backend.aclose()
    _search_service = None
    _semantic_backend = None


def get_search_service() -> VehicleSearchService:
    """
    Get search service instance.

    Returns:
        VehicleSearchService instance
    """
    if _search_service is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _search_service
