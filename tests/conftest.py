"""
PyTest fixtures for the vehicle search pipeline tests

Provides:
- The bundled sample catalog and in-memory backends
- A controllable clock for session TTL tests
- A fully wired VehicleSearchService over the sample catalog

Usage:
    pytest tests/ -v
"""
from datetime import timedelta

import pytest

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

from fakes import FixedClock


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def catalog():
    return InMemoryVehicleCatalog.from_json()


@pytest.fixture
def context(clock):
    return ConversationContext(expires_after=timedelta(minutes=30), max_turns=50, clock=clock)


@pytest.fixture
def coordinator(catalog):
    return SearchCoordinator(
        exact_backend=InMemoryExactBackend(catalog),
        semantic_backend=InMemorySimilarityBackend(catalog),
        vehicle_store=catalog,
        backend_timeout=2.5,
        request_timeout=3.0,
        retry_backoff=0.0,
    )


@pytest.fixture
def search_service(coordinator, context):
    return VehicleSearchService(
        nlu=RuleBasedNLUProvider(),
        coordinator=coordinator,
        context=context,
        guardrail=RuleBasedGuardrail(min_length=2, max_length=500),
    )
