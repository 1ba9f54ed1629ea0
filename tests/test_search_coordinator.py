"""
Tests for the search coordinator: routing, fusion, timeouts, retry and cancellation
"""
import asyncio
import pytest

from vehicle_search.errors import (
    BackendError,
    BackendTimeoutError,
    BackendUnavailableError,
    ValidationError,
)
from vehicle_search.models import (
    ConstraintKind,
    ConstraintOperator,
    SearchApproach,
    SearchConstraint,
    StrategyType,
    Vehicle,
)
from vehicle_search.services.query_composer import compose_query
from vehicle_search.services.search_coordinator import SearchCoordinator
from vehicle_search.services.strategy_selector import determine_strategy

from fakes import (
    FakeExactBackend,
    FakeSemanticBackend,
    FakeVehicleStore,
    exact_hits,
    semantic_hits,
)

MAKE_BMW = SearchConstraint(field_name="make", operator=ConstraintOperator.EQUALS, value="BMW", kind=ConstraintKind.EXACT)
PRICE_MAX_20K = SearchConstraint(
    field_name="price", operator=ConstraintOperator.LESS_THAN_OR_EQUAL, value=20000, kind=ConstraintKind.RANGE
)
RELIABLE = SearchConstraint(
    field_name="description", operator=ConstraintOperator.CONTAINS, value="reliable", kind=ConstraintKind.SEMANTIC
)


def plan(*constraints, raw_text="query"):
    composed = compose_query(list(constraints), raw_text=raw_text)
    return composed, determine_strategy(composed)


def coordinator_for(exact=None, semantic=None, store=None, **kwargs):
    options = {"backend_timeout": 0.5, "request_timeout": 1.0, "retry_backoff": 0.0}
    options.update(kwargs)
    return SearchCoordinator(exact_backend=exact, semantic_backend=semantic, vehicle_store=store, **options)


@pytest.mark.asyncio
async def test_exact_only_calls_exact_backend():
    """Test ExactOnly never touches the semantic backend"""
    exact = FakeExactBackend(exact_hits("v1", "v2", matched=2))
    semantic = FakeSemanticBackend(semantic_hits(("v3", 0.9)))
    query, strategy = plan(MAKE_BMW, PRICE_MAX_20K)

    result = await coordinator_for(exact, semantic).execute(query, strategy, 10)

    assert strategy.type == StrategyType.EXACT_ONLY
    assert exact.calls == 1
    assert semantic.calls == 0
    assert [r.vehicle_id for r in result.results] == ["v1", "v2"]
    assert all(r.score == 1.0 for r in result.results)
    assert str(exact.filters[0]) == "make eq 'BMW' and price le 20000"
    assert result.backends_used == (SearchApproach.EXACT_MATCH,)
    assert not result.partial


@pytest.mark.asyncio
async def test_semantic_only_orders_by_similarity():
    """Test SemanticOnly ranks by similarity, ties by id"""
    semantic = FakeSemanticBackend(semantic_hits(("v2", 0.8), ("v3", 0.9), ("v1", 0.8)))
    query, strategy = plan(RELIABLE)

    result = await coordinator_for(FakeExactBackend(), semantic).execute(query, strategy, 10)

    assert [r.vehicle_id for r in result.results] == ["v3", "v1", "v2"]
    assert semantic.texts == ["reliable"]
    assert result.results[0].score_breakdown.semantic_score == 0.9


@pytest.mark.asyncio
async def test_hybrid_fuses_both_backends():
    """Test Hybrid calls both backends with the widened limit and fuses"""
    exact = FakeExactBackend(exact_hits("v1", "v2", matched=2))
    semantic = FakeSemanticBackend(semantic_hits(("v2", 0.9), ("v3", 0.7)))
    query, strategy = plan(MAKE_BMW, PRICE_MAX_20K, RELIABLE)

    result = await coordinator_for(exact, semantic).execute(query, strategy, 5)

    assert strategy.type == StrategyType.HYBRID
    assert exact.limits == [15]
    assert semantic.limits == [15]
    assert [r.vehicle_id for r in result.results][0] == "v2"
    assert {r.vehicle_id for r in result.results} == {"v1", "v2", "v3"}
    assert result.total_candidates == 3


@pytest.mark.asyncio
async def test_results_truncated_to_max_results():
    """Test single-backend strategies ask for exactly max_results"""
    exact = FakeExactBackend(exact_hits("v1", "v2", "v3", "v4"))
    query, strategy = plan(MAKE_BMW)

    result = await coordinator_for(exact).execute(query, strategy, 2)

    assert exact.limits == [2]
    assert [r.vehicle_id for r in result.results] == ["v1", "v2"]


@pytest.mark.asyncio
async def test_total_candidates_counted_before_truncation():
    """Test total_candidates counts fused candidates beyond max_results"""
    exact = FakeExactBackend(exact_hits("v1", "v2", "v3"))
    semantic = FakeSemanticBackend(semantic_hits(("v4", 0.9), ("v5", 0.8)))
    query, strategy = plan(MAKE_BMW, RELIABLE)

    result = await coordinator_for(exact, semantic).execute(query, strategy, 2)

    assert len(result.results) == 2
    assert result.total_candidates == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("max_results", [0, 101, -1])
async def test_max_results_out_of_range(max_results):
    """Test max_results outside 1..100 is rejected before any backend call"""
    exact = FakeExactBackend(exact_hits("v1"))
    query, strategy = plan(MAKE_BMW)

    with pytest.raises(ValidationError):
        await coordinator_for(exact).execute(query, strategy, max_results)
    assert exact.calls == 0


@pytest.mark.asyncio
async def test_missing_query_is_rejected():
    """Test a missing composed query raises ValidationError"""
    _, strategy = plan(MAKE_BMW)

    with pytest.raises(ValidationError):
        await coordinator_for(FakeExactBackend()).execute(None, strategy, 10)


@pytest.mark.asyncio
async def test_partial_result_when_one_backend_times_out():
    """Test a slow semantic backend degrades to exact results marked partial"""
    exact = FakeExactBackend(exact_hits("v1", "v2", matched=2))
    semantic = FakeSemanticBackend(semantic_hits(("v3", 0.9)), delay=2.0)
    query, strategy = plan(MAKE_BMW, PRICE_MAX_20K, RELIABLE)

    result = await coordinator_for(exact, semantic, backend_timeout=0.05).execute(query, strategy, 10)

    assert result.partial
    assert result.backends_used == (SearchApproach.EXACT_MATCH,)
    assert [r.vehicle_id for r in result.results] == ["v1", "v2"]
    assert any("timed out" in w for w in result.warnings)
    assert semantic.cancelled


@pytest.mark.asyncio
async def test_all_backends_time_out():
    """Test the request fails when every backend times out"""
    exact = FakeExactBackend(exact_hits("v1"), delay=2.0)
    semantic = FakeSemanticBackend(semantic_hits(("v1", 0.9)), delay=2.0)
    query, strategy = plan(MAKE_BMW, RELIABLE)

    with pytest.raises(BackendTimeoutError):
        await coordinator_for(exact, semantic, backend_timeout=0.05).execute(query, strategy, 10)


@pytest.mark.asyncio
async def test_request_timeout_bounds_the_fan_out():
    """Test calls still running at the request timeout count as timed out"""
    exact = FakeExactBackend(exact_hits("v1"))
    semantic = FakeSemanticBackend(semantic_hits(("v2", 0.9)), delay=2.0)
    query, strategy = plan(MAKE_BMW, RELIABLE)

    result = await coordinator_for(
        exact, semantic, backend_timeout=5.0, request_timeout=0.1
    ).execute(query, strategy, 10)

    assert result.partial
    assert [r.vehicle_id for r in result.results] == ["v1"]


@pytest.mark.asyncio
async def test_transport_failure_is_retried_once():
    """Test one transient failure is retried"""
    exact = FakeExactBackend(exact_hits("v1"), failures=1)
    query, strategy = plan(MAKE_BMW)

    result = await coordinator_for(exact).execute(query, strategy, 10)

    assert exact.calls == 2
    assert [r.vehicle_id for r in result.results] == ["v1"]


@pytest.mark.asyncio
async def test_backend_unavailable_after_retry():
    """Test repeated failures surface as BackendUnavailableError"""
    exact = FakeExactBackend(exact_hits("v1"), failures=2)
    query, strategy = plan(MAKE_BMW)

    with pytest.raises(BackendUnavailableError):
        await coordinator_for(exact).execute(query, strategy, 10)
    assert exact.calls == 2


@pytest.mark.asyncio
async def test_backend_timeout_error_is_not_retried():
    """Test a backend reporting its own timeout is not retried"""
    exact = FakeExactBackend(exact_hits("v1"), failures=1, error=BackendTimeoutError("slow"))
    semantic = FakeSemanticBackend(semantic_hits(("v2", 0.9)))
    query, strategy = plan(MAKE_BMW, RELIABLE)

    result = await coordinator_for(exact, semantic).execute(query, strategy, 10)

    assert exact.calls == 1
    assert result.partial
    assert [r.vehicle_id for r in result.results] == ["v2"]


@pytest.mark.asyncio
async def test_cancellation_propagates_to_backends():
    """Test cancelling the caller cancels both in-flight backend calls"""
    exact = FakeExactBackend(exact_hits("v1"), delay=5.0)
    semantic = FakeSemanticBackend(semantic_hits(("v1", 0.9)), delay=5.0)
    query, strategy = plan(MAKE_BMW, RELIABLE)
    coordinator = coordinator_for(exact, semantic, backend_timeout=10.0, request_timeout=10.0)

    task = asyncio.create_task(coordinator.execute(query, strategy, 10))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.05)

    assert exact.cancelled
    assert semantic.cancelled


@pytest.mark.asyncio
async def test_hydration_attaches_vehicles_and_highlights():
    """Test results carry vehicle records and the fields they matched"""
    vehicles = [
        Vehicle(id="v1", make="BMW", model="3 Series", price=18995),
        Vehicle(id="v2", make="BMW", model="1 Series", price=24000),
    ]
    exact = FakeExactBackend(exact_hits("v1", "v2"))
    query, strategy = plan(MAKE_BMW, PRICE_MAX_20K)

    result = await coordinator_for(exact, store=FakeVehicleStore(vehicles)).execute(query, strategy, 10)

    by_id = {r.vehicle_id: r for r in result.results}
    assert by_id["v1"].vehicle.model == "3 Series"
    assert by_id["v1"].highlighted_fields == ("make", "price")
    assert by_id["v2"].highlighted_fields == ("make",)


@pytest.mark.asyncio
async def test_hydration_failure_is_unavailable():
    """Test a failing vehicle store surfaces as BackendUnavailableError"""
    exact = FakeExactBackend(exact_hits("v1"))
    store = FakeVehicleStore(error=BackendError("store down"))
    query, strategy = plan(MAKE_BMW)

    with pytest.raises(BackendUnavailableError):
        await coordinator_for(exact, store=store).execute(query, strategy, 10)


DIVERSITY_VEHICLES = [
    Vehicle(id="v1", make="BMW", model="3 Series"),
    Vehicle(id="v2", make="BMW", model="3 Series"),
    Vehicle(id="v3", make="BMW", model="3 Series"),
    Vehicle(id="v4", make="BMW", model="1 Series"),
    Vehicle(id="v5", make="Audi", model="A4"),
]


@pytest.mark.asyncio
async def test_hybrid_results_are_diversified():
    """Test a hybrid ranking keeps at most two of one model at the top"""
    exact = FakeExactBackend(exact_hits("v1", "v2", "v3", "v4"))
    semantic = FakeSemanticBackend(semantic_hits(("v1", 0.9), ("v2", 0.8), ("v3", 0.7), ("v5", 0.6)))
    store = FakeVehicleStore(DIVERSITY_VEHICLES)
    query, strategy = plan(MAKE_BMW, RELIABLE)

    result = await coordinator_for(exact, semantic, store).execute(query, strategy, 3)

    assert strategy.should_rerank
    assert [r.vehicle_id for r in result.results] == ["v1", "v2", "v5"]
    assert result.total_candidates == 5


@pytest.mark.asyncio
async def test_diversity_quotas_are_configurable():
    """Test the per-model quota comes from the coordinator"""
    exact = FakeExactBackend(exact_hits("v1", "v2", "v3", "v4"))
    semantic = FakeSemanticBackend(semantic_hits(("v1", 0.9), ("v2", 0.8), ("v3", 0.7), ("v5", 0.6)))
    store = FakeVehicleStore(DIVERSITY_VEHICLES)
    query, strategy = plan(MAKE_BMW, RELIABLE)

    coordinator = coordinator_for(exact, semantic, store, max_per_make=3, max_per_model=3)
    result = await coordinator.execute(query, strategy, 3)

    assert [r.vehicle_id for r in result.results] == ["v1", "v2", "v3"]


@pytest.mark.asyncio
async def test_exact_only_results_are_not_diversified():
    """Test single-backend rankings keep the backend order"""
    exact = FakeExactBackend(exact_hits("v1", "v2", "v3", "v4"))
    query, strategy = plan(MAKE_BMW)

    result = await coordinator_for(exact, store=FakeVehicleStore(DIVERSITY_VEHICLES)).execute(query, strategy, 3)

    assert not strategy.should_rerank
    assert [r.vehicle_id for r in result.results] == ["v1", "v2", "v3"]


@pytest.mark.asyncio
async def test_missing_backend_is_rejected():
    """Test a strategy needing an unconfigured backend fails validation"""
    query, strategy = plan(RELIABLE)

    with pytest.raises(ValidationError):
        await coordinator_for(FakeExactBackend(), None).execute(query, strategy, 10)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
