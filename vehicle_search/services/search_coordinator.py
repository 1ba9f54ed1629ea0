"""
Search Coordinator
Runs the backends a strategy selects, concurrently and under time budgets,
and turns their candidates into ranked VehicleResults

Budgets: each backend call is bounded by backend_timeout, and the whole
fan-out by request_timeout. A backend that times out while another succeeds
yields a partial result; when every backend times out the search fails with
BackendTimeoutError. Transport failures are retried once after a short
backoff and then fail the search with BackendUnavailableError.

Strategies flagged for reranking have their fused candidates diversified by
make and model before truncation.
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from pydantic import BaseModel

from vehicle_search.config import settings
from vehicle_search.errors import (
    BackendError,
    BackendTimeoutError,
    BackendUnavailableError,
    ValidationError,
)
from vehicle_search.models import (
    ComposedQuery,
    CoordinatorResult,
    ExactHit,
    FilterExpression,
    ScoreBreakdown,
    SearchApproach,
    SearchStrategy,
    SemanticHit,
    StrategyType,
    VehicleResult,
)
from vehicle_search.utils.matching import matched_fields
from vehicle_search.utils.validators import validate_max_results
from .diversity import diversify
from .fusion import reciprocal_rank_fusion
from .interfaces import ExactBackend, SemanticBackend, VehicleStore
from .query_composer import to_filter_expression

logger = logging.getLogger(__name__)


class CallStatus(str, Enum):
    OK = "ok"
    TIMED_OUT = "timed_out"
    UNAVAILABLE = "unavailable"


class BackendOutcome(BaseModel):
    """What one backend call produced"""

    approach: SearchApproach
    status: CallStatus
    hits: Tuple = ()
    error: Optional[str] = None

    class Config:
        frozen = True


def semantic_query_text(query: ComposedQuery) -> str:
    """Semantic constraint values joined, falling back to the raw text"""
    values = [str(c.value) for c in query.semantic_constraints()]
    if values:
        return " ".join(values)
    return query.raw_text or ""


def exact_match_score(hit: ExactHit, constraint_count: int) -> float:
    if constraint_count <= 0:
        return 1.0
    return min(1.0, hit.matched_field_count / constraint_count)


class SearchCoordinator:
    """Executes a search strategy against the retrieval backends"""

    def __init__(
        self,
        exact_backend: Optional[ExactBackend],
        semantic_backend: Optional[SemanticBackend],
        vehicle_store: Optional[VehicleStore] = None,
        backend_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
        retry_backoff: Optional[float] = None,
        rrf_k: Optional[int] = None,
        candidate_multiplier: Optional[int] = None,
        max_per_make: Optional[int] = None,
        max_per_model: Optional[int] = None
    ):
        self.exact_backend = exact_backend
        self.semantic_backend = semantic_backend
        self.vehicle_store = vehicle_store
        self.backend_timeout = backend_timeout or settings.backend_timeout_seconds
        self.request_timeout = request_timeout or settings.request_timeout_seconds
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.backend_retry_backoff_seconds
        self.rrf_k = rrf_k or settings.rrf_k
        self.candidate_multiplier = candidate_multiplier or settings.hybrid_candidate_multiplier
        self.max_per_make = max_per_make or settings.diversity_max_per_make
        self.max_per_model = max_per_model or settings.diversity_max_per_model

    async def execute(
        self,
        query: ComposedQuery,
        strategy: SearchStrategy,
        max_results: int
    ) -> CoordinatorResult:
        """
        Execute a strategy and rank the results

        Args:
            query: Composed query
            strategy: Strategy from the selector
            max_results: Number of results to return, 1 to 100

        Returns:
            CoordinatorResult

        Raises:
            ValidationError: If max_results is out of range or an input is missing
            BackendTimeoutError: If every backend timed out
            BackendUnavailableError: If a backend failed after its retry
        """
        validate_max_results(max_results)
        if query is None or strategy is None:
            raise ValidationError("composed query and strategy are required")

        filter_expression = to_filter_expression(query)
        text = semantic_query_text(query)
        limit = max_results * self.candidate_multiplier if strategy.type == StrategyType.HYBRID else max_results

        calls: Dict[SearchApproach, Callable[[], Awaitable[list]]] = {}
        if SearchApproach.EXACT_MATCH in strategy.approaches:
            calls[SearchApproach.EXACT_MATCH] = self._exact_call(filter_expression, limit)
        if SearchApproach.SEMANTIC_SEARCH in strategy.approaches:
            calls[SearchApproach.SEMANTIC_SEARCH] = self._semantic_call(text, limit)

        logger.info(
            f"Executing {strategy.type.value} search (limit={limit}): "
            f"filter='{filter_expression}' text='{text}'"
        )

        outcomes = await self._fan_out(calls)
        succeeded, warnings = self._check_outcomes(outcomes)

        exact_hits: List[ExactHit] = list(succeeded.get(SearchApproach.EXACT_MATCH, ()))
        semantic_hits: List[SemanticHit] = list(succeeded.get(SearchApproach.SEMANTIC_SEARCH, ()))

        ranked = self._rank(strategy, filter_expression, exact_hits, semantic_hits)
        total_candidates = len(ranked)

        if strategy.should_rerank and self.vehicle_store is not None:
            # Diversity needs make and model, so hydrate the whole candidate window
            results = await self._hydrate(ranked[:limit], filter_expression)
            results = diversify(results, self.max_per_make, self.max_per_model)[:max_results]
        else:
            results = await self._hydrate(ranked[:max_results], filter_expression)

        return CoordinatorResult(
            results=tuple(results),
            total_candidates=total_candidates,
            partial=len(succeeded) < len(calls),
            backends_used=tuple(succeeded),
            warnings=tuple(warnings),
        )

    def _exact_call(self, filter_expression: FilterExpression, limit: int):
        if self.exact_backend is None:
            raise ValidationError("strategy needs an exact backend but none is configured")
        return lambda: self.exact_backend.query(filter_expression, limit)

    def _semantic_call(self, text: str, limit: int):
        if self.semantic_backend is None:
            raise ValidationError("strategy needs a semantic backend but none is configured")
        return lambda: self.semantic_backend.query(text, limit)

    async def _call_with_retry(
        self,
        approach: SearchApproach,
        call: Callable[[], Awaitable[list]]
    ) -> BackendOutcome:
        """
        Run one backend call under the per-backend timeout

        Transport failures get one retry after the backoff; a timeout is final.
        """
        for attempt in (1, 2):
            try:
                hits = await asyncio.wait_for(call(), timeout=self.backend_timeout)
                return BackendOutcome(approach=approach, status=CallStatus.OK, hits=tuple(hits))
            except (asyncio.TimeoutError, BackendTimeoutError):
                logger.warning(f"{approach.value} backend timed out after {self.backend_timeout}s")
                return BackendOutcome(approach=approach, status=CallStatus.TIMED_OUT)
            except (BackendError, OSError) as e:
                if attempt == 1:
                    logger.warning(f"{approach.value} backend failed ({e}); retrying in {self.retry_backoff}s")
                    await asyncio.sleep(self.retry_backoff)
                    continue
                logger.error(f"{approach.value} backend unavailable after retry: {e}")
                return BackendOutcome(approach=approach, status=CallStatus.UNAVAILABLE, error=str(e))

        return BackendOutcome(approach=approach, status=CallStatus.UNAVAILABLE)

    async def _fan_out(
        self,
        calls: Dict[SearchApproach, Callable[[], Awaitable[list]]]
    ) -> Dict[SearchApproach, BackendOutcome]:
        """
        Issue all backend calls concurrently and wait jointly

        Calls still running at the request timeout are cancelled and reported
        as timed out. If the caller is cancelled, every in-flight call is
        cancelled too.
        """
        tasks = {
            asyncio.ensure_future(self._call_with_retry(approach, call)): approach
            for approach, call in calls.items()
        }
        try:
            done, _ = await asyncio.wait(tasks, timeout=self.request_timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        outcomes = {}
        for task, approach in tasks.items():
            if task in done:
                outcomes[approach] = task.result()
            else:
                logger.warning(f"{approach.value} backend exceeded the {self.request_timeout}s request budget")
                outcomes[approach] = BackendOutcome(approach=approach, status=CallStatus.TIMED_OUT)
        return outcomes

    def _check_outcomes(
        self,
        outcomes: Dict[SearchApproach, BackendOutcome]
    ) -> Tuple[Dict[SearchApproach, Tuple], List[str]]:
        """
        Translate backend outcomes into hits or a domain error

        Returns:
            (hits by approach for successful calls, warnings)
        """
        unavailable = [o for o in outcomes.values() if o.status == CallStatus.UNAVAILABLE]
        if unavailable:
            names = ", ".join(o.approach.value for o in unavailable)
            raise BackendUnavailableError(f"Backend unavailable: {names} ({unavailable[0].error})")

        succeeded = {
            approach: outcome.hits
            for approach, outcome in outcomes.items()
            if outcome.status == CallStatus.OK
        }
        if outcomes and not succeeded:
            raise BackendTimeoutError(
                "All backends timed out: " + ", ".join(a.value for a in outcomes)
            )

        warnings = [
            f"{approach.value} timed out; results are partial"
            for approach, outcome in outcomes.items()
            if outcome.status == CallStatus.TIMED_OUT
        ]
        return succeeded, warnings

    def _rank(
        self,
        strategy: SearchStrategy,
        filter_expression: FilterExpression,
        exact_hits: Sequence[ExactHit],
        semantic_hits: Sequence[SemanticHit]
    ) -> List[VehicleResult]:
        constraint_count = filter_expression.constraint_count()

        if strategy.type == StrategyType.HYBRID:
            return reciprocal_rank_fusion(
                exact=[(h.vehicle_id, exact_match_score(h, constraint_count)) for h in exact_hits],
                semantic=[(h.vehicle_id, h.similarity_score) for h in semantic_hits],
                exact_weight=strategy.weight(SearchApproach.EXACT_MATCH),
                semantic_weight=strategy.weight(SearchApproach.SEMANTIC_SEARCH),
                k=self.rrf_k,
            )

        if strategy.type == StrategyType.EXACT_ONLY:
            results = []
            seen = set()
            for hit in exact_hits:
                if hit.vehicle_id in seen:
                    continue
                seen.add(hit.vehicle_id)
                score = exact_match_score(hit, constraint_count)
                results.append(
                    VehicleResult(
                        vehicle_id=hit.vehicle_id,
                        score=score,
                        score_breakdown=ScoreBreakdown(exact_match_score=score, final_score=score),
                    )
                )
            return results

        results = []
        seen = set()
        for hit in semantic_hits:
            if hit.vehicle_id in seen:
                continue
            seen.add(hit.vehicle_id)
            results.append(
                VehicleResult(
                    vehicle_id=hit.vehicle_id,
                    score=hit.similarity_score,
                    score_breakdown=ScoreBreakdown(
                        semantic_score=hit.similarity_score,
                        final_score=hit.similarity_score,
                    ),
                )
            )
        results.sort(key=lambda r: (-r.score, r.vehicle_id))
        return results

    async def _hydrate(
        self,
        ranked: Sequence[VehicleResult],
        filter_expression: FilterExpression
    ) -> List[VehicleResult]:
        """Attach vehicle records and the fields each one matched"""
        if self.vehicle_store is None or not ranked:
            return list(ranked)

        ids = [result.vehicle_id for result in ranked]
        try:
            vehicles = await asyncio.wait_for(self.vehicle_store.get_many(ids), timeout=self.backend_timeout)
        except (asyncio.TimeoutError, BackendTimeoutError) as e:
            raise BackendTimeoutError("Vehicle store timed out") from e
        except (BackendError, OSError) as e:
            raise BackendUnavailableError(f"Vehicle store unavailable: {e}") from e

        constraints = filter_expression.constraints()
        hydrated = []
        for result in ranked:
            vehicle = vehicles.get(result.vehicle_id)
            if vehicle is None:
                logger.warning(f"Vehicle {result.vehicle_id} missing from the vehicle store")
                hydrated.append(result)
                continue
            hydrated.append(
                result.model_copy(update={
                    "vehicle": vehicle,
                    "highlighted_fields": tuple(matched_fields(vehicle, constraints)),
                })
            )
        return hydrated
