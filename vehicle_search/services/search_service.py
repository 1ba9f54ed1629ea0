"""
Vehicle Search Service
The conversational search pipeline behind Search, GetHistory and ClearHistory:

    guardrail -> NLU -> attribute mapping -> reference resolution
    -> composition -> strategy -> coordinated search -> turn recorded

Everything from reference resolution to recording the turn runs under the
session's lock, so concurrent requests on one session apply in order.
"""
import uuid
from typing import List, Optional
import logging

from vehicle_search.config import settings
from vehicle_search.errors import GuardrailRejection, NLUError
from vehicle_search.models import ConversationTurn, IntentType, NLUResult, SearchOutcome
from vehicle_search.utils.validators import (
    validate_max_results,
    validate_query,
    validate_session_id,
)
from .attribute_mapper import map_entities
from .conversation_context import ConversationContext, summarize_results
from .interfaces import GuardrailValidator, NLUProvider
from .query_composer import compose_query
from .search_coordinator import SearchCoordinator
from .strategy_selector import determine_strategy

logger = logging.getLogger(__name__)


class VehicleSearchService:
    """Orchestrates one conversational search turn"""

    def __init__(
        self,
        nlu: NLUProvider,
        coordinator: SearchCoordinator,
        context: Optional[ConversationContext] = None,
        guardrail: Optional[GuardrailValidator] = None
    ):
        self.nlu = nlu
        self.coordinator = coordinator
        self.context = context if context is not None else ConversationContext()
        self.guardrail = guardrail

    async def _understand(self, query: str, query_id: str) -> NLUResult:
        try:
            return await self.nlu.understand(query)
        except NLUError as e:
            logger.warning(f"[{query_id}] NLU failed, falling back to raw semantic query: {e}")
            return NLUResult.empty()

    async def search(
        self,
        query: str,
        session_id: str,
        max_results: Optional[int] = None,
        query_id: Optional[str] = None
    ) -> SearchOutcome:
        """
        Run one conversational search turn

        Args:
            query: Natural language query
            session_id: Conversation session id
            max_results: Results to return, 1 to 100
            query_id: Request id used to correlate log lines

        Returns:
            SearchOutcome with ranked results and turn metadata

        Raises:
            ValidationError: On malformed input
            GuardrailRejection: If the guardrail rejects the query
            BackendTimeoutError: If every backend timed out
            BackendUnavailableError: If a backend stayed unreachable
        """
        query_id = query_id or str(uuid.uuid4())
        if max_results is None:
            max_results = settings.default_max_results

        query = validate_query(query)
        session_id = validate_session_id(session_id)
        validate_max_results(max_results)

        if self.guardrail is not None:
            decision = await self.guardrail.validate(query)
            if not decision.accepted:
                logger.info(f"[{query_id}] Query rejected by guardrail: {decision.reason}")
                raise GuardrailRejection(decision.reason)

        nlu_result = await self._understand(query, query_id)
        mapping = map_entities(nlu_result)
        warnings = [f"Ignored {d.entity_type} '{d.raw_value}': {d.reason}" for d in mapping.dropped]

        async with self.context.lock(session_id):
            session, expired = self.context.get_or_create(session_id)

            resolved = self.context.resolve_references(
                session,
                mapping.constraints,
                query,
                refine=nlu_result.intent == IntentType.REFINE,
            )
            current = mapping.constraints + resolved.synthesized
            composed = compose_query(current, resolved.inherited, raw_text=query)
            strategy = determine_strategy(composed)

            logger.info(
                f"[{query_id}] Session {session_id} turn {session.next_turn_index()}: "
                f"{composed.query_type.value} query, strategy={strategy.type.value}, "
                f"inherited={len(resolved.inherited)}, synthesized={len(resolved.synthesized)}"
            )

            executed = await self.coordinator.execute(composed, strategy, max_results)

            turn = ConversationTurn(
                turn_index=session.next_turn_index(),
                query=query,
                constraints=composed.constraints(),
                summary=summarize_results(executed.results),
                intent=nlu_result.intent,
                timestamp=self.context.now(),
            )
            self.context.append(session, turn)

        if expired:
            warnings.append("Previous session expired; started a new conversation")

        return SearchOutcome(
            results=list(executed.results),
            total_count=executed.total_candidates,
            strategy_used=strategy,
            query_type=composed.query_type,
            has_conflicts=composed.has_conflicts,
            partial=executed.partial,
            session_expired=expired,
            turn_index=turn.turn_index,
            intent=nlu_result.intent,
            intent_confidence=nlu_result.confidence,
            warnings=(
                list(resolved.warnings) + list(composed.warnings) + list(executed.warnings) + warnings
            ),
        )

    async def get_history(self, session_id: str) -> List[ConversationTurn]:
        """Turns of a session, oldest first; empty for unknown or expired sessions"""
        session_id = validate_session_id(session_id)
        if session_id not in self.context:
            return []
        async with self.context.lock(session_id):
            return self.context.get_history(session_id)

    async def clear_history(self, session_id: str) -> None:
        """Discard a session's turns; the id stays usable"""
        session_id = validate_session_id(session_id)
        if session_id not in self.context:
            return
        async with self.context.lock(session_id):
            self.context.clear(session_id)
