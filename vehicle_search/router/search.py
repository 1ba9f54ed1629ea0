"""
Search API Router
Handles conversational search and session history endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
import uuid
import time
import logging

from vehicle_search.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    GuardrailRejection,
    ValidationError,
)
from vehicle_search.models import (
    ClearHistoryResponse,
    HistoryResponse,
    SearchRequest,
    SearchResponse,
)
from vehicle_search.dependencies import get_search_service
from vehicle_search.services import VehicleSearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    service: VehicleSearchService = Depends(get_search_service)
):
    """
    Conversational vehicle search endpoint

    Processes natural language queries through:
    1. Guardrail validation
    2. Entity extraction and attribute mapping
    3. Reference resolution against the session's previous turn
    4. Query composition and conflict resolution
    5. Strategy selection (exact, semantic or hybrid)
    6. Coordinated retrieval with rank fusion

    Returns ranked vehicles with per-result score breakdowns.
    """
    start_time = time.time()

    query_id = str(uuid.uuid4())
    session_id = request.session_id or str(uuid.uuid4())

    logger.info(f"[{query_id}] Search request for session {session_id}: {request.query}")

    try:
        outcome = await service.search(
            query=request.query,
            session_id=session_id,
            max_results=request.max_results,
            query_id=query_id
        )
    except GuardrailRejection as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except BackendTimeoutError as e:
        logger.error(f"[{query_id}] Search timed out: {e}")
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
    except BackendUnavailableError as e:
        logger.error(f"[{query_id}] Search backend unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.error(f"[{query_id}] Search failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Search failed: {str(e)}"
        )

    latency_ms = int((time.time() - start_time) * 1000)

    logger.info(
        f"[{query_id}] Search completed in {latency_ms}ms: "
        f"{len(outcome.results)} results, "
        f"strategy={outcome.strategy_used.type.value}, "
        f"conflicts={outcome.has_conflicts}, partial={outcome.partial}"
    )

    return SearchResponse(
        query_id=query_id,
        session_id=session_id,
        query=request.query,
        latency_ms=latency_ms,
        **outcome.model_dump()
    )


@router.get("/sessions/{session_id}/history", response_model=HistoryResponse)
async def get_history(
    session_id: str,
    service: VehicleSearchService = Depends(get_search_service)
):
    """Conversation turns for a session, oldest first"""
    try:
        turns = await service.get_history(session_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return HistoryResponse(session_id=session_id, turns=turns)


@router.delete("/sessions/{session_id}", response_model=ClearHistoryResponse)
async def clear_history(
    session_id: str,
    service: VehicleSearchService = Depends(get_search_service)
):
    """Discard a session's conversation history"""
    try:
        await service.clear_history(session_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    logger.info(f"Cleared session {session_id}")

    return ClearHistoryResponse(session_id=session_id)
