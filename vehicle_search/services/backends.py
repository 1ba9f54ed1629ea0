"""
Remote retrieval backends
- SupabaseVehicleBackend: exact filtering and vehicle records from a Supabase table
- HttpSemanticBackend: similarity search through an HTTP service
"""
import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
import logging

import httpx
from supabase import Client

from vehicle_search.config import settings
from vehicle_search.errors import BackendError, BackendTimeoutError
from vehicle_search.models import (
    ConstraintGroup,
    ConstraintOperator,
    ExactHit,
    FilterExpression,
    SearchConstraint,
    SemanticHit,
    Vehicle,
)
from vehicle_search.utils.matching import matching_group

logger = logging.getLogger(__name__)


POSTGREST_OPERATORS = {
    ConstraintOperator.EQUALS: "eq",
    ConstraintOperator.NOT_EQUALS: "neq",
    ConstraintOperator.LESS_THAN: "lt",
    ConstraintOperator.LESS_THAN_OR_EQUAL: "lte",
    ConstraintOperator.GREATER_THAN: "gt",
    ConstraintOperator.GREATER_THAN_OR_EQUAL: "gte",
    ConstraintOperator.CONTAINS: "cs",
}


def postgrest_literal(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def apply_constraint(query, constraint: SearchConstraint):
    """Add one constraint to a PostgREST query builder"""
    field = constraint.field_name
    value = postgrest_literal(constraint.value)

    if constraint.operator == ConstraintOperator.CONTAINS:
        return query.contains(field, [value])
    if constraint.operator == ConstraintOperator.EQUALS and isinstance(constraint.value, str):
        return query.ilike(field, value)
    if constraint.operator == ConstraintOperator.EQUALS:
        return query.eq(field, value)
    if constraint.operator == ConstraintOperator.NOT_EQUALS:
        return query.neq(field, value)
    if constraint.operator == ConstraintOperator.LESS_THAN:
        return query.lt(field, value)
    if constraint.operator == ConstraintOperator.LESS_THAN_OR_EQUAL:
        return query.lte(field, value)
    if constraint.operator == ConstraintOperator.GREATER_THAN:
        return query.gt(field, value)
    return query.gte(field, value)


def or_clause(constraint: SearchConstraint) -> str:
    """Render a constraint inside a PostgREST or=(...) logic tree"""
    value = postgrest_literal(constraint.value).replace('"', '\\"')
    if constraint.operator == ConstraintOperator.CONTAINS:
        return f'{constraint.field_name}.cs.{{"{value}"}}'
    operator = POSTGREST_OPERATORS[constraint.operator]
    if constraint.operator == ConstraintOperator.EQUALS and isinstance(constraint.value, str):
        operator = "ilike"
    return f'{constraint.field_name}.{operator}."{value}"'


def or_filter(groups: Sequence[ConstraintGroup]) -> str:
    return ",".join(
        "and(" + ",".join(or_clause(c) for c in group.constraints) + ")"
        for group in groups
    )

def parse_vehicles(rows: Sequence[Any]) -> List[Vehicle]:
    """
    Validate Supabase rows into Vehicles

    Raises:
        BackendError: If a row is not a valid vehicle record
    """
    try:
        return [Vehicle.model_validate(row) for row in rows]
    except (TypeError, ValueError) as e:
        logger.error(f"Supabase returned a malformed vehicle row: {e}")
        raise BackendError(f"Malformed vehicle row: {e}") from e


def parse_semantic_hits(data: Any) -> List[SemanticHit]:
    """
    Parse a similarity service body into SemanticHits

    Items without a vehicle_id are skipped; scores are clamped to [0, 1].

    Raises:
        BackendError: If the body or an item is malformed
    """
    try:
        return [
            SemanticHit(
                vehicle_id=str(item["vehicle_id"]),
                similarity_score=max(0.0, min(1.0, float(item.get("score", 0.0)))),
            )
            for item in data.get("results", [])
            if item.get("vehicle_id") is not None
        ]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error(f"Semantic service returned a malformed body: {e}")
        raise BackendError(f"Semantic service returned a malformed body: {e}") from e


class SupabaseVehicleBackend:
    """Exact-filter backend and vehicle store over a Supabase table"""

    def __init__(self, client: Client, table: Optional[str] = None):
        self.client = client
        self.table = table or settings.supabase_vehicles_table

    def _select(self, filter_expression: FilterExpression, limit: int) -> List[Dict[str, Any]]:
        query = self.client.table(self.table).select("*")

        if len(filter_expression.groups) == 1:
            for constraint in filter_expression.groups[0].constraints:
                query = apply_constraint(query, constraint)
        elif filter_expression.groups:
            query = query.or_(or_filter(filter_expression.groups))

        response = query.order("price").limit(limit).execute()
        return response.data or []

    async def query(self, filter_expression: FilterExpression, limit: int) -> List[ExactHit]:
        """
        Query vehicles matching the filter

        Args:
            filter_expression: Exact/Range groups
            limit: Maximum rows

        Returns:
            ExactHits ordered by price

        Raises:
            BackendError: If the Supabase request fails or returns malformed rows
        """
        try:
            rows = await asyncio.to_thread(self._select, filter_expression, limit)
        except Exception as e:
            logger.error(f"Supabase vehicle query failed for '{filter_expression}': {e}")
            raise BackendError(f"Supabase query failed: {e}") from e

        hits = []
        for vehicle in parse_vehicles(rows):
            group = matching_group(vehicle, filter_expression.groups)
            matched = len(group.constraints) if group else filter_expression.constraint_count()
            hits.append(ExactHit(vehicle_id=vehicle.id, matched_field_count=matched))

        logger.debug(f"Supabase filter '{filter_expression}' returned {len(hits)} rows")
        return hits

    def _fetch(self, vehicle_ids: Sequence[str]) -> List[Dict[str, Any]]:
        response = self.client.table(self.table).select("*").in_("id", list(vehicle_ids)).execute()
        return response.data or []

    async def get_many(self, vehicle_ids: Sequence[str]) -> Dict[str, Vehicle]:
        if not vehicle_ids:
            return {}
        try:
            rows = await asyncio.to_thread(self._fetch, vehicle_ids)
        except Exception as e:
            logger.error(f"Supabase vehicle fetch failed: {e}")
            raise BackendError(f"Supabase fetch failed: {e}") from e

        vehicles = parse_vehicles(rows)
        return {vehicle.id: vehicle for vehicle in vehicles}


class HttpSemanticBackend:
    """
    Similarity search through an HTTP service

    POST {base_url}/similarity with {"query": ..., "top_k": ...}; the service
    answers {"results": [{"vehicle_id": ..., "score": ...}, ...]}.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or settings.semantic_service_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("A semantic service URL is required")
        self.api_key = api_key or settings.semantic_service_api_key
        self.timeout = timeout or settings.backend_timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def query(self, text: str, limit: int) -> List[SemanticHit]:
        """
        Query the similarity service

        Raises:
            BackendTimeoutError: If the service does not answer in time
            BackendError: On any other transport or HTTP failure, or a malformed body
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = await self._client.post(
                f"{self.base_url}/similarity",
                headers=headers,
                json={"query": text, "top_k": limit},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Semantic service timed out: {e}")
            raise BackendTimeoutError(f"Semantic service timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error querying semantic service: {e}")
            raise BackendError(f"Semantic service request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Semantic service returned invalid JSON: {e}")
            raise BackendError(f"Semantic service returned invalid JSON: {e}") from e

        hits = parse_semantic_hits(data)
        hits.sort(key=lambda hit: (-hit.similarity_score, hit.vehicle_id))
        return hits[:limit]

    async def aclose(self) -> None:
        await self._client.aclose()
