"""
Strategy Selector
Chooses retrieval approaches and their weights from a composed query's constraints
"""
from typing import Tuple
import logging

from vehicle_search.errors import ValidationError
from vehicle_search.models import (
    ComposedQuery,
    ConstraintKind,
    SearchApproach,
    SearchStrategy,
    StrategyType,
)

logger = logging.getLogger(__name__)

# Each Exact/Range constraint adds this much exact weight in a hybrid search
EXACT_WEIGHT_PER_CONSTRAINT = 0.15
MAX_EXACT_WEIGHT = 0.7


def count_constraints(query: ComposedQuery) -> Tuple[int, int]:
    """
    Count distinct constraints by kind across all groups

    A raw query string with no groups counts as one implicit semantic constraint.

    Returns:
        (exact_count, semantic_count)
    """
    constraints = query.constraints()
    exact_count = sum(1 for c in constraints if c.kind in (ConstraintKind.EXACT, ConstraintKind.RANGE))
    semantic_count = sum(1 for c in constraints if c.kind == ConstraintKind.SEMANTIC)

    if not query.groups and query.raw_text:
        semantic_count += 1

    return exact_count, semantic_count


def hybrid_weights(exact_count: int) -> Tuple[float, float]:
    """
    Exact and semantic weights for a hybrid search

    Examples:
        4 exact constraints -> (0.6, 0.4)
        6 exact constraints -> (0.7, 0.3), capped
    """
    exact_weight = round(min(MAX_EXACT_WEIGHT, exact_count * EXACT_WEIGHT_PER_CONSTRAINT), 10)
    return exact_weight, round(1.0 - exact_weight, 10)


def determine_strategy(query: ComposedQuery) -> SearchStrategy:
    """
    Determine the search strategy for a composed query

    Pure function of the query's constraint composition.

    Args:
        query: Composed query

    Returns:
        SearchStrategy

    Raises:
        ValidationError: If query is None
    """
    if query is None:
        raise ValidationError("composed query is required")

    exact_count, semantic_count = count_constraints(query)

    if exact_count > 0 and semantic_count > 0:
        exact_weight, semantic_weight = hybrid_weights(exact_count)
        strategy = SearchStrategy(
            type=StrategyType.HYBRID,
            approaches=(SearchApproach.EXACT_MATCH, SearchApproach.SEMANTIC_SEARCH),
            weights={
                SearchApproach.EXACT_MATCH: exact_weight,
                SearchApproach.SEMANTIC_SEARCH: semantic_weight,
            },
            should_rerank=True,
        )
    elif exact_count > 0:
        strategy = SearchStrategy(
            type=StrategyType.EXACT_ONLY,
            approaches=(SearchApproach.EXACT_MATCH,),
            weights={SearchApproach.EXACT_MATCH: 1.0},
        )
    else:
        # Semantic constraints only, or nothing at all: search the raw text
        strategy = SearchStrategy(
            type=StrategyType.SEMANTIC_ONLY,
            approaches=(SearchApproach.SEMANTIC_SEARCH,),
            weights={SearchApproach.SEMANTIC_SEARCH: 1.0},
        )

    logger.debug(
        f"Strategy {strategy.type.value} for exact={exact_count}, semantic={semantic_count}"
    )

    return strategy
