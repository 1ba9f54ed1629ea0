"""
Tests for the strategy selector
"""
import pytest

from vehicle_search.errors import ValidationError
from vehicle_search.models import (
    ComposedQuery,
    ConstraintKind,
    ConstraintOperator,
    QueryType,
    SearchApproach,
    SearchConstraint,
    StrategyType,
)
from vehicle_search.services.query_composer import compose_query
from vehicle_search.services.strategy_selector import (
    count_constraints,
    determine_strategy,
    hybrid_weights,
)


def exact(field, value):
    return SearchConstraint(field_name=field, operator=ConstraintOperator.EQUALS, value=value, kind=ConstraintKind.EXACT)


def price_max(value):
    return SearchConstraint(
        field_name="price",
        operator=ConstraintOperator.LESS_THAN_OR_EQUAL,
        value=value,
        kind=ConstraintKind.RANGE,
    )


def semantic(value):
    return SearchConstraint(
        field_name="description",
        operator=ConstraintOperator.CONTAINS,
        value=value,
        kind=ConstraintKind.SEMANTIC,
    )


def test_exact_only():
    """Test 'BMW under £20000' selects exact only with weight 1.0"""
    strategy = determine_strategy(compose_query([exact("make", "BMW"), price_max(20000)]))

    assert strategy.type == StrategyType.EXACT_ONLY
    assert strategy.approaches == (SearchApproach.EXACT_MATCH,)
    assert strategy.weight(SearchApproach.EXACT_MATCH) == 1.0
    assert not strategy.should_rerank


def test_semantic_only():
    """Test 'reliable economical car' selects semantic only"""
    strategy = determine_strategy(compose_query([semantic("reliable"), semantic("economical")]))

    assert strategy.type == StrategyType.SEMANTIC_ONLY
    assert strategy.approaches == (SearchApproach.SEMANTIC_SEARCH,)
    assert strategy.weight(SearchApproach.SEMANTIC_SEARCH) == 1.0


def test_hybrid_weights_for_two_exact():
    """Test 'reliable BMW under £20000' selects hybrid 0.3 / 0.7"""
    strategy = determine_strategy(
        compose_query([semantic("reliable"), exact("make", "BMW"), price_max(20000)])
    )

    assert strategy.type == StrategyType.HYBRID
    assert strategy.approaches == (SearchApproach.EXACT_MATCH, SearchApproach.SEMANTIC_SEARCH)
    assert strategy.weight(SearchApproach.EXACT_MATCH) == pytest.approx(0.3)
    assert strategy.weight(SearchApproach.SEMANTIC_SEARCH) == pytest.approx(0.7)
    assert strategy.should_rerank


@pytest.mark.parametrize("exact_count,expected", [
    (1, (0.15, 0.85)),
    (4, (0.6, 0.4)),
    (6, (0.7, 0.3)),
    (10, (0.7, 0.3)),
])
def test_hybrid_weight_formula(exact_count, expected):
    """Test exact weight grows 0.15 per constraint and caps at 0.7"""
    exact_weight, semantic_weight = hybrid_weights(exact_count)

    assert exact_weight == pytest.approx(expected[0])
    assert semantic_weight == pytest.approx(expected[1])
    assert exact_weight + semantic_weight == pytest.approx(1.0)


def test_no_constraints_searches_raw_text():
    """Test a query with no constraints falls back to semantic search"""
    composed = ComposedQuery(query_type=QueryType.SIMPLE, raw_text="something comfy for the school run")

    assert count_constraints(composed) == (0, 1)
    assert determine_strategy(composed).type == StrategyType.SEMANTIC_ONLY


def test_or_groups_count_distinct_constraints():
    """Test shared constraints across OR groups are counted once"""
    composed = compose_query(
        [exact("make", "BMW"), exact("make", "Audi"), price_max(20000), semantic("sporty")],
        raw_text="sporty BMW or Audi under 20000",
    )

    assert len(composed.groups) == 2
    assert count_constraints(composed) == (3, 1)


def test_strategy_is_deterministic():
    """Test identical queries give identical strategies"""
    composed = compose_query([semantic("safe"), exact("make", "Volvo")])

    assert determine_strategy(composed) == determine_strategy(composed)


def test_none_query_is_rejected():
    """Test a missing query raises ValidationError"""
    with pytest.raises(ValidationError):
        determine_strategy(None)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
