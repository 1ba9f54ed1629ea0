"""
Tests for make/model diversity reranking
"""
import pytest

from vehicle_search.models import ScoreBreakdown, Vehicle, VehicleResult
from vehicle_search.services.diversity import diversify


def ranked(*specs):
    """Results in rank order from (id, make, model) triples; make None leaves the result unhydrated"""
    results = []
    for position, (vehicle_id, make, model) in enumerate(specs):
        score = 1.0 / (position + 1)
        vehicle = Vehicle(id=vehicle_id, make=make, model=model) if make else None
        results.append(VehicleResult(
            vehicle_id=vehicle_id,
            vehicle=vehicle,
            score=score,
            score_breakdown=ScoreBreakdown(final_score=score),
        ))
    return results


def ids(results):
    return [r.vehicle_id for r in results]


def test_model_quota_demotes_third_of_a_model():
    """Test a third result of one model moves behind the others"""
    results = ranked(
        ("a", "BMW", "3 Series"),
        ("b", "BMW", "3 Series"),
        ("c", "BMW", "3 Series"),
        ("d", "Audi", "A4"),
    )

    assert ids(diversify(results)) == ["a", "b", "d", "c"]


def test_make_quota_demotes_fourth_of_a_make():
    """Test a fourth result of one make moves behind the others"""
    results = ranked(
        ("a", "BMW", "1 Series"),
        ("b", "BMW", "3 Series"),
        ("c", "BMW", "5 Series"),
        ("d", "BMW", "X5"),
        ("e", "Audi", "A4"),
    )

    assert ids(diversify(results)) == ["a", "b", "c", "e", "d"]


def test_demoted_results_keep_their_order():
    """Test nothing is dropped and demoted results stay in rank order"""
    results = ranked(*[(f"v{i}", "Ford", "Focus") for i in range(5)])

    diversified = diversify(results)

    assert ids(diversified) == ["v0", "v1", "v2", "v3", "v4"]
    assert len(diversified) == len(results)


def test_custom_quotas():
    """Test quotas are configurable"""
    results = ranked(("a", "BMW", "3 Series"), ("b", "BMW", "1 Series"), ("c", "Audi", "A4"))

    assert ids(diversify(results, max_per_make=1, max_per_model=1)) == ["a", "c", "b"]


def test_unhydrated_results_keep_their_place():
    """Test results without a vehicle record are never demoted"""
    results = ranked(
        ("a", "BMW", "3 Series"),
        ("x", None, None),
        ("b", "BMW", "3 Series"),
        ("c", "BMW", "3 Series"),
        ("y", None, None),
    )

    assert ids(diversify(results)) == ["a", "x", "b", "y", "c"]


def test_empty_ranking():
    assert diversify([]) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
