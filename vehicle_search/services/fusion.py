"""
Fusion Engine
Combines ranked candidate lists from the exact and semantic backends with
weighted Reciprocal Rank Fusion (RRF)

    fused = exact_weight / (k + exact_rank) + semantic_weight / (k + semantic_rank)

Ranks are 1-based. A list the vehicle is absent from contributes nothing.
"""
from typing import Dict, List, Sequence, Tuple
import logging

from vehicle_search.models import ScoreBreakdown, VehicleResult

logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60

# (vehicle_id, raw normalised score) in rank order
RankedList = Sequence[Tuple[str, float]]


def deduplicate_ranked(ranked: RankedList) -> List[Tuple[str, float]]:
    """
    Remove repeated vehicle ids, keeping the best-ranked occurrence

    Args:
        ranked: Ranked (vehicle_id, score) pairs

    Returns:
        Deduplicated list in the original order
    """
    seen = set()
    unique = []
    for vehicle_id, score in ranked:
        if vehicle_id in seen:
            continue
        seen.add(vehicle_id)
        unique.append((vehicle_id, score))
    return unique


def rank_positions(ranked: RankedList) -> Dict[str, Tuple[int, float]]:
    """Map vehicle id to (1-based rank, raw score)"""
    return {
        vehicle_id: (rank, score)
        for rank, (vehicle_id, score) in enumerate(deduplicate_ranked(ranked), start=1)
    }


def reciprocal_rank_fusion(
    exact: RankedList,
    semantic: RankedList,
    exact_weight: float,
    semantic_weight: float,
    k: int = DEFAULT_RRF_K
) -> List[VehicleResult]:
    """
    Fuse two ranked lists into one ordering

    Ordering is by fused score descending, then raw semantic score
    descending, then vehicle id, so identical inputs always produce the
    same output.

    Args:
        exact: Exact-backend results as (vehicle_id, exact match score)
        semantic: Semantic-backend results as (vehicle_id, similarity)
        exact_weight: Weight of the exact list
        semantic_weight: Weight of the semantic list
        k: Smoothing constant

    Returns:
        VehicleResults with score breakdowns, best first
    """
    exact_positions = rank_positions(exact)
    semantic_positions = rank_positions(semantic)

    results = []
    for vehicle_id in dict.fromkeys(list(exact_positions) + list(semantic_positions)):
        fused = 0.0
        exact_score = 0.0
        semantic_score = 0.0

        if vehicle_id in exact_positions:
            rank, exact_score = exact_positions[vehicle_id]
            fused += exact_weight / (k + rank)

        if vehicle_id in semantic_positions:
            rank, semantic_score = semantic_positions[vehicle_id]
            fused += semantic_weight / (k + rank)

        results.append(
            VehicleResult(
                vehicle_id=vehicle_id,
                score=fused,
                score_breakdown=ScoreBreakdown(
                    exact_match_score=exact_score,
                    semantic_score=semantic_score,
                    final_score=fused,
                ),
            )
        )

    results.sort(
        key=lambda r: (-r.score, -r.score_breakdown.semantic_score, r.vehicle_id)
    )

    logger.info(
        f"RRF fusion complete: {len(results)} results from "
        f"{len(exact_positions)} exact and {len(semantic_positions)} semantic candidates"
    )

    return results
