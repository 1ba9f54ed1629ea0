"""
Result Diversity
Reranks fused results so one make or model does not crowd out the rest

Results are walked in rank order. A vehicle whose make already has
max_per_make places, or whose make and model already have max_per_model,
is moved behind the diverse results instead of being dropped, so a narrow
catalogue still fills the page.
"""
from collections import Counter
from typing import List, Sequence, Tuple
import logging

from vehicle_search.models import VehicleResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_MAKE = 3
DEFAULT_MAX_PER_MODEL = 2


def diversify(
    results: Sequence[VehicleResult],
    max_per_make: int = DEFAULT_MAX_PER_MAKE,
    max_per_model: int = DEFAULT_MAX_PER_MODEL
) -> List[VehicleResult]:
    """
    Limit vehicles per make and per model at the top of a ranking

    Results without a vehicle record have no make or model and keep their
    place.

    Args:
        results: Results in rank order
        max_per_make: Places allowed per make before demotion
        max_per_model: Places allowed per make and model before demotion

    Returns:
        Same results, diverse ones first, each part in its original order
    """
    make_count: Counter = Counter()
    model_count: Counter = Counter()
    diverse: List[VehicleResult] = []
    demoted: List[VehicleResult] = []

    for result in results:
        vehicle = result.vehicle
        if vehicle is None:
            diverse.append(result)
            continue

        model_key: Tuple[str, str] = (vehicle.make, vehicle.model)
        if make_count[vehicle.make] >= max_per_make or model_count[model_key] >= max_per_model:
            demoted.append(result)
            continue

        make_count[vehicle.make] += 1
        model_count[model_key] += 1
        diverse.append(result)

    if demoted:
        logger.debug(
            f"Diversity moved {len(demoted)} of {len(results)} results down: "
            f"{[r.vehicle_id for r in demoted]}"
        )

    return diverse + demoted
