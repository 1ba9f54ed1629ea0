"""
In-memory vehicle catalog
Serves as vehicle store, exact-filter backend and fuzzy similarity backend
for local runs and tests
"""
import json
from pathlib import Path
from rapidfuzz import fuzz, process
from typing import Dict, Iterable, List, Optional, Sequence, Union
import logging

from vehicle_search.models import ExactHit, FilterExpression, SemanticHit, Vehicle
from vehicle_search.utils.matching import matching_group

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "vehicles.json"


class InMemoryVehicleCatalog:
    """Vehicle records held in a dict, keyed by id"""

    def __init__(self, vehicles: Iterable[Vehicle] = ()):
        self._vehicles: Dict[str, Vehicle] = {}
        for vehicle in vehicles:
            self._vehicles[vehicle.id] = vehicle

    @classmethod
    def from_json(cls, path: Optional[Union[str, Path]] = None) -> "InMemoryVehicleCatalog":
        """
        Load a catalog from a JSON array of vehicle records

        Args:
            path: JSON file; defaults to the bundled sample catalog

        Returns:
            InMemoryVehicleCatalog
        """
        catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
        with open(catalog_path, encoding="utf-8") as f:
            records = json.load(f)

        vehicles = [Vehicle.model_validate(record) for record in records]
        logger.info(f"Loaded {len(vehicles)} vehicles from {catalog_path}")
        return cls(vehicles)

    def __len__(self) -> int:
        return len(self._vehicles)

    def vehicles(self) -> List[Vehicle]:
        return list(self._vehicles.values())

    async def get_many(self, vehicle_ids: Sequence[str]) -> Dict[str, Vehicle]:
        return {
            vehicle_id: self._vehicles[vehicle_id]
            for vehicle_id in vehicle_ids
            if vehicle_id in self._vehicles
        }


class InMemoryExactBackend:
    """Evaluates filter expressions against the catalog"""

    def __init__(self, catalog: InMemoryVehicleCatalog):
        self.catalog = catalog

    async def query(self, filter_expression: FilterExpression, limit: int) -> List[ExactHit]:
        """
        Vehicles satisfying at least one group of the filter

        Ordered by matched constraint count, then price, then id.
        """
        hits = []
        for vehicle in self.catalog.vehicles():
            group = matching_group(vehicle, filter_expression.groups)
            if group is None:
                continue
            hits.append((vehicle, len(group.constraints)))

        hits.sort(key=lambda hit: (-hit[1], hit[0].price if hit[0].price is not None else float("inf"), hit[0].id))

        logger.debug(f"Exact filter '{filter_expression}' matched {len(hits)} vehicles")

        return [
            ExactHit(vehicle_id=vehicle.id, matched_field_count=count)
            for vehicle, count in hits[:limit]
        ]


class InMemorySimilarityBackend:
    """Fuzzy token similarity between the query and each vehicle's text"""

    def __init__(self, catalog: InMemoryVehicleCatalog, min_score: float = 0.0):
        self.catalog = catalog
        self.min_score = min_score

    async def query(self, text: str, limit: int) -> List[SemanticHit]:
        choices = {vehicle.id: vehicle.search_text().lower() for vehicle in self.catalog.vehicles()}
        if not choices or not text.strip():
            return []

        matches = process.extract(
            text.lower(),
            choices,
            scorer=fuzz.token_set_ratio,
            limit=None
        )

        scored = [
            (vehicle_id, score / 100.0)
            for _, score, vehicle_id in matches
            if score / 100.0 >= self.min_score
        ]
        scored.sort(key=lambda item: (-item[1], item[0]))

        return [
            SemanticHit(vehicle_id=vehicle_id, similarity_score=min(1.0, score))
            for vehicle_id, score in scored[:limit]
        ]
