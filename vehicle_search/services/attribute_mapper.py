"""
Attribute Mapper
Converts NLU entities into typed search constraints for the current turn
"""
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple
import logging

from pydantic import BaseModel

from vehicle_search.models import (
    ConstraintGroup,
    ConstraintKind,
    ConstraintOperator,
    Entity,
    NLUResult,
    SearchConstraint,
)
from vehicle_search.utils.parsing import parse_date, parse_number

logger = logging.getLogger(__name__)


def _parse_text(raw: str) -> Optional[str]:
    text = " ".join(str(raw).split())
    return text or None


def _parse_year_start(raw: str):
    return parse_date(raw)


def _parse_year_end(raw: str):
    return parse_date(raw, end_of_year=True)


class ConstraintTemplate(NamedTuple):
    field_name: str
    operator: ConstraintOperator
    kind: ConstraintKind
    parse: Callable[[str], object]


# Entity type -> constraint template
ENTITY_TEMPLATES: Dict[str, ConstraintTemplate] = {
    "make": ConstraintTemplate("make", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "model": ConstraintTemplate("model", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "derivative": ConstraintTemplate("derivative", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "exclude_make": ConstraintTemplate("make", ConstraintOperator.NOT_EQUALS, ConstraintKind.EXACT, _parse_text),
    "fuel_type": ConstraintTemplate("fuel_type", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "transmission": ConstraintTemplate(
        "transmission_type", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text
    ),
    "body_type": ConstraintTemplate("body_type", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "colour": ConstraintTemplate("colour", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "location": ConstraintTemplate("sale_location", ConstraintOperator.EQUALS, ConstraintKind.EXACT, _parse_text),
    "feature": ConstraintTemplate("features", ConstraintOperator.CONTAINS, ConstraintKind.EXACT, _parse_text),
    "price_max": ConstraintTemplate(
        "price", ConstraintOperator.LESS_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "price_min": ConstraintTemplate(
        "price", ConstraintOperator.GREATER_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "mileage_max": ConstraintTemplate(
        "mileage", ConstraintOperator.LESS_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "mileage_min": ConstraintTemplate(
        "mileage", ConstraintOperator.GREATER_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "engine_size_max": ConstraintTemplate(
        "engine_size", ConstraintOperator.LESS_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "engine_size_min": ConstraintTemplate(
        "engine_size", ConstraintOperator.GREATER_THAN_OR_EQUAL, ConstraintKind.RANGE, parse_number
    ),
    "year_min": ConstraintTemplate(
        "registration_date", ConstraintOperator.GREATER_THAN_OR_EQUAL, ConstraintKind.RANGE, _parse_year_start
    ),
    "year_max": ConstraintTemplate(
        "registration_date", ConstraintOperator.LESS_THAN_OR_EQUAL, ConstraintKind.RANGE, _parse_year_end
    ),
    "qualitative": ConstraintTemplate(
        "description", ConstraintOperator.CONTAINS, ConstraintKind.SEMANTIC, _parse_text
    ),
}


class DroppedEntity(BaseModel):
    """An entity the mapper could not turn into a constraint"""

    entity_type: str
    raw_value: str
    reason: str

    class Config:
        frozen = True


class AttributeMapping(BaseModel):
    """Constraints for the current turn plus anything that was dropped"""

    group: ConstraintGroup = ConstraintGroup()
    dropped: Tuple[DroppedEntity, ...] = ()

    class Config:
        frozen = True

    @property
    def constraints(self) -> Tuple[SearchConstraint, ...]:
        return self.group.constraints


def map_entity(entity: Entity) -> Tuple[Optional[SearchConstraint], Optional[str]]:
    """
    Map a single entity through its template

    Args:
        entity: NLU entity

    Returns:
        (constraint, None) on success, (None, reason) when dropped
    """
    template = ENTITY_TEMPLATES.get(entity.type)
    if template is None:
        return None, f"unrecognised entity type '{entity.type}'"

    value = template.parse(entity.value)
    if value is None:
        return None, f"could not parse '{entity.value}' for {template.field_name}"

    try:
        constraint = SearchConstraint(
            field_name=template.field_name,
            operator=template.operator,
            value=value,
            kind=template.kind,
        )
    except ValueError as e:
        return None, f"invalid value for {template.field_name}: {e}"

    return constraint, None


def map_entities(nlu_result: Optional[NLUResult]) -> AttributeMapping:
    """
    Convert NLU output into this turn's constraint group

    Unrecognised entity types and unparsable values are dropped with a
    warning; mapping never raises for bad entity data.

    Args:
        nlu_result: NLU output for the current turn (None is treated as empty)

    Returns:
        AttributeMapping with the constraint group and dropped entities
    """
    if nlu_result is None:
        return AttributeMapping()

    constraints: List[SearchConstraint] = []
    dropped: List[DroppedEntity] = []

    for entity in nlu_result.entities:
        constraint, reason = map_entity(entity)
        if constraint is None:
            logger.warning(f"Dropping entity {entity.type}={entity.value!r}: {reason}")
            dropped.append(DroppedEntity(entity_type=entity.type, raw_value=entity.value, reason=reason))
            continue
        if constraint not in constraints:
            constraints.append(constraint)

    logger.debug(f"Mapped {len(constraints)} constraints, dropped {len(dropped)} entities")

    return AttributeMapping(group=ConstraintGroup(constraints=tuple(constraints)), dropped=tuple(dropped))
