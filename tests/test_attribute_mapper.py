"""
Tests for the attribute mapper
"""
import pytest
from datetime import date

from vehicle_search.models import (
    ConstraintKind,
    ConstraintOperator,
    Entity,
    IntentType,
    NLUResult,
    SearchConstraint,
)
from vehicle_search.services.attribute_mapper import map_entities, map_entity


def nlu(*entities):
    return NLUResult(
        intent=IntentType.SEARCH,
        confidence=0.8,
        entities=[Entity(type=t, value=v) for t, v in entities],
    )


def test_map_make_and_price():
    """Test make maps to Equals/Exact and price ceiling to LessThanOrEqual/Range"""
    mapping = map_entities(nlu(("make", "BMW"), ("price_max", "£20,000")))

    assert mapping.constraints == (
        SearchConstraint(field_name="make", operator=ConstraintOperator.EQUALS, value="BMW", kind=ConstraintKind.EXACT),
        SearchConstraint(
            field_name="price",
            operator=ConstraintOperator.LESS_THAN_OR_EQUAL,
            value=20000.0,
            kind=ConstraintKind.RANGE,
        ),
    )
    assert mapping.dropped == ()


def test_map_qualitative_to_semantic():
    """Test qualitative adjectives become Contains/Semantic on description"""
    mapping = map_entities(nlu(("qualitative", "reliable"), ("qualitative", "economical")))

    assert [c.kind for c in mapping.constraints] == [ConstraintKind.SEMANTIC, ConstraintKind.SEMANTIC]
    assert all(c.field_name == "description" for c in mapping.constraints)
    assert all(c.operator == ConstraintOperator.CONTAINS for c in mapping.constraints)
    assert [c.value for c in mapping.constraints] == ["reliable", "economical"]


def test_map_years_to_registration_dates():
    """Test year bounds map to the start and end of the year"""
    mapping = map_entities(nlu(("year_min", "2018"), ("year_max", "2020")))

    lower, upper = mapping.constraints
    assert lower.field_name == "registration_date"
    assert lower.operator == ConstraintOperator.GREATER_THAN_OR_EQUAL
    assert lower.value == date(2018, 1, 1)
    assert upper.operator == ConstraintOperator.LESS_THAN_OR_EQUAL
    assert upper.value == date(2020, 12, 31)


def test_map_renamed_fields():
    """Test entity types whose field names differ"""
    mapping = map_entities(nlu(
        ("transmission", "Automatic"),
        ("location", "Leeds"),
        ("feature", "Heated Seats"),
        ("exclude_make", "Ford"),
    ))

    fields = [(c.field_name, c.operator) for c in mapping.constraints]
    assert fields == [
        ("transmission_type", ConstraintOperator.EQUALS),
        ("sale_location", ConstraintOperator.EQUALS),
        ("features", ConstraintOperator.CONTAINS),
        ("make", ConstraintOperator.NOT_EQUALS),
    ]
    assert mapping.constraints[2].kind == ConstraintKind.EXACT


def test_map_thousands_suffix():
    """Test '20k' prices and '30,000 miles' mileages"""
    mapping = map_entities(nlu(("price_max", "20k"), ("mileage_max", "30,000 miles")))

    assert [c.value for c in mapping.constraints] == [20000.0, 30000.0]


def test_unknown_entity_type_is_dropped():
    """Test unrecognised entity types are dropped, not fatal"""
    mapping = map_entities(nlu(("make", "Audi"), ("horoscope", "leo")))

    assert len(mapping.constraints) == 1
    assert len(mapping.dropped) == 1
    assert mapping.dropped[0].entity_type == "horoscope"
    assert "unrecognised" in mapping.dropped[0].reason


def test_unparsable_value_is_dropped():
    """Test numeric values that fail to parse are dropped"""
    mapping = map_entities(nlu(("price_max", "lots"), ("year_min", "the nineties")))

    assert mapping.constraints == ()
    assert [d.entity_type for d in mapping.dropped] == ["price_max", "year_min"]


def test_duplicate_entities_collapse():
    """Test the same entity twice yields one constraint"""
    mapping = map_entities(nlu(("make", "BMW"), ("make", "BMW")))

    assert len(mapping.constraints) == 1


def test_missing_nlu_result():
    """Test None is treated as no entities"""
    mapping = map_entities(None)

    assert mapping.constraints == ()
    assert mapping.dropped == ()


def test_map_entity_reports_reason():
    """Test map_entity returns the drop reason"""
    constraint, reason = map_entity(Entity(type="mileage_min", value="loads"))

    assert constraint is None
    assert "mileage" in reason


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
