"""
Tests for entity extraction module
"""
import pytest
from vehicle_search.services.entity_extraction import (
    extract_entities,
    find_terms,
    resolve_make,
    FUEL_TYPES,
)


def values(entities, entity_type):
    return [e.value for e in entities if e.type == entity_type]


def test_extract_make_and_price():
    """Test make and price ceiling extraction"""
    entities = extract_entities("BMW under £20000")

    assert values(entities, "make") == ["BMW"]
    assert values(entities, "price_max") == ["20000"]
    assert values(entities, "year_min") == []


def test_extract_price_with_thousands_suffix():
    """Test '20k' style prices"""
    entities = extract_entities("a hatchback under 20k")

    assert values(entities, "price_max") == ["20k"]
    assert values(entities, "body_type") == ["Hatchback"]


def test_extract_mileage_is_not_price():
    """Test mileage ceilings require a distance unit"""
    entities = extract_entities("Ford Focus under 50,000 miles")

    assert values(entities, "mileage_max") == ["50000"]
    assert values(entities, "price_max") == []
    assert values(entities, "model") == ["Focus"]


def test_extract_low_mileage():
    """Test 'low mileage' maps to a default ceiling"""
    entities = extract_entities("low mileage diesel")

    assert values(entities, "mileage_max") == ["30000"]
    assert values(entities, "fuel_type") == ["Diesel"]


def test_extract_year_range():
    """Test year ranges"""
    entities = extract_entities("Audi A4 between 2015 and 2018")

    assert values(entities, "year_min") == ["2015"]
    assert values(entities, "year_max") == ["2018"]


def test_extract_strict_year_bounds():
    """Test 'after' and 'before' exclude the named year"""
    after = extract_entities("Golf after 2018")
    before = extract_entities("Golf before 2018")

    assert values(after, "year_min") == ["2019"]
    assert values(before, "year_max") == ["2017"]


def test_extract_bare_year():
    """Test a bare year is read as a minimum with lower confidence"""
    entities = extract_entities("2018 BMW")

    year = [e for e in entities if e.type == "year_min"]
    assert len(year) == 1
    assert year[0].value == "2018"
    assert year[0].confidence == 0.7


def test_extract_price_around():
    """Test 'around' becomes a +/-10% band"""
    entities = extract_entities("Toyota around £15k")

    assert values(entities, "price_min") == ["13500"]
    assert values(entities, "price_max") == ["16500"]


def test_extract_make_synonym():
    """Test make synonyms"""
    entities = extract_entities("cheap beamer")

    assert values(entities, "make") == ["BMW"]


def test_extract_misspelled_make():
    """Test fuzzy matching of misspelled makes"""
    entities = extract_entities("toyotta corolla")

    assert "Toyota" in values(entities, "make")
    assert values(entities, "model") == ["Corolla"]


def test_model_implies_make():
    """Test a model name implies its make"""
    entities = extract_entities("3 Series estate")

    assert values(entities, "model") == ["3 Series"]
    assert values(entities, "make") == ["BMW"]


def test_entities_follow_text_order():
    """Test each make is followed by its own model"""
    entities = extract_entities("BMW 3 Series and Audi A4")

    assert [(e.type, e.value) for e in entities] == [
        ("make", "BMW"),
        ("model", "3 Series"),
        ("make", "Audi"),
        ("model", "A4"),
    ]


def test_implied_make_precedes_its_model():
    """Test an implied make is placed just before the model that implies it"""
    entities = extract_entities("a Golf or a Corolla")

    assert [(e.type, e.value) for e in entities] == [
        ("make", "Volkswagen"),
        ("model", "Golf"),
        ("make", "Toyota"),
        ("model", "Corolla"),
    ]


def test_extract_exclusion():
    """Test excluded makes are not extracted as makes"""
    entities = extract_entities("an SUV but not a BMW")

    assert values(entities, "exclude_make") == ["BMW"]
    assert values(entities, "make") == []


def test_extract_vocabulary_entities():
    """Test transmission, fuel, colour, feature and location extraction"""
    entities = extract_entities("black automatic diesel estate with heated seats in Leeds")

    assert values(entities, "transmission") == ["Automatic"]
    assert values(entities, "fuel_type") == ["Diesel"]
    assert values(entities, "body_type") == ["Estate"]
    assert values(entities, "colour") == ["Black"]
    assert values(entities, "feature") == ["Heated Seats"]
    assert values(entities, "location") == ["Leeds"]


def test_extract_qualitative_terms():
    """Test qualitative adjectives"""
    entities = extract_entities("reliable economical car")

    assert values(entities, "qualitative") == ["reliable", "economical"]
    assert values(entities, "make") == []


def test_find_terms_prefers_longest():
    """Test 'plug-in hybrid' is not read as plain 'hybrid'"""
    assert find_terms("a plug-in hybrid saloon", FUEL_TYPES) == ["Plug-in Hybrid"]


def test_resolve_make_rejects_short_tokens():
    """Test short words are never fuzzy matched"""
    assert resolve_make("kai") is None
    assert resolve_make("vw") == ("Volkswagen", 0.95)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
