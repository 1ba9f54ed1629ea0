"""
Entity Extraction Module
Extracts vehicle entities from natural language queries using regex + fuzzy matching
"""
import re
from rapidfuzz import fuzz, process
from typing import Dict, List, Optional, Tuple
import logging

from vehicle_search.models import Entity
from vehicle_search.models.vehicle_catalogue import KNOWN_MAKES, MAKE_SYNONYMS, MODELS_BY_MAKE

logger = logging.getLogger(__name__)


# Money or distance amount: 20000, 20,000, 19.5k, 10 grand
AMOUNT = r"£?\s*(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)\s*(k|grand)?\b"
YEAR = r"(19\d{2}|20\d{2})"
MILES = r"\s*(?:miles|mile|mi)\b"

# Regex patterns for numeric entities, applied in this order; a span consumed
# by an earlier pattern is not matched again
PATTERNS = {
    "year_range": [
        rf"\bbetween\s+{YEAR}\s+and\s+{YEAR}\b",
        rf"\b{YEAR}\s*(?:-|to)\s*{YEAR}\b",
    ],
    "year_min": [
        rf"\b(?:from|since|registered\s+from)\s+{YEAR}\b",
        rf"\b(?:newer\s+than|after|post)\s+{YEAR}\b",
    ],
    "year_max": [
        rf"\b(?:older\s+than|before|pre)\s+{YEAR}\b",
    ],
    "low_mileage": [
        r"\blow\s+(?:mileage|miles)\b",
    ],
    "mileage_max": [
        rf"\b(?:under|below|less\s+than|up\s+to|max(?:imum)?|no\s+more\s+than|fewer\s+than)\s+{AMOUNT}{MILES}",
    ],
    "mileage_min": [
        rf"\b(?:over|above|more\s+than|at\s+least|min(?:imum)?)\s+{AMOUNT}{MILES}",
    ],
    "engine_size_max": [
        r"\b(?:under|below|up\s+to|less\s+than)\s+(\d\.\d)\s*(?:l|litres?|liters?)\b",
    ],
    "engine_size_min": [
        r"\b(?:over|above|at\s+least|more\s+than)\s+(\d\.\d)\s*(?:l|litres?|liters?)\b",
    ],
    "price_range": [
        rf"\bbetween\s+{AMOUNT}\s+and\s+{AMOUNT}",
        rf"£\s*(\d{{1,3}}(?:,\d{{3}})+|\d+(?:\.\d+)?)\s*(k)?\s*(?:-|to)\s*{AMOUNT}",
    ],
    "price_around": [
        rf"\b(?:around|about|roughly|approximately)\s+{AMOUNT}",
    ],
    "price_max": [
        rf"\b(?:under|below|less\s+than|up\s+to|max(?:imum)?|no\s+more\s+than|cheaper\s+than|budget\s+(?:of\s+)?)\s*{AMOUNT}",
    ],
    "price_min": [
        rf"\b(?:over|above|more\s+than|at\s+least|min(?:imum)?|from)\s+{AMOUNT}",
    ],
    "year": [
        rf"(?<!£)\b{YEAR}\b(?!\s*(?:miles|mile|mi|k)\b)",
    ],
}

# Default ceiling for "low mileage"
LOW_MILEAGE_THRESHOLD = "30000"

FUEL_TYPES = {
    "plug-in hybrid": "Plug-in Hybrid",
    "phev": "Plug-in Hybrid",
    "hybrid": "Hybrid",
    "petrol": "Petrol",
    "diesel": "Diesel",
    "electric": "Electric",
    "ev": "Electric",
}

TRANSMISSIONS = {
    "automatic": "Automatic",
    "auto": "Automatic",
    "manual": "Manual",
}

BODY_TYPES = {
    "hatchback": "Hatchback",
    "hatch": "Hatchback",
    "saloon": "Saloon",
    "sedan": "Saloon",
    "estate": "Estate",
    "suv": "SUV",
    "4x4": "SUV",
    "coupe": "Coupe",
    "convertible": "Convertible",
    "cabriolet": "Convertible",
    "mpv": "MPV",
    "people carrier": "MPV",
    "pickup": "Pickup",
}

COLOURS = {
    "black": "Black",
    "white": "White",
    "silver": "Silver",
    "grey": "Grey",
    "gray": "Grey",
    "blue": "Blue",
    "red": "Red",
    "green": "Green",
    "orange": "Orange",
    "yellow": "Yellow",
    "brown": "Brown",
}

FEATURES = {
    "sunroof": "Sunroof",
    "panoramic roof": "Panoramic Roof",
    "sat nav": "Satellite Navigation",
    "satnav": "Satellite Navigation",
    "navigation": "Satellite Navigation",
    "heated seats": "Heated Seats",
    "leather seats": "Leather Seats",
    "leather": "Leather Seats",
    "parking sensors": "Parking Sensors",
    "reversing camera": "Reversing Camera",
    "rear camera": "Reversing Camera",
    "bluetooth": "Bluetooth",
    "cruise control": "Cruise Control",
    "apple carplay": "Apple CarPlay",
    "tow bar": "Tow Bar",
    "towbar": "Tow Bar",
}

LOCATIONS = {
    "london": "London",
    "manchester": "Manchester",
    "birmingham": "Birmingham",
    "leeds": "Leeds",
    "liverpool": "Liverpool",
    "bristol": "Bristol",
    "sheffield": "Sheffield",
    "nottingham": "Nottingham",
    "newcastle": "Newcastle",
    "glasgow": "Glasgow",
    "edinburgh": "Edinburgh",
    "cardiff": "Cardiff",
}

QUALITATIVE_TERMS = {
    "reliable": "reliable",
    "dependable": "reliable",
    "economical": "economical",
    "cheap to run": "economical",
    "fuel efficient": "efficient",
    "efficient": "efficient",
    "sporty": "sporty",
    "fast": "sporty",
    "luxury": "luxury",
    "luxurious": "luxury",
    "premium": "luxury",
    "practical": "practical",
    "safe": "safe",
    "comfortable": "comfortable",
    "spacious": "spacious",
    "roomy": "spacious",
    "family": "family",
    "quiet": "quiet",
    "stylish": "stylish",
    "compact": "compact",
    "fun": "fun",
}

EXCLUSION_PATTERN = r"\b(?:not|no|except|excluding|without|apart\s+from|anything\s+but)\s+(?:an?\s+)?([a-z][a-z-]*(?:\s+[a-z]+)?)"

# Fuzzy matching is only attempted for tokens this long, to avoid short-word noise
FUZZY_MIN_TOKEN_LENGTH = 5
FUZZY_MAKE_THRESHOLD = 85

Span = Tuple[int, int]

# An entity and the offset in the query where its text starts
Positioned = Tuple[int, Entity]


def _term_regex(terms: List[str]) -> re.Pattern:
    """Alternation of terms, longest first, with flexible whitespace"""
    ordered = sorted(terms, key=len, reverse=True)
    alternation = "|".join(re.escape(term).replace(r"\ ", r"\s+") for term in ordered)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


def _overlaps(span: Span, consumed: List[Span]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in consumed)


def find_term_positions(query: str, vocabulary: Dict[str, str]) -> List[Tuple[int, str]]:
    """
    Find vocabulary terms in the query with where they first appear

    Args:
        query: Query text
        vocabulary: Mapping of lowercase surface term to canonical value

    Returns:
        (offset, canonical value) for each unique value, in order of appearance
    """
    if not vocabulary:
        return []
    found: List[Tuple[int, str]] = []
    seen = set()
    for match in _term_regex(list(vocabulary)).finditer(query):
        surface = re.sub(r"\s+", " ", match.group(0).lower())
        canonical = vocabulary.get(surface)
        if canonical and canonical not in seen:
            seen.add(canonical)
            found.append((match.start(), canonical))
    return found


def find_terms(query: str, vocabulary: Dict[str, str]) -> List[str]:
    """Unique canonical values of the vocabulary terms in the query, in order of appearance"""
    return [value for _, value in find_term_positions(query, vocabulary)]


def _amount(number: str, suffix: Optional[str]) -> str:
    raw = number.replace(",", "")
    if suffix:
        raw += "k"
    return raw


def _shift_year(year: str, delta: int) -> str:
    return str(int(year) + delta)


def extract_numeric_entities(query: str) -> Tuple[List[Positioned], List[Span]]:
    """
    Extract price, mileage, engine size and year entities

    Args:
        query: Query text (lowercase)

    Returns:
        Positioned entities and the spans they consumed
    """
    entities: List[Positioned] = []
    consumed: List[Span] = []

    def matches(name: str):
        for pattern in PATTERNS[name]:
            for match in re.finditer(pattern, query, re.IGNORECASE):
                if _overlaps(match.span(), consumed):
                    continue
                consumed.append(match.span())
                yield match

    def add(match, entity_type: str, value: str, confidence: float = 1.0):
        entities.append((match.start(), Entity(type=entity_type, value=value, confidence=confidence)))

    for match in matches("year_range"):
        low, high = sorted([match.group(1), match.group(2)])
        add(match, "year_min", low)
        add(match, "year_max", high)

    for match in matches("year_min"):
        strict = re.match(r"(newer|after|post)", match.group(0), re.IGNORECASE)
        year = match.group(1)
        add(match, "year_min", _shift_year(year, 1) if strict else year)

    for match in matches("year_max"):
        add(match, "year_max", _shift_year(match.group(1), -1))

    for match in matches("low_mileage"):
        add(match, "mileage_max", LOW_MILEAGE_THRESHOLD, confidence=0.8)

    for match in matches("mileage_max"):
        add(match, "mileage_max", _amount(match.group(1), match.group(2)))

    for match in matches("mileage_min"):
        add(match, "mileage_min", _amount(match.group(1), match.group(2)))

    for match in matches("engine_size_max"):
        add(match, "engine_size_max", match.group(1))

    for match in matches("engine_size_min"):
        add(match, "engine_size_min", match.group(1))

    for match in matches("price_range"):
        add(match, "price_min", _amount(match.group(1), match.group(2)))
        add(match, "price_max", _amount(match.group(3), match.group(4)))

    for match in matches("price_around"):
        # "around £15k" becomes a +/-10% band
        centre = float(_amount(match.group(1), None))
        if match.group(2):
            centre *= 1000
        add(match, "price_min", str(round(centre * 0.9)), confidence=0.8)
        add(match, "price_max", str(round(centre * 1.1)), confidence=0.8)

    for match in matches("price_max"):
        add(match, "price_max", _amount(match.group(1), match.group(2)))

    for match in matches("price_min"):
        add(match, "price_min", _amount(match.group(1), match.group(2)))

    for match in matches("year"):
        add(match, "year_min", match.group(1), confidence=0.7)

    return entities, consumed


def resolve_make(token: str, threshold: int = FUZZY_MAKE_THRESHOLD) -> Optional[Tuple[str, float]]:
    """
    Resolve a word to a known make, allowing synonyms and typos

    Args:
        token: Word or phrase from the query
        threshold: Minimum fuzzy similarity score (0-100)

    Returns:
        (make, confidence) or None
    """
    text = token.strip().lower()
    if not text:
        return None

    for make in KNOWN_MAKES:
        if make.lower() == text:
            return make, 1.0
    if text in MAKE_SYNONYMS:
        return MAKE_SYNONYMS[text], 0.95

    if len(text) < FUZZY_MIN_TOKEN_LENGTH:
        return None

    result = process.extractOne(
        text,
        [make.lower() for make in KNOWN_MAKES],
        scorer=fuzz.ratio,
        score_cutoff=threshold
    )
    if result is None:
        return None
    _, score, index = result
    return KNOWN_MAKES[index], score / 100.0


def fuzzy_match_makes(query: str, skip: List[str]) -> List[Tuple[int, str, float]]:
    """
    Fuzzy match misspelled makes from the remaining query words

    Args:
        query: Query text (lowercase)
        skip: Makes already found exactly

    Returns:
        List of (offset, make, confidence) tuples
    """
    matches: List[Tuple[int, str, float]] = []
    for token in re.finditer(r"[a-z][a-z-]+", query):
        if len(token.group(0)) < FUZZY_MIN_TOKEN_LENGTH:
            continue
        resolved = resolve_make(token.group(0))
        if resolved and resolved[1] < 1.0 and resolved[0] not in skip:
            if resolved[0] not in [make for _, make, _ in matches]:
                matches.append((token.start(), resolved[0], resolved[1]))
    return matches


def extract_exclusions(query: str) -> List[Tuple[int, str]]:
    """Makes the user asked to exclude ("not a BMW", "anything but Ford"), with their offsets"""
    excluded: List[Tuple[int, str]] = []
    for match in re.finditer(EXCLUSION_PATTERN, query, re.IGNORECASE):
        phrase = match.group(1)
        resolved = resolve_make(phrase) or resolve_make(phrase.split()[0])
        if resolved and resolved[0] not in [make for _, make in excluded]:
            excluded.append((match.start(), resolved[0]))
    return excluded


def extract_models(query: str) -> List[Tuple[int, str, str]]:
    """
    Extract model names

    Returns:
        List of (offset, make, model) tuples in order of appearance
    """
    found = []
    for make, models in MODELS_BY_MAKE.items():
        for offset, model in find_term_positions(query, {model.lower(): model for model in models}):
            found.append((offset, make, model))
    return sorted(found, key=lambda item: item[0])


def extract_entities(query: str) -> List[Entity]:
    """
    Extract all entities from query text

    A model whose make is not named gets that make implied just before it,
    so every model is preceded by the make that builds it.

    Args:
        query: Natural language query

    Returns:
        Extracted entities in the order their text appears in the query
    """
    logger.debug(f"Extracting entities from query: {query}")

    query_lower = query.lower()
    positioned: List[Positioned] = []

    # 1. Numeric entities (regex, consumes spans so years aren't read as prices)
    numeric, _ = extract_numeric_entities(query_lower)
    positioned.extend(numeric)

    # 2. Makes: exclusions first, then exact/synonym, then fuzzy
    exclusions = extract_exclusions(query_lower)
    excluded = [make for _, make in exclusions]
    make_positions = [
        (offset, make)
        for offset, make in find_term_positions(
            query_lower, {**{m.lower(): m for m in KNOWN_MAKES}, **MAKE_SYNONYMS}
        )
        if make not in excluded
    ]
    makes = [make for _, make in make_positions]

    for offset, make in make_positions:
        positioned.append((offset, Entity(type="make", value=make)))
    for offset, make, confidence in fuzzy_match_makes(query_lower, makes + excluded):
        makes.append(make)
        positioned.append((offset, Entity(type="make", value=make, confidence=confidence)))
    for offset, make in exclusions:
        positioned.append((offset, Entity(type="exclude_make", value=make, confidence=0.9)))

    # 3. Models (imply their make when none was named)
    for offset, make, model in extract_models(query):
        if make not in makes and make not in excluded:
            makes.append(make)
            positioned.append((offset, Entity(type="make", value=make, confidence=0.9)))
        positioned.append((offset, Entity(type="model", value=model)))

    # 4. Vocabulary entities
    vocabularies = [
        ("fuel_type", FUEL_TYPES, 0.95),
        ("transmission", TRANSMISSIONS, 0.95),
        ("body_type", BODY_TYPES, 0.9),
        ("colour", COLOURS, 0.9),
        ("feature", FEATURES, 0.9),
        ("location", LOCATIONS, 0.85),
        ("qualitative", QUALITATIVE_TERMS, 0.8),
    ]
    for entity_type, vocabulary, confidence in vocabularies:
        for offset, value in find_term_positions(query_lower, vocabulary):
            positioned.append((offset, Entity(type=entity_type, value=value, confidence=confidence)))

    # Stable sort keeps an implied make ahead of its model at the same offset
    entities = [entity for _, entity in sorted(positioned, key=lambda item: item[0])]

    logger.info(f"Extracted entities: {[(e.type, e.value) for e in entities]}")

    return entities
