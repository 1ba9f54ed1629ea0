"""
Intent Detection Module
Maps vehicle queries to intents based on entities and keywords
"""
import re
from typing import List, Sequence, Tuple
import logging

from vehicle_search.models import Entity, IntentType

logger = logging.getLogger(__name__)


# Intent detection rules (ordered by priority)
INTENT_RULES = [
    {
        "intent": IntentType.COMPARE,
        "conditions": {
            "required": [],
            "optional": ["make", "model"],
            "keywords": ["compare", " vs ", "versus", "difference between", "better than"]
        },
        "confidence_base": 0.85
    },
    {
        "intent": IntentType.REFINE,
        "conditions": {
            "required": [],
            "optional": ["price_max", "mileage_max", "year_min"],
            "keywords": [
                "cheaper", "newer", "older", "lower mileage", "instead",
                "those", "them", "ones", "what about", "only"
            ]
        },
        "confidence_base": 0.80
    },
    {
        "intent": IntentType.INFORMATION,
        "conditions": {
            "required": [],
            "optional": ["make", "model"],
            "keywords": ["tell me about", "what is", "how much", "how reliable", "is it", "explain"]
        },
        "confidence_base": 0.75
    },
    {
        "intent": IntentType.SEARCH,
        "conditions": {
            "required": [],
            "optional": ["make", "model", "price_max", "body_type", "fuel_type", "qualitative"],
            "keywords": ["find", "show", "looking for", "want", "need", "search", "car", "cars"]
        },
        "confidence_base": 0.70
    },
]


def detect_intent(query: str, entities: Sequence[Entity]) -> Tuple[IntentType, float]:
    """
    Detect user intent from query and extracted entities

    Args:
        query: Original query text
        entities: Extracted entities

    Returns:
        (intent, confidence)
    """
    logger.debug(f"Detecting intent for query: {query}")

    query_lower = f" {query.lower()} "
    entity_types = {entity.type for entity in entities}
    best_match = None
    best_confidence = 0.0

    for rule in INTENT_RULES:
        confidence = calculate_intent_confidence(query_lower, entity_types, rule)

        if confidence > best_confidence:
            best_confidence = confidence
            best_match = rule["intent"]

    # Fallback to general search if no strong match
    if best_confidence < 0.5:
        best_match = IntentType.GENERAL_SEARCH
        best_confidence = 0.6

    logger.info(f"Detected intent: {best_match} (confidence: {best_confidence:.2f})")

    return best_match, best_confidence


def calculate_intent_confidence(query: str, entity_types: set, rule: dict) -> float:
    """
    Calculate confidence score for a specific intent rule

    Args:
        query: Query text (lowercase, space padded)
        entity_types: Entity types present in the query
        rule: Intent rule definition

    Returns:
        Confidence score (0.0 to 1.0)
    """
    conditions = rule["conditions"]
    base_confidence = rule["confidence_base"]

    if not all(field in entity_types for field in conditions["required"]):
        return 0.0

    confidence = base_confidence

    # Bonus for optional entities present
    if conditions["optional"]:
        optional_present = sum(1 for field in conditions["optional"] if field in entity_types)
        optional_bonus = (optional_present / len(conditions["optional"])) * 0.10
        confidence = min(confidence + optional_bonus, 1.0)

    # Keyword matching
    keywords_found = matched_keywords(query, conditions["keywords"])
    if conditions["keywords"]:
        if keywords_found:
            confidence = min(confidence + 0.05 * len(keywords_found), 1.0)
        else:
            # No keywords found - reduce confidence
            confidence *= 0.5

    return confidence


def matched_keywords(query: str, keywords: List[str]) -> List[str]:
    return [
        keyword for keyword in keywords
        if re.search(rf"\b{re.escape(keyword.strip())}\b", query)
    ]
