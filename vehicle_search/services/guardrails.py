"""
Query guardrail
Rejects malformed, malicious, bulk-extraction and off-topic queries before they reach the pipeline
"""
import re
from typing import List, Optional
import logging

from vehicle_search.config import settings
from .interfaces import GuardrailDecision

logger = logging.getLogger(__name__)


VEHICLE_KEYWORDS = [
    "car", "cars", "vehicle", "vehicles", "bmw", "audi", "mercedes", "toyota", "ford",
    "honda", "nissan", "volkswagen", "vw", "kia", "hyundai", "tesla", "volvo",
    "suv", "sedan", "saloon", "hatchback", "estate", "coupe", "convertible", "truck", "van",
    "mileage", "engine", "transmission", "petrol", "diesel", "electric", "hybrid",
    "features", "leather", "navigation", "parking", "automatic", "manual",
    "horsepower", "mpg", "warranty", "km", "miles", "used", "driving",
]

OFF_TOPIC_KEYWORDS = [
    "weather", "news", "recipe", "movie", "music", "song", "album", "pizza",
    "sports", "football", "basketball", "politics", "election",
    "stock", "crypto", "bitcoin", "ethereum", "investment",
    "restaurant", "hotel", "vacation", "flight", "travel", "cook",
]

INJECTION_PATTERNS = [
    # SQL injection
    r"(\bOR\b|\bAND\b)\s*\d+\s*=\s*\d+",
    r"';\s*--",
    r"\bUNION\s+SELECT\b",
    r"\bDROP\s+TABLE\b",
    r"\bINSERT\s+INTO\b",
    r"\bDELETE\s+FROM\b",
    r"\bEXEC\s*\(",
    # Instruction override
    r"ignore\s+.*\s*instructions?",
    r"ignore\s+.*\s*prompts?",
    r"you\s+are\s+now",
    r"new\s+instructions?",
    r"disregard.*instructions?",
    # Role manipulation
    r"\bact\s+as\b",
    r"pretend\s+(you\s+are|to\s+be)",
    r"\broleplay\b",
    # Prompt disclosure
    r"show\s+me\s+(your|the)\s+(system\s+prompt|instructions?)",
    r"what\s+are\s+your\s+(rules?|guidelines?|instructions?)",
    r"reveal.*prompt",
    # Jailbreaks
    r"\bDAN\s+mode\b",
    r"developer\s+mode",
    r"\bjailbreak\b",
    r"dump\s+(database|index)",
]

BULK_EXTRACTION_PATTERNS = [
    r"(list|show(\s+me)?|give\s+me)\s+all\s+(vehicles?|cars?|data)",
    r"give\s+me\s+(everything|all(\s+the)?\s+data)",
    r"every\s+(car|vehicle)",
    r"\d{3,}\s+(cars?|vehicles?|results?)",
]

CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _truncate(query: str, length: int = 50) -> str:
    return query if len(query) <= length else query[:length] + "..."


def _contains_keyword(query: str, keywords: List[str]) -> bool:
    return any(re.search(rf"\b{re.escape(keyword)}\b", query) for keyword in keywords)


def is_injection_attempt(query: str) -> bool:
    return any(re.search(pattern, query, re.IGNORECASE) for pattern in INJECTION_PATTERNS)


def is_bulk_extraction_attempt(query: str) -> bool:
    return any(re.search(pattern, query, re.IGNORECASE) for pattern in BULK_EXTRACTION_PATTERNS)


def is_off_topic(query: str) -> bool:
    """Off-topic vocabulary with no vehicle vocabulary to outweigh it"""
    lower_query = query.lower()
    return (
        _contains_keyword(lower_query, OFF_TOPIC_KEYWORDS)
        and not _contains_keyword(lower_query, VEHICLE_KEYWORDS)
    )


class RuleBasedGuardrail:
    """Pattern-based guardrail validator"""

    def __init__(self, min_length: Optional[int] = None, max_length: Optional[int] = None):
        self.min_length = min_length if min_length is not None else settings.query_min_length
        self.max_length = max_length if max_length is not None else settings.query_max_length

    async def validate(self, text: str) -> GuardrailDecision:
        """
        Validate a query

        Checks run in order: length, characters, bulk extraction, injection,
        off-topic. The first failing check decides the rejection reason.

        Args:
            text: Raw query text

        Returns:
            GuardrailDecision
        """
        query = (text or "").strip()

        if len(query) < self.min_length:
            return GuardrailDecision.reject(f"Query must be at least {self.min_length} characters")
        if len(query) > self.max_length:
            return GuardrailDecision.reject(f"Query must be at most {self.max_length} characters")

        if CONTROL_CHARACTERS.search(query):
            return GuardrailDecision.reject("Query contains invalid characters")

        if is_bulk_extraction_attempt(query):
            logger.warning(f"Bulk extraction attempt detected in query: {_truncate(query)}")
            return GuardrailDecision.reject(
                "This query appears to be attempting bulk data extraction. "
                "Please refine your search criteria."
            )

        if is_injection_attempt(query):
            logger.warning(f"Prompt injection detected in query: {_truncate(query)}")
            return GuardrailDecision.reject(
                "Query contains potentially malicious content and cannot be processed."
            )

        if is_off_topic(query):
            logger.info(f"Off-topic query rejected: {_truncate(query)}")
            return GuardrailDecision.reject(
                "Query is not related to vehicle search. Please ask about cars or vehicles."
            )

        return GuardrailDecision.accept()
