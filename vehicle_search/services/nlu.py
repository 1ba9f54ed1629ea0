"""
Rule-based NLU provider built on entity extraction and intent detection
"""
import logging

from vehicle_search.errors import NLUError
from vehicle_search.models import NLUResult
from .entity_extraction import extract_entities
from .intent_detection import detect_intent

logger = logging.getLogger(__name__)

MAX_NLU_INPUT_LENGTH = 1000


class RuleBasedNLUProvider:
    """Regex and fuzzy-match NLU for vehicle queries"""

    def __init__(self, max_input_length: int = MAX_NLU_INPUT_LENGTH):
        self.max_input_length = max_input_length

    async def understand(self, text: str) -> NLUResult:
        """
        Extract intent and entities from a query

        Args:
            text: Query text

        Returns:
            NLUResult with intent and entities

        Raises:
            NLUError: If the text is empty, not a string, or too long to parse
        """
        if not isinstance(text, str) or not text.strip():
            raise NLUError("Cannot understand empty input")
        if len(text) > self.max_input_length:
            raise NLUError(f"Input longer than {self.max_input_length} characters")

        entities = extract_entities(text)
        intent, confidence = detect_intent(text, entities)

        return NLUResult(intent=intent, confidence=confidence, entities=entities)
