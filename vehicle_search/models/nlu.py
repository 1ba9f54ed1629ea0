"""
NLU output consumed by the attribute mapper
"""
from pydantic import BaseModel, Field
from typing import List
from enum import Enum


class IntentType(str, Enum):
    """Types of detected intents"""
    SEARCH = "search"
    REFINE = "refine"
    COMPARE = "compare"
    INFORMATION = "information"
    GENERAL_SEARCH = "general_search"


class Entity(BaseModel):
    """A typed value extracted from the query text"""

    type: str = Field(..., description="Entity type, e.g. make, price_max, qualitative")
    value: str = Field(..., description="Raw value as extracted")
    confidence: float = Field(1.0, ge=0.0, le=1.0)

    class Config:
        frozen = True


class NLUResult(BaseModel):
    """Intent label plus extracted entities for one query"""

    intent: IntentType = IntentType.GENERAL_SEARCH
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    entities: List[Entity] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "intent": "search",
                "confidence": 0.85,
                "entities": [
                    {"type": "make", "value": "BMW", "confidence": 1.0},
                    {"type": "price_max", "value": "£20000", "confidence": 1.0}
                ]
            }
        }

    @classmethod
    def empty(cls) -> "NLUResult":
        return cls()
