"""
Conversation state: turns, sessions and cross-turn reference markers
"""
from pydantic import BaseModel, Field
from typing import Optional, Tuple, Union
from datetime import date, datetime, timedelta
from enum import Enum

from .constraints import SearchConstraint
from .nlu import IntentType


class ResultSummary(BaseModel):
    """Statistics and ranked ids of one turn's results, used to resolve comparatives and positional references"""

    count: int = 0
    top_makes: Tuple[str, ...] = ()
    top_models: Tuple[str, ...] = ()
    average_price: Optional[float] = None
    average_mileage: Optional[float] = None
    median_registration_date: Optional[date] = None
    result_ids: Tuple[str, ...] = Field((), description="Returned vehicle ids in rank order")

    class Config:
        frozen = True


class ConversationTurn(BaseModel):
    """One request/response exchange; never mutated once stored"""

    turn_index: int = Field(..., ge=0)
    query: str
    constraints: Tuple[SearchConstraint, ...] = ()
    summary: ResultSummary = Field(default_factory=ResultSummary)
    intent: IntentType = IntentType.GENERAL_SEARCH
    timestamp: datetime

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "turn_index": 0,
                "query": "BMW 3 Series under £20000",
                "constraints": [
                    {"field_name": "make", "operator": "eq", "value": "BMW", "kind": "exact"},
                    {"field_name": "price", "operator": "le", "value": 20000, "kind": "range"}
                ],
                "summary": {
                    "count": 8,
                    "top_makes": ["BMW"],
                    "top_models": ["3 Series"],
                    "average_price": 19000,
                    "average_mileage": 38500,
                    "median_registration_date": "2019-06-01",
                    "result_ids": ["veh-0005", "veh-0001"]
                },
                "intent": "search",
                "timestamp": "2024-05-01T10:15:00Z"
            }
        }


class SessionContext(BaseModel):
    """A session's turn history; replaced, never edited, when a turn is appended"""

    session_id: str
    turns: Tuple[ConversationTurn, ...] = ()
    last_activity: datetime
    expires_after: timedelta = timedelta(minutes=30)

    class Config:
        frozen = True

    @property
    def last_turn(self) -> Optional[ConversationTurn]:
        return self.turns[-1] if self.turns else None

    def is_expired(self, now: datetime) -> bool:
        return now - self.last_activity > self.expires_after

    def next_turn_index(self) -> int:
        return self.turns[-1].turn_index + 1 if self.turns else 0


class Direction(str, Enum):
    """Which way a comparative moves a bound"""
    UP = "up"
    DOWN = "down"


class PronounMarker(BaseModel):
    """A reference such as "it" or "those" to the previous turn's vehicles"""

    text: str

    class Config:
        frozen = True


class ComparativeMarker(BaseModel):
    """
    A comparative such as "cheaper" or "newer"

    field_name is None for bare "more"/"less", which imply no field.
    """

    term: str
    field_name: Optional[str] = None
    direction: Direction

    class Config:
        frozen = True


class PositionalMarker(BaseModel):
    """
    A reference to one vehicle of the previous results, such as "the first one"

    index is 0-based; -1 means the last result.
    """

    term: str
    index: int

    class Config:
        frozen = True


ReferenceMarker = Union[PronounMarker, ComparativeMarker, PositionalMarker]


class ResolvedReferences(BaseModel):
    """Constraints the current turn gains from the previous one"""

    inherited: Tuple[SearchConstraint, ...] = ()
    synthesized: Tuple[SearchConstraint, ...] = ()
    markers: Tuple[ReferenceMarker, ...] = ()
    warnings: Tuple[str, ...] = ()

    class Config:
        frozen = True
