"""
Request models for vehicle search API
"""
from pydantic import BaseModel, Field
from typing import Optional


class SearchRequest(BaseModel):
    """Search request payload"""

    query: str = Field(..., min_length=1, max_length=1000, description="Natural language query")
    session_id: Optional[str] = Field(
        None,
        max_length=128,
        description="Conversation session id; a new one is issued when omitted"
    )
    max_results: int = Field(10, ge=1, le=100, description="Number of results to return")

    class Config:
        json_schema_extra = {
            "example": {
                "query": "reliable BMW under £20000",
                "session_id": "3f1c2a9e-7b7d-4d0e-9a51-0c6a2d4b8e11",
                "max_results": 10
            }
        }
