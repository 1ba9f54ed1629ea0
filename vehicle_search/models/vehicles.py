"""
Vehicle records and ranked search results
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Tuple
from datetime import date


class Vehicle(BaseModel):
    """A vehicle listing as held by the vehicle store"""

    id: str = Field(..., description="Vehicle identifier")
    make: str
    model: str
    derivative: Optional[str] = None
    body_type: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    mileage: Optional[int] = Field(None, ge=0)
    engine_size: Optional[float] = None
    fuel_type: Optional[str] = None
    transmission_type: Optional[str] = None
    colour: Optional[str] = None
    number_of_doors: Optional[int] = None
    registration_date: Optional[date] = None
    sale_location: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    description: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "id": "veh-0001",
                "make": "BMW",
                "model": "3 Series",
                "derivative": "320d M Sport",
                "body_type": "Saloon",
                "price": 18995,
                "mileage": 42000,
                "engine_size": 2.0,
                "fuel_type": "Diesel",
                "transmission_type": "Automatic",
                "colour": "Black",
                "number_of_doors": 4,
                "registration_date": "2019-03-01",
                "sale_location": "Manchester",
                "features": ["Satellite Navigation", "Heated Seats"],
                "description": "Reliable and economical executive saloon"
            }
        }

    def search_text(self) -> str:
        """Text the similarity backend matches free-text queries against"""
        parts = [
            self.make,
            self.model,
            self.derivative or "",
            self.body_type or "",
            self.fuel_type or "",
            " ".join(self.features),
            self.description,
        ]
        return " ".join(part for part in parts if part)


class ScoreBreakdown(BaseModel):
    """Auditable per-backend scores behind a result's final score"""

    exact_match_score: float = Field(0.0, ge=0.0, le=1.0)
    semantic_score: float = Field(0.0, ge=0.0, le=1.0)
    keyword_score: Optional[float] = None
    final_score: float = 0.0

    class Config:
        frozen = True


class VehicleResult(BaseModel):
    """One ranked search result"""

    vehicle_id: str
    vehicle: Optional[Vehicle] = None
    score: float
    score_breakdown: ScoreBreakdown
    highlighted_fields: Tuple[str, ...] = ()

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "vehicle_id": "veh-0001",
                "score": 0.0161,
                "score_breakdown": {
                    "exact_match_score": 1.0,
                    "semantic_score": 0.82,
                    "keyword_score": None,
                    "final_score": 0.0161
                },
                "highlighted_fields": ["make", "price"]
            }
        }


class ExactHit(BaseModel):
    """A candidate returned by the exact-filter backend"""

    vehicle_id: str
    matched_field_count: int = Field(..., ge=0)

    class Config:
        frozen = True


class SemanticHit(BaseModel):
    """A candidate returned by the semantic backend"""

    vehicle_id: str
    similarity_score: float = Field(..., ge=0.0, le=1.0)

    class Config:
        frozen = True
