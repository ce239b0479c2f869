from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class CategoryBase(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class RecommendedItem(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    score: float
    similarity: float
    category_boost: float
    categories: List[CategoryBase] = []


class RecommendationResponse(BaseModel):
    status: str = "success"
    member_id: int
    size: int
    items: List[RecommendedItem] = []


class BackfillResponse(BaseModel):
    status: str
    message: str


# Error responses
class ErrorResponse(BaseModel):
    detail: str


# API status
class HealthCheck(BaseModel):
    status: str
    version: str
    database_status: str
