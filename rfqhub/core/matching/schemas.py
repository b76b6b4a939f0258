import uuid

from pydantic import BaseModel, Field


class QuoteHistoryItem(BaseModel):
    status: str
    category: str | None = None


class SupplierCandidate(BaseModel):
    id: uuid.UUID
    name: str | None = None
    company: str | None = None
    email: str | None = None
    location: str | None = None
    is_verified: bool = False
    trust_score: int = 0
    preferred_categories: list[str] = Field(default_factory=list)
    preferred_cities: list[str] = Field(default_factory=list)
    history: list[QuoteHistoryItem] = Field(default_factory=list)


class SupplierMatch(BaseModel):
    supplier: SupplierCandidate
    score: int
    reasons: list[str] = Field(default_factory=list)
