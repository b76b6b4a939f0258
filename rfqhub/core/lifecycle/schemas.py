from decimal import Decimal

from pydantic import BaseModel, Field

from rfqhub.common.enums import RFQUrgency


class RFQCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    category: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(default=None, max_length=255)
    quantity: str | None = None
    unit: str | None = None
    min_budget: Decimal | None = Field(default=None, ge=0)
    max_budget: Decimal | None = Field(default=None, ge=0)
    timeline: str | None = "30 days"
    urgency: RFQUrgency = RFQUrgency.NORMAL


class QuoteCreate(BaseModel):
    price: Decimal = Field(gt=0)
    timeline: str = Field(min_length=1, max_length=100)
    quantity: str | None = None
    description: str | None = None
    terms: str | None = None


class CounterOfferRequest(BaseModel):
    price: Decimal = Field(gt=0)
    timeline: str | None = Field(default=None, max_length=100)
    terms: str | None = None
    message: str | None = None
