# api/v1/schemas/tracker.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from pricewatch.domain.models.product import ProductRecord


class TrackRequest(BaseModel):
    url: str = Field(min_length=1, description="Amazon or Flipkart product URL (https)")


class AlertIn(BaseModel):
    target_price: float = Field(gt=0)


class PricePointOut(BaseModel):
    price: float
    timestamp: datetime


class AlertOut(BaseModel):
    enabled: bool
    target_price: Optional[float] = None
    owner_ref: Optional[str] = None


class ProductOut(BaseModel):
    platform: str
    product_id: str
    url: str
    name: str
    current_price: float
    image_url: str
    rating_avg: float
    rating_count: int
    discount_label: Optional[str] = None
    availability_label: Optional[str] = None
    price_history: List[PricePointOut]
    alert: Optional[AlertOut] = None
    owner_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ProductRecord) -> "ProductOut":
        return cls.model_validate(record.model_dump(mode="json"))


class ProductListOut(BaseModel):
    items: List[ProductOut]
    count: int


class MessageOut(BaseModel):
    message: str
