from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime

# Placeholder for any field the scraper could not read
SENTINEL = "No Data Found"


def is_sentinel(value: Optional[str]) -> bool:
    return value is None or not value.strip() or value == SENTINEL


class Platform(str, Enum):
    AMAZON = "amazon"
    FLIPKART = "flipkart"


class PricePoint(BaseModel):
    price: float = Field(ge=0)
    timestamp: datetime
    model_config = {"frozen": True}


class AlertSettings(BaseModel):
    enabled: bool = False
    target_price: Optional[float] = Field(default=None, gt=0)
    owner_ref: Optional[str] = None
    model_config = {"frozen": True}


class ProductSnapshot(BaseModel):
    """Fields read from one page load. Text fields may hold SENTINEL, numbers default to 0."""
    title: str = SENTINEL
    image_url: str = SENTINEL
    price: float = 0
    discount_label: str = SENTINEL
    availability_label: str = SENTINEL
    rating_avg: float = 0
    rating_count: int = 0
    model_config = {"frozen": True}


class ProductRecord(BaseModel):
    platform: Platform
    product_id: str
    url: str
    name: str
    current_price: float = Field(ge=0)
    image_url: str = SENTINEL
    rating_avg: float = 0
    rating_count: int = 0
    discount_label: Optional[str] = None
    availability_label: Optional[str] = None
    price_history: List[PricePoint] = Field(min_length=1)
    alert: Optional[AlertSettings] = None
    owner_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _history_matches_price(self) -> "ProductRecord":
        if self.price_history[-1].price != self.current_price:
            raise ValueError("latest price_history entry must equal current_price")
        return self

    @property
    def needs_image_refresh(self) -> bool:
        return is_sentinel(self.image_url)

    def to_document(self) -> dict:
        return self.model_dump(mode="python") | {"platform": self.platform.value}
