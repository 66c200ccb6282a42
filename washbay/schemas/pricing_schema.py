"""Service price tables, product line items and price breakdowns."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from washbay.schemas.capacity_schema import ServiceCategory


class SubscriptionTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"


class BodyTypePrice(BaseModel):
    """Price of a service for one vehicle body type."""
    body_type: str
    price: Decimal = Field(ge=0)


class ProductLineItem(BaseModel):
    """An add-on product sold with the booking."""
    product_id: str = ""
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class ServiceDefinition(BaseModel):
    """A partner service as seen by the engine."""
    service_id: str
    partner_id: str
    name: str
    category: ServiceCategory = ServiceCategory.WASH
    service_type: str = "book_me"
    duration_minutes: int = Field(default=30, gt=0)
    body_type_pricing: list[BodyTypePrice] = Field(default_factory=list)


class PriceBreakdown(BaseModel):
    """Frozen pricing snapshot stored on a booking."""
    model_config = ConfigDict(frozen=True)

    base_price: Decimal
    subscription_discount: Decimal
    products_total: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    partner_payout: Decimal
    final_price: Decimal
