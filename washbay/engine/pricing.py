"""
Pricing calculator for a booking.

Every monetary step is rounded half-up to 2 decimal places before it
feeds the next one, so stored breakdowns reconcile exactly:
``final_price - platform_fee == subtotal``.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from washbay.config import settings
from washbay.errors import InvalidRequest
from washbay.schemas.pricing_schema import (
    BodyTypePrice,
    PriceBreakdown,
    ProductLineItem,
    SubscriptionTier,
)
from washbay.utils import round_money, to_decimal

logger = logging.getLogger(__name__)

Rate = Union[Decimal, float, str]


def _rate_from_pct(pct: float) -> Decimal:
    return to_decimal(pct) / Decimal(100)


def _check_rate(name: str, rate: Decimal) -> Decimal:
    if not Decimal(0) <= rate <= Decimal(1):
        raise InvalidRequest(f"{name} must be between 0 and 1, got {rate}")
    return rate


def resolve_base_price(body_type_pricing: Sequence[BodyTypePrice], body_type: str) -> Decimal:
    """Price for the body type, falling back to the first table entry."""
    if not body_type_pricing:
        return round_money(settings.pricing.fallback_base_price)
    for entry in body_type_pricing:
        if entry.body_type == body_type:
            return round_money(entry.price)
    return round_money(body_type_pricing[0].price)


def products_total(products: Iterable[ProductLineItem]) -> Decimal:
    total = Decimal("0")
    for item in products:
        if item.price < 0 or item.quantity < 1:
            raise InvalidRequest(f"Invalid product line item: {item.price} x {item.quantity}")
        total += round_money(to_decimal(item.price) * item.quantity)
    return round_money(total)


def calculate_price(
    body_type_pricing: Sequence[BodyTypePrice],
    body_type: str,
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC,
    products: Iterable[ProductLineItem] = (),
    customer_commission_rate: Optional[Rate] = None,
    partner_commission_rate: Optional[Rate] = None,
) -> PriceBreakdown:
    """
    Build the price breakdown for a service.

    Args:
        body_type_pricing: The service's per-body-type price table.
        body_type: Body type of the customer's vehicle.
        subscription_tier: Premium customers get the configured discount
            on the service price (not on products).
        products: Add-on product line items.
        customer_commission_rate: Platform fee rate as a fraction; defaults
            to the configured customer commission percentage / 100.
        partner_commission_rate: Share withheld from the partner payout as
            a fraction; defaults to the configured partner commission / 100.

    Raises:
        InvalidRequest: On negative prices, zero quantities or rates
            outside ``[0, 1]``.
    """
    customer_rate = _check_rate(
        "customer_commission_rate",
        to_decimal(customer_commission_rate)
        if customer_commission_rate is not None
        else _rate_from_pct(settings.commission.customer_commission_pct),
    )
    partner_rate = _check_rate(
        "partner_commission_rate",
        to_decimal(partner_commission_rate)
        if partner_commission_rate is not None
        else _rate_from_pct(settings.commission.partner_commission_pct),
    )

    base_price = resolve_base_price(body_type_pricing, body_type)

    discount = Decimal("0.00")
    if SubscriptionTier(subscription_tier) == SubscriptionTier.PREMIUM:
        discount = round_money(base_price * _rate_from_pct(settings.pricing.premium_discount_pct))

    items_total = products_total(products)
    subtotal = round_money(base_price - discount + items_total)
    platform_fee = round_money(subtotal * customer_rate)
    final_price = round_money(subtotal + platform_fee)
    partner_payout = round_money(subtotal - round_money(subtotal * partner_rate))

    breakdown = PriceBreakdown(
        base_price=base_price,
        subscription_discount=discount,
        products_total=items_total,
        subtotal=subtotal,
        platform_fee=platform_fee,
        partner_payout=partner_payout,
        final_price=final_price,
    )
    logger.debug("Priced %s/%s: %s", body_type, subscription_tier, breakdown)
    return breakdown
