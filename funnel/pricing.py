"""Dynamic pricing.

Two independent pricing paths:

* :func:`calculate_dynamic_price` prices catalog/offer widgets from a
  (segment, category) markup rule with a minimum-margin floor.
* :func:`calculate_checkout_price` prices checkout-time offers from a flat
  segment multiplier, inventory scarcity and demand, bounded to a window
  around the listed price.
"""

from __future__ import annotations

import math
from typing import TypedDict

from funnel.catalog import (
    CHECKOUT_SEGMENT_MULTIPLIERS,
    PRICING_RULES,
    CustomerSegment,
    PricingRule,
    find_pricing_rule,
)
from funnel.models import Product

ESTIMATED_COST_RATIO = 0.6
LOW_INVENTORY_THRESHOLD = 10

SCARCITY_REFERENCE_INVENTORY = 20
SCARCITY_BOUNDS = (0.9, 1.1)
DEMAND_BOUNDS = (0.95, 1.15)
CHECKOUT_PRICE_BOUNDS = (0.9, 1.15)


class PriceQuote(TypedDict):
    original_price: float
    dynamic_price: float
    discount_percentage: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _psychological_round(value: float, minimum: float | None = None) -> float:
    """Round to the next ``.99`` below the whole-dollar part, never under ``minimum``."""
    rounded = math.floor(value) + 0.99
    if minimum is not None and rounded < minimum:
        rounded += 1
    return round(rounded, 2)


def _discount_percentage(original: float, dynamic: float) -> float:
    if dynamic >= original:
        return 0.0
    return round(((original - dynamic) / original) * 100, 1)


def estimate_cost(product: Product) -> float:
    """Supplier cost when known, otherwise 60% of the listed price."""
    if product.cost_price is not None and product.cost_price > 0:
        return product.cost_price
    return product.price * ESTIMATED_COST_RATIO


def minimum_price(cost: float, rule: PricingRule) -> float:
    return cost * (1 + rule.minimum_margin_percentage / 100)


def calculate_dynamic_price(
    product: Product,
    segment: CustomerSegment,
    rules: tuple[PricingRule, ...] = PRICING_RULES,
) -> PriceQuote:
    """Price a product for a segment from its (segment, category) markup rule.

    Without a matching rule the listed price passes through unchanged.
    """
    rule = find_pricing_rule(segment.id, product.category_id, rules)
    if rule is None:
        return {
            "original_price": product.price,
            "dynamic_price": product.price,
            "discount_percentage": 0.0,
        }

    cost = estimate_cost(product)
    calculated = cost * (1 + rule.base_markup_percentage / 100)
    if product.is_popular:
        calculated *= 1 + rule.popularity_boost / 100
    if product.inventory_count < LOW_INVENTORY_THRESHOLD:
        calculated *= 1 + rule.low_inventory_boost / 100

    floor_price = minimum_price(cost, rule)
    calculated = max(calculated, floor_price)
    dynamic_price = _psychological_round(calculated, minimum=floor_price)

    return {
        "original_price": product.price,
        "dynamic_price": dynamic_price,
        "discount_percentage": _discount_percentage(product.price, dynamic_price),
    }


def scarcity_factor(inventory_count: int) -> float:
    """1.0 at the reference stock level, rising as stock runs out."""
    raw = 1 + (SCARCITY_REFERENCE_INVENTORY - inventory_count) / (SCARCITY_REFERENCE_INVENTORY * 10)
    return _clamp(raw, *SCARCITY_BOUNDS)


def demand_factor(product: Product, view_count: int = 0) -> float:
    """Demand from popularity, review standing and recently tracked views."""
    raw = 1.0
    if product.is_popular:
        raw += 0.05
    if product.review_count > 0:
        raw += (product.rating - 4.5) * 0.1
    raw += min(max(view_count, 0), 50) * 0.002
    return _clamp(raw, *DEMAND_BOUNDS)


def calculate_checkout_price(
    product: Product,
    segment: CustomerSegment,
    view_count: int = 0,
) -> PriceQuote:
    """Checkout-time price: segment multiplier x scarcity x demand, bounded around list price."""
    base = product.price
    multiplier = CHECKOUT_SEGMENT_MULTIPLIERS.get(segment.id, 1.0)
    calculated = base * multiplier * scarcity_factor(product.inventory_count) * demand_factor(product, view_count)

    low, high = CHECKOUT_PRICE_BOUNDS
    calculated = _clamp(calculated, base * low, base * high)
    dynamic_price = _psychological_round(calculated)

    return {
        "original_price": base,
        "dynamic_price": dynamic_price,
        "discount_percentage": _discount_percentage(base, dynamic_price),
    }
