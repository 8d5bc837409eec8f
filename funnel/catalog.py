"""Static reference catalogs: customer segments, funnel steps and pricing rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

DiscountStrategy = Literal["none", "percentage", "fixed", "bundle"]
FunnelPosition = Literal["browsing", "product_page", "cart", "checkout", "order_confirmation"]
OfferType = Literal["cross_sell", "upsell", "bundle", "discount"]

FUNNEL_POSITIONS: tuple[str, ...] = ("browsing", "product_page", "cart", "checkout", "order_confirmation")

CATEGORY_NAMES: dict[int, str] = {
    1: "Suspension & Lift Kits",
    2: "Drivetrain & Axles",
    3: "Wheels & Tires",
    4: "Body & Protection",
    5: "Storage & Cargo",
    6: "Audio & Electronics",
    7: "Winches & Recovery",
    8: "Performance",
    9: "Plows & Implements",
    10: "Maintenance & Chemicals",
}

BRAND_NAMES: dict[int, str] = {
    1: "SuperATV",
    2: "Tusk",
    3: "Moose Racing",
    4: "Pro Armor",
    5: "Parts Unlimited",
    6: "DragonFire Racing",
    7: "Method Race Wheels",
    8: "Seizmik",
    9: "SSV Works",
    10: "High Lifter",
}


@dataclass(frozen=True)
class CustomerSegment:
    id: str
    name: str
    description: str
    target_product_ids: tuple[int, ...]
    discount_strategy: DiscountStrategy
    discount_value: float
    conversion_rate: float
    message_template: str

    def render_message(self) -> str:
        """Fill the ``{{discount}}`` placeholder of the message template."""
        return self.message_template.replace("{{discount}}", f"{self.discount_value:g}")


@dataclass(frozen=True)
class ProductAssociations:
    trigger_product_ids: frozenset[int]
    offer_product_ids: tuple[int, ...]


@dataclass(frozen=True)
class FunnelStep:
    id: str
    name: str
    description: str
    cta: str
    position: FunnelPosition
    offer_type: OfferType
    target_segment_ids: frozenset[str]
    conversion_rate: float
    product_associations: ProductAssociations


@dataclass(frozen=True)
class PricingRule:
    segment_id: str
    category_id: int
    base_markup_percentage: float
    minimum_margin_percentage: float
    popularity_boost: float
    low_inventory_boost: float


CUSTOMER_SEGMENTS: tuple[CustomerSegment, ...] = (
    CustomerSegment(
        id="recreational-riders",
        name="Recreational Riders",
        description="Weekend warriors who use UTVs for fun and adventure",
        target_product_ids=(1, 3, 6, 7, 8),
        discount_strategy="percentage",
        discount_value=10,
        conversion_rate=0.068,
        message_template="Upgrade your weekend adventures with premium UTV gear. Limited time: {{discount}}% off!",
    ),
    CustomerSegment(
        id="performance-enthusiasts",
        name="Performance Enthusiasts",
        description="Riders focused on speed, power, and performance upgrades",
        target_product_ids=(1, 2, 3, 5, 6, 8),
        discount_strategy="bundle",
        discount_value=15,
        conversion_rate=0.072,
        message_template="Boost your UTV's performance with pro-grade upgrades. Buy 2+ items: Save {{discount}}%!",
    ),
    CustomerSegment(
        id="utility-workers",
        name="Utility Workers",
        description="Users who rely on UTVs for work and practical purposes",
        target_product_ids=(2, 4, 9, 10),
        discount_strategy="fixed",
        discount_value=25,
        conversion_rate=0.059,
        message_template="Hard-working UTV parts for hard-working people. ${{discount}} off orders over $200!",
    ),
    CustomerSegment(
        id="mud-riders",
        name="Mud Enthusiasts",
        description="Riders who specifically enjoy mudding and require specialized gear",
        target_product_ids=(1, 2, 5, 9),
        discount_strategy="percentage",
        discount_value=12,
        conversion_rate=0.081,
        message_template="Dominate the mud with purpose-built UTV components. {{discount}}% off mud-ready gear!",
    ),
    CustomerSegment(
        id="new-owners",
        name="New UTV Owners",
        description="Recent purchasers looking for initial accessories and upgrades",
        target_product_ids=(4, 7, 8, 10),
        discount_strategy="bundle",
        discount_value=20,
        conversion_rate=0.093,
        message_template="New to UTV riding? Essential upgrades for new owners: Buy 3+ items for {{discount}}% off!",
    ),
)

# Behavioral roles used by the rule-based classifier, each backed by a catalog segment.
SEGMENT_ROLES: dict[str, str] = {
    "returning_customer": "performance-enthusiasts",
    "price_sensitive": "utility-workers",
    "feature_focused": "recreational-riders",
    "new_visitor": "new-owners",
}

# Dominant viewed category -> segment, for anonymous visitors.
CATEGORY_SEGMENTS: dict[int, str] = {
    3: "recreational-riders",  # Wheels & Tires
    6: "recreational-riders",  # Audio & Electronics
    2: "performance-enthusiasts",  # Drivetrain & Axles
    8: "performance-enthusiasts",  # Performance
    5: "utility-workers",  # Storage & Cargo
    9: "utility-workers",  # Plows & Implements
    1: "mud-riders",  # Suspension & Lift Kits
}

DEFAULT_SEGMENT_ID = "new-owners"

_ALL_PRODUCTS = frozenset(range(1, 11))
_ALL_SEGMENTS = frozenset(segment.id for segment in CUSTOMER_SEGMENTS)

FUNNEL_STEPS: tuple[FunnelStep, ...] = (
    FunnelStep(
        id="trail-starter-picks",
        name="Trail Starter Picks",
        description="Popular first upgrades from riders like you",
        cta="Shop Starter Picks",
        position="browsing",
        offer_type="cross_sell",
        target_segment_ids=frozenset({"new-owners", "recreational-riders"}),
        conversion_rate=0.12,
        product_associations=ProductAssociations(_ALL_PRODUCTS, (4, 10, 7)),
    ),
    FunnelStep(
        id="protection-bundle",
        name="Protection Bundle",
        description="Add protective gear to your UTV parts",
        cta="Add Protection Package",
        position="product_page",
        offer_type="bundle",
        target_segment_ids=frozenset({"recreational-riders", "new-owners"}),
        conversion_rate=0.28,
        product_associations=ProductAssociations(frozenset({1, 3, 5, 6, 8}), (4, 7)),
    ),
    FunnelStep(
        id="performance-upsell",
        name="Performance Upgrade",
        description="Upgrade to higher performance option",
        cta="Upgrade for Maximum Performance",
        position="product_page",
        offer_type="upsell",
        target_segment_ids=frozenset({"performance-enthusiasts", "mud-riders"}),
        conversion_rate=0.18,
        product_associations=ProductAssociations(frozenset({1, 2, 5, 9}), (1, 3, 8)),
    ),
    FunnelStep(
        id="essential-accessory",
        name="Essential Accessories",
        description="Add must-have accessories before checkout",
        cta="Complete Your Purchase",
        position="cart",
        offer_type="cross_sell",
        target_segment_ids=frozenset({"recreational-riders", "new-owners", "utility-workers"}),
        conversion_rate=0.38,
        product_associations=ProductAssociations(frozenset({1, 2, 3, 5, 6, 8, 9}), (4, 7, 10)),
    ),
    FunnelStep(
        id="last-chance-upgrade",
        name="Last Chance Upgrade",
        description="One-time offer before completing purchase",
        cta="Add to Order",
        position="checkout",
        offer_type="cross_sell",
        target_segment_ids=frozenset({"performance-enthusiasts", "mud-riders", "recreational-riders"}),
        conversion_rate=0.22,
        product_associations=ProductAssociations(_ALL_PRODUCTS, (10, 4, 7)),
    ),
    FunnelStep(
        id="loyalty-discount",
        name="Loyalty Reward",
        description="Special offer for next purchase",
        cta="Claim Your Discount",
        position="order_confirmation",
        offer_type="discount",
        target_segment_ids=_ALL_SEGMENTS,
        conversion_rate=0.32,
        product_associations=ProductAssociations(_ALL_PRODUCTS, ()),
    ),
)

PRICING_RULES: tuple[PricingRule, ...] = (
    PricingRule("performance-enthusiasts", 1, 40, 25, 5, 8),
    PricingRule("mud-riders", 1, 45, 30, 10, 10),
    PricingRule("recreational-riders", 3, 35, 20, 5, 5),
    PricingRule("utility-workers", 5, 30, 15, 3, 5),
)

# Flat checkout-time multipliers, kept inside [0.95, 1.05].
CHECKOUT_SEGMENT_MULTIPLIERS: dict[str, float] = {
    "new-owners": 0.95,
    "utility-workers": 0.97,
    "recreational-riders": 1.0,
    "mud-riders": 1.03,
    "performance-enthusiasts": 1.05,
}

_SEGMENTS_BY_ID = {segment.id: segment for segment in CUSTOMER_SEGMENTS}


def get_segment(segment_id: str) -> CustomerSegment:
    """Return a catalog segment by id.

    Raises:
        KeyError: If the id is not in the catalog.
    """
    return _SEGMENTS_BY_ID[segment_id]


def get_segment_for_role(role: str) -> CustomerSegment:
    return _SEGMENTS_BY_ID[SEGMENT_ROLES[role]]


def find_segment_by_name(name: str) -> CustomerSegment | None:
    """Case-insensitive exact match on segment display names."""
    wanted = name.strip().lower()
    for segment in CUSTOMER_SEGMENTS:
        if segment.name.lower() == wanted:
            return segment
    return None


def find_pricing_rule(
    segment_id: str,
    category_id: int,
    rules: tuple[PricingRule, ...] = PRICING_RULES,
) -> PricingRule | None:
    for rule in rules:
        if rule.segment_id == segment_id and rule.category_id == category_id:
            return rule
    return None
