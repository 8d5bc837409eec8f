"""Visitor segmentation: oracle-assisted when available, rule-based always."""

from __future__ import annotations

import logging

from funnel.catalog import (
    CATEGORY_NAMES,
    CATEGORY_SEGMENTS,
    CUSTOMER_SEGMENTS,
    DEFAULT_SEGMENT_ID,
    CustomerSegment,
    find_segment_by_name,
    get_segment,
    get_segment_for_role,
)
from funnel.models import Order, Product, VisitorSignal
from funnel.oracle import RankingOracle
from funnel.repository import OrderRepository, ProductRepository

logger = logging.getLogger(__name__)

FEATURE_FOCUSED_VIEW_THRESHOLD = 5


def dominant_category(products: list[Product]) -> int | None:
    """Most-viewed category id; the first-seen category wins a tie."""
    counts: dict[int, int] = {}
    for product in products:
        counts[product.category_id] = counts.get(product.category_id, 0) + 1

    best: int | None = None
    best_views = 0
    for category_id, views in counts.items():
        if views > best_views:
            best, best_views = category_id, views
    return best


def segment_for_category(category_id: int | None) -> CustomerSegment:
    if category_id is None:
        return get_segment(DEFAULT_SEGMENT_ID)
    return get_segment(CATEGORY_SEGMENTS.get(category_id, DEFAULT_SEGMENT_ID))


def build_profile_text(viewed: list[Product], purchase_ids: list[int], order_count: int) -> str:
    """Natural-language visitor profile for the oracle's segment question."""
    options = "\n".join(
        f"{index}. {segment.name}: {segment.description}"
        for index, segment in enumerate(CUSTOMER_SEGMENTS, start=1)
    )
    categories = ", ".join(CATEGORY_NAMES.get(p.category_id, str(p.category_id)) for p in viewed) or "none"
    names = ", ".join(p.name for p in viewed[-5:]) or "none"
    if purchase_ids or order_count:
        purchase_summary = (
            f"Previous orders: {order_count} orders with items like "
            f"{', '.join(str(product_id) for product_id in purchase_ids) or 'unknown'}"
        )
    else:
        purchase_summary = "No previous purchase history"

    return (
        "Analyze this UTV customer data and determine the best customer segment match from the following options:\n"
        f"{options}\n\n"
        "Customer Data:\n"
        f"- Viewed product categories: {categories}\n"
        f"- Browsing history: {names}\n"
        f"- {purchase_summary}\n\n"
        "Respond with the exact segment name that best matches this customer profile."
    )


class SegmentClassifier:
    """Map a visitor's behavioral signals to one catalog segment.

    Given the same inputs the rule-based path always returns the same segment.
    """

    def __init__(
        self,
        products: ProductRepository,
        orders: OrderRepository | None = None,
        oracle: RankingOracle | None = None,
    ) -> None:
        self.products = products
        self.orders = orders
        self.oracle = oracle

    def classify(self, visitor: VisitorSignal) -> CustomerSegment:
        viewed = self._resolve_products(visitor.viewed_product_ids)
        orders = self._orders_for(visitor.user_id)
        purchase_ids = self._purchase_history(visitor, orders)

        if self.oracle is not None and (viewed or purchase_ids or orders):
            segment = self._classify_with_oracle(viewed, purchase_ids, len(orders))
            if segment is not None:
                return segment

        return self._classify_by_rules(visitor, viewed, purchase_ids, has_orders=bool(orders))

    def classify_by_rules(self, visitor: VisitorSignal) -> CustomerSegment:
        """Rule-based classification only, skipping the oracle."""
        orders = self._orders_for(visitor.user_id)
        return self._classify_by_rules(
            visitor,
            self._resolve_products(visitor.viewed_product_ids),
            self._purchase_history(visitor, orders),
            has_orders=bool(orders),
        )

    def _classify_by_rules(
        self,
        visitor: VisitorSignal,
        viewed: list[Product],
        purchase_ids: list[int],
        *,
        has_orders: bool,
    ) -> CustomerSegment:
        if purchase_ids or has_orders:
            return get_segment_for_role("returning_customer")
        if visitor.cart_abandon_product_ids:
            return get_segment_for_role("price_sensitive")
        if visitor.user_id is None and viewed:
            return segment_for_category(dominant_category(viewed))
        if len(visitor.viewed_product_ids) > FEATURE_FOCUSED_VIEW_THRESHOLD:
            return get_segment_for_role("feature_focused")
        return get_segment_for_role("new_visitor")

    def _classify_with_oracle(
        self,
        viewed: list[Product],
        purchase_ids: list[int],
        order_count: int,
    ) -> CustomerSegment | None:
        profile = build_profile_text(viewed, purchase_ids, order_count)
        try:
            answer = self.oracle.classify_segment(profile)
        except Exception as exc:
            logger.warning("oracle segment classification failed, using rules: %s", exc)
            return None

        if not isinstance(answer, str):
            logger.warning("oracle returned a non-text segment answer: %r", answer)
            return None
        segment = find_segment_by_name(answer)
        if segment is None:
            logger.info("oracle segment answer %r matched no catalog segment", answer[:80])
        return segment

    def _resolve_products(self, product_ids: list[int]) -> list[Product]:
        resolved = []
        for product_id in dict.fromkeys(product_ids):
            product = self.products.get_by_id(product_id)
            if product is not None:
                resolved.append(product)
        return resolved

    def _orders_for(self, user_id: int | None) -> list[Order]:
        if user_id is None or self.orders is None:
            return []
        return self.orders.list_by_user(user_id)

    @staticmethod
    def _purchase_history(visitor: VisitorSignal, orders: list[Order]) -> list[int]:
        purchase_ids = list(visitor.purchase_history_product_ids)
        for order in orders:
            purchase_ids.extend(order.product_ids)
        return list(dict.fromkeys(purchase_ids))
