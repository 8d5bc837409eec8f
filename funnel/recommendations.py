"""Recommendation resolution for funnel offers and "you may also like" widgets."""

from __future__ import annotations

import hashlib
import json
import logging

from funnel.cache import TTLCache
from funnel.catalog import BRAND_NAMES, CATEGORY_NAMES, CustomerSegment, FunnelStep
from funnel.models import Product, VisitorSignal
from funnel.oracle import RankingOracle
from funnel.repository import ProductRepository

logger = logging.getLogger(__name__)

SAME_CATEGORY_SLOTS = 2
COMPLEMENTARY_SLOTS = 2
COMPLEMENTARY_PRICE_BAND = 0.3
PERSONALIZED_CATEGORY_SLOTS = 5


def recommendation_cache_key(
    trigger_product_id: int | None,
    viewed_product_ids: list[int],
    limit: int,
    segment_id: str | None = None,
) -> str:
    """Stable signature of (trigger, sorted viewed ids, limit), plus the segment when given."""
    fields: dict[str, object] = {
        "trigger": trigger_product_id,
        "viewed": sorted(set(viewed_product_ids)),
        "limit": limit,
    }
    if segment_id is not None:
        fields["segment"] = segment_id
    normalized = json.dumps(
        fields,
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def _top_rated_key(product: Product) -> tuple[bool, float]:
    return (product.review_count > 0, product.rating)


class RecommendationResolver:
    """Resolve ordered product-id recommendations for a visitor.

    Every result is de-duplicated, excludes the trigger product and is at most
    ``limit`` long. Oracle rankings are used when available and sane;
    otherwise a rule-based fallback runs within the same call.
    """

    def __init__(
        self,
        products: ProductRepository,
        oracle: RankingOracle | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self.products = products
        self.oracle = oracle
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=24 * 60 * 60)

    def for_step(self, step: FunnelStep, limit: int) -> list[Product]:
        """Offer products of a funnel step, highest margin ratio first."""
        _check_limit(limit)
        offers = []
        for product_id in dict.fromkeys(step.product_associations.offer_product_ids):
            product = self.products.get_by_id(product_id)
            if product is not None:
                offers.append(product)
        offers.sort(key=lambda product: product.margin_ratio(), reverse=True)
        return offers[:limit]

    def personalized(
        self,
        segment: CustomerSegment,
        trigger_product_id: int | None,
        limit: int,
    ) -> list[Product]:
        """Segment targets plus same-category products, targeted and popular first."""
        _check_limit(limit)
        candidates: dict[int, Product] = {}
        for product_id in segment.target_product_ids:
            product = self.products.get_by_id(product_id)
            if product is not None:
                candidates.setdefault(product.id, product)

        trigger = self.products.get_by_id(trigger_product_id) if trigger_product_id is not None else None
        if trigger is not None:
            same_category = [
                product for product in self.products.list_by_category(trigger.category_id) if product.id != trigger.id
            ]
            for product in same_category[:PERSONALIZED_CATEGORY_SLOTS]:
                candidates.setdefault(product.id, product)

        candidates.pop(trigger_product_id, None)
        targeted = set(segment.target_product_ids)
        ranked = sorted(
            candidates.values(),
            key=lambda product: (product.id in targeted, product.is_popular, product.rating),
            reverse=True,
        )
        return ranked[:limit]

    def recommend(
        self,
        segment: CustomerSegment,
        visitor: VisitorSignal,
        trigger_product_id: int | None = None,
        limit: int = 4,
    ) -> list[int]:
        """Ordered product ids for the visitor, cached for the cache TTL.

        Raises:
            ValueError: If ``limit`` is negative.
        """
        _check_limit(limit)
        segment_id = segment.id if trigger_product_id is None else None
        key = recommendation_cache_key(trigger_product_id, visitor.viewed_product_ids, limit, segment_id)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        result = self._resolve(segment, visitor, trigger_product_id, limit)
        self.cache.set(key, list(result))
        return result

    def _resolve(
        self,
        segment: CustomerSegment,
        visitor: VisitorSignal,
        trigger_product_id: int | None,
        limit: int,
    ) -> list[int]:
        if limit == 0:
            return []
        if trigger_product_id is None:
            return [product.id for product in self.personalized(segment, None, limit)]

        trigger = self.products.get_by_id(trigger_product_id)
        if trigger is None:
            return []

        if self.oracle is not None:
            ranked = self._rank_with_oracle(trigger, segment, visitor, limit)
            if ranked:
                return ranked
        return self.fallback(trigger, limit)

    def fallback(self, trigger: Product, limit: int) -> list[int]:
        """Same-category, then complementary by price band, then top-rated fill."""
        _check_limit(limit)
        selected: list[Product] = []
        taken = {trigger.id}

        def _take(candidates: list[Product], slots: int) -> None:
            for product in candidates:
                if slots <= 0 or len(selected) >= limit:
                    return
                if product.id in taken:
                    continue
                selected.append(product)
                taken.add(product.id)
                slots -= 1

        _take(self.products.list_by_category(trigger.category_id), SAME_CATEGORY_SLOTS)

        low = trigger.price * (1 - COMPLEMENTARY_PRICE_BAND)
        high = trigger.price * (1 + COMPLEMENTARY_PRICE_BAND)
        complementary = [
            product
            for product in self.products.list_products()
            if product.category_id != trigger.category_id and low <= product.price <= high
        ]
        _take(complementary, COMPLEMENTARY_SLOTS)

        if len(selected) < limit:
            top_rated = sorted(self.products.list_products(), key=_top_rated_key, reverse=True)
            _take(top_rated, limit - len(selected))

        return [product.id for product in selected[:limit]]

    def _rank_with_oracle(
        self,
        trigger: Product,
        segment: CustomerSegment,
        visitor: VisitorSignal,
        limit: int,
    ) -> list[int]:
        prompt = self._build_ranking_prompt(trigger, segment, visitor, limit)
        try:
            ranked = self.oracle.rank_products(prompt)
        except Exception as exc:
            logger.warning("oracle ranking failed for product %s, using fallback: %s", trigger.id, exc)
            return []

        sanitized: list[int] = []
        for product_id in ranked:
            if not isinstance(product_id, int) or isinstance(product_id, bool):
                continue
            if product_id == trigger.id or product_id in sanitized:
                continue
            if self.products.get_by_id(product_id) is None:
                continue
            sanitized.append(product_id)
        if not sanitized:
            logger.info("oracle ranking for product %s had no usable ids", trigger.id)
        return sanitized[:limit]

    def _build_ranking_prompt(
        self,
        trigger: Product,
        segment: CustomerSegment,
        visitor: VisitorSignal,
        limit: int,
    ) -> str:
        candidates = "\n".join(
            f"- {product.id}: {product.name} ({CATEGORY_NAMES.get(product.category_id, 'Other')}, ${product.price:.2f})"
            for product in self.products.list_products()
            if product.id != trigger.id
        )
        brand = BRAND_NAMES.get(trigger.brand_id, "Unknown") if trigger.brand_id is not None else "Unknown"
        return (
            "Current product:\n"
            f"- Name: {trigger.name}\n"
            f"- Description: {trigger.description}\n"
            f"- Category: {CATEGORY_NAMES.get(trigger.category_id, 'Other')}\n"
            f"- Brand: {brand}\n"
            f"- Price: ${trigger.price:.2f}\n\n"
            f"Customer segment: {segment.name}\n"
            f"Customer has viewed {len(set(visitor.viewed_product_ids))} products and purchased "
            f"{len(set(visitor.purchase_history_product_ids))} products.\n\n"
            f"Available products:\n{candidates}\n\n"
            f"Respond only with a JSON array of up to {limit} product ids, most relevant first."
        )


def _check_limit(limit: int) -> None:
    if limit < 0:
        raise ValueError("limit must be non-negative")
