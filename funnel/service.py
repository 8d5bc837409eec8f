"""Sales funnel orchestration: segmentation, step selection, offers and pricing."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Iterable

from funnel.cache import RateLimiter, TTLCache
from funnel.catalog import FUNNEL_POSITIONS, CustomerSegment, FunnelStep
from funnel.config import FunnelSettings, load_settings
from funnel.db import FunnelEventStore
from funnel.funnel_steps import select_step
from funnel.models import Product, VisitorSignal
from funnel.oracle import RankingOracle, build_oracle
from funnel.pricing import PriceQuote, calculate_checkout_price, calculate_dynamic_price
from funnel.recommendations import RecommendationResolver
from funnel.repository import OrderRepository, ProductRepository, build_demo_repository
from funnel.revenue import RevenueGovernor
from funnel.segmentation import SegmentClassifier

logger = logging.getLogger(__name__)

OFFER_LIMIT = 3
CHECKOUT_OFFER_LIMIT = 2
CART_OFFERS_PER_ITEM = 2
NEXT_PURCHASE_VALID_DAYS = 30

DEFAULT_OFFER_MESSAGE = "Products you might like"
DEFAULT_OFFER_CTA = "View Details"
DEFAULT_CHECKOUT_CTA = "Add to Order"
THANK_YOU_MESSAGE = "Thanks for your order! Here are a few picks for your next ride."


class SalesFunnelService:
    """Holds every piece of mutable funnel state as an injected field.

    Caches, the rate limiter, the revenue governor and view counters belong
    to one service instance, so tests can build isolated instances.
    """

    def __init__(
        self,
        products: ProductRepository,
        orders: OrderRepository | None = None,
        *,
        settings: FunnelSettings | None = None,
        oracle: RankingOracle | None = None,
        store: FunnelEventStore | None = None,
        clock: Callable[[], float] = time.time,
        revenue_clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or FunnelSettings()
        self.products = products
        self.orders = orders
        self.oracle = oracle
        self.store = store

        cache_settings = self.settings.cache
        self.recommendation_cache = self._new_cache(cache_settings.recommendation_ttl_seconds, clock)
        self.price_cache = self._new_cache(cache_settings.recommendation_ttl_seconds, clock)
        self.product_cache = self._new_cache(cache_settings.recommendation_ttl_seconds, clock)
        self.rate_limiter = RateLimiter(
            max_requests=self.settings.rate_limit.max_requests,
            window_seconds=self.settings.rate_limit.window_seconds,
            clock=clock,
        )
        self.revenue_governor = RevenueGovernor(
            max_monthly_revenue=self.settings.revenue.max_monthly_revenue,
            clock=revenue_clock,
        )

        self.classifier = SegmentClassifier(products, orders, oracle)
        self.resolver = RecommendationResolver(products, oracle, self.recommendation_cache)

        self._view_counts: Counter[int] = Counter()
        self._view_lock = threading.Lock()
        if store is not None:
            self._view_counts.update(store.get_product_view_counts())

    def _new_cache(self, ttl_seconds: float, clock: Callable[[], float]) -> TTLCache:
        return TTLCache(
            ttl_seconds=ttl_seconds,
            capacity=self.settings.cache.capacity,
            eviction_batch=self.settings.cache.eviction_batch,
            clock=clock,
        )

    # Lookups

    def get_product(self, product_id: int) -> Product | None:
        key = str(product_id)
        cached = self.product_cache.get(key)
        if cached is not None:
            return cached
        product = self.products.get_by_id(product_id)
        if product is not None:
            self.product_cache.set(key, product)
        return product

    def _resolve_products(self, product_ids: Iterable[int]) -> list[Product]:
        resolved = []
        for product_id in product_ids:
            product = self.get_product(product_id)
            if product is not None:
                resolved.append(product)
        return resolved

    def view_count(self, product_id: int) -> int:
        with self._view_lock:
            return self._view_counts[product_id]

    def promotions_allowed(self) -> bool:
        return self.revenue_governor.status()["should_offer_promotions"]

    # Pricing

    def _offer_price(self, product: Product, segment: CustomerSegment) -> PriceQuote:
        key = f"{segment.id}:{product.id}"
        cached = self.price_cache.get(key)
        if cached is not None:
            return cached
        quote = calculate_dynamic_price(product, segment)
        self.price_cache.set(key, quote)
        return quote

    def _build_offer(self, product: Product, segment: CustomerSegment) -> dict[str, Any]:
        quote = self._offer_price(product, segment)
        offer_price = quote["dynamic_price"] if quote["dynamic_price"] != product.price else None
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "image": product.image_url,
            "original_price": product.price,
            "offer_price": offer_price,
            "discount_percentage": quote["discount_percentage"],
        }

    @staticmethod
    def _build_recommendation(product: Product) -> dict[str, Any]:
        return {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "price": product.price,
            "image": product.image_url,
            "rating": product.rating,
            "review_count": product.review_count,
        }

    def _step_or_recommended(
        self,
        segment: CustomerSegment,
        visitor: VisitorSignal,
        trigger_product_id: int,
        position: str,
        limit: int,
        exclude: Iterable[int] = (),
    ) -> tuple[FunnelStep | None, list[Product]]:
        """Offer products of the selected step, or free-form recommendations without one."""
        excluded = set(exclude)
        step = select_step(segment, trigger_product_id, position)
        if step is not None:
            candidates = self.resolver.for_step(step, len(step.product_associations.offer_product_ids))
        else:
            ids = self.resolver.recommend(segment, visitor, trigger_product_id, limit + len(excluded))
            candidates = self._resolve_products(ids)
        products = [product for product in candidates if product.id not in excluded and product.id != trigger_product_id]
        return step, products[:limit]

    # Funnel operations

    def get_personalized_offers(
        self,
        product_id: int,
        viewed_product_ids: Iterable[int] = (),
        user_id: int | None = None,
        position: str = "product_page",
    ) -> dict[str, Any]:
        """Offers for a product page (or other position) view.

        Raises:
            ValueError: If ``position`` is not a known funnel position.
        """
        if position not in FUNNEL_POSITIONS:
            raise ValueError(f"position must be one of {', '.join(FUNNEL_POSITIONS)}")

        visitor = VisitorSignal(user_id=user_id, viewed_product_ids=[*viewed_product_ids, product_id])
        segment = self.classifier.classify(visitor)
        response: dict[str, Any] = {
            "offers": [],
            "message": DEFAULT_OFFER_MESSAGE,
            "cta": DEFAULT_OFFER_CTA,
            "segment": segment.id,
            "funnel_step_id": None,
            "promotion_message": segment.render_message() if self.promotions_allowed() else None,
        }

        if self.get_product(product_id) is None:
            logger.info("personalized offers requested for unknown product %s", product_id)
            return response

        step, products = self._step_or_recommended(segment, visitor, product_id, position, OFFER_LIMIT)
        if step is not None:
            response["message"] = step.description
            response["cta"] = step.cta
            response["funnel_step_id"] = step.id
        response["offers"] = [self._build_offer(product, segment) for product in products]
        return response

    def get_checkout_offers(self, cart_product_ids: list[int], user_id: int | None = None) -> dict[str, Any]:
        """Checkout-time upsells, never repeating anything already in the cart.

        Raises:
            ValueError: If the cart is empty.
        """
        cart = list(dict.fromkeys(cart_product_ids))
        if not cart:
            raise ValueError("cart_items must contain at least one product")

        visitor = VisitorSignal(user_id=user_id, viewed_product_ids=cart)
        segment = self.classifier.classify(visitor)
        step, products = self._step_or_recommended(
            segment, visitor, cart[0], "checkout", CHECKOUT_OFFER_LIMIT, exclude=cart
        )

        offers = []
        for product in products:
            quote = calculate_checkout_price(product, segment, view_count=self.view_count(product.id))
            offers.append(
                {
                    "id": product.id,
                    "name": product.name,
                    "description": product.description,
                    "message": step.description if step else f"Add this {product.name} to complete your purchase!",
                    "image": product.image_url,
                    "price": quote["dynamic_price"],
                    "cta": step.cta if step else DEFAULT_CHECKOUT_CTA,
                }
            )
        return {"offers": offers}

    def get_user_segment(self, user_id: int | None, browsing_history: list[int]) -> dict[str, str]:
        segment = self.classifier.classify(VisitorSignal(user_id=user_id, viewed_product_ids=browsing_history))
        return {"segment": segment.id, "name": segment.name}

    def track_product_views(self, product_ids: list[int]) -> dict[str, Any]:
        """Acknowledge views; counting happens later in :meth:`apply_product_views`.

        Raises:
            ValueError: If no product ids are given.
        """
        if not product_ids:
            raise ValueError("product_ids must contain at least one product")
        return {"success": True, "message": "Views recorded"}

    def apply_product_views(self, product_ids: list[int]) -> None:
        known = [product.id for product in self._resolve_products(product_ids)]
        with self._view_lock:
            self._view_counts.update(known)
        if self.store is not None and known:
            self.store.record_product_views(known)

    def record_order_revenue(self, order_id: str, amount: float) -> dict[str, Any]:
        """Feed a completed order into the revenue governor.

        Raises:
            ValueError: If ``amount`` is negative.
        """
        within_limits, snapshot = self.revenue_governor.record_revenue(amount)
        if not within_limits:
            logger.warning("revenue cap exceeded after order %s", order_id)
        if self.store is not None:
            self.store.save_revenue_event(
                order_id=order_id,
                amount=amount,
                within_limits=within_limits,
                revenue_status=snapshot["status"],
            )
        return {
            "success": True,
            "within_limits": within_limits,
            "daily_percentage": round(snapshot["daily_percentage"], 2),
            "monthly_percentage": round(snapshot["monthly_percentage"], 2),
            "revenue_status": snapshot["status"],
        }

    def get_personalized_recommendations(
        self,
        current_product_id: int | None = None,
        viewed_product_ids: Iterable[int] = (),
        user_id: int | None = None,
        limit: int = 4,
    ) -> dict[str, Any]:
        """Related products for the page the visitor is on.

        Raises:
            ValueError: If ``limit`` is negative.
        """
        visitor = VisitorSignal(user_id=user_id, viewed_product_ids=list(viewed_product_ids))
        segment = self.classifier.classify(visitor)
        ids = self.resolver.recommend(segment, visitor, current_product_id, limit)
        return {"recommendations": [self._build_recommendation(product) for product in self._resolve_products(ids)]}

    def get_cart_recommendations(self, cart_product_ids: list[int], user_id: int | None = None) -> dict[str, Any]:
        cart = list(dict.fromkeys(cart_product_ids))
        visitor = VisitorSignal(user_id=user_id, viewed_product_ids=cart)
        segment = self.classifier.classify(visitor)

        recommendations = []
        for product_id in cart:
            if self.get_product(product_id) is None:
                continue
            _, products = self._step_or_recommended(
                segment, visitor, product_id, "cart", CART_OFFERS_PER_ITEM, exclude=cart
            )
            if products:
                recommendations.append(
                    {
                        "trigger_product_id": product_id,
                        "recommendations": [self._build_offer(product, segment) for product in products],
                    }
                )
        return {"segment_id": segment.id, "recommendations": recommendations}

    def get_order_confirmation_offers(
        self,
        order_id: str,
        order_product_ids: list[int],
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """Next-purchase incentive plus follow-up recommendations after an order."""
        items = list(dict.fromkeys(order_product_ids))
        visitor = VisitorSignal(user_id=user_id, viewed_product_ids=items, purchase_history_product_ids=items)
        segment = self.classifier.classify(visitor)
        step = select_step(segment, items[0] if items else None, "order_confirmation")

        promotions = self.promotions_allowed()
        if promotions:
            message = f"{step.description}: {segment.render_message()}" if step else segment.render_message()
        else:
            message = THANK_YOU_MESSAGE
        next_purchase_offer = {
            "discount_code": _discount_code(segment, order_id),
            "discount_value": segment.discount_value if promotions else 0,
            "discount_type": segment.discount_strategy,
            "valid_days": NEXT_PURCHASE_VALID_DAYS,
            "message": message,
        }

        recommended: list[Product] = []
        if items:
            ids = self.resolver.recommend(segment, visitor, items[0], 4 + len(items))
            recommended = [product for product in self._resolve_products(ids) if product.id not in items][:4]
        return {
            "segment_id": segment.id,
            "next_purchase_offer": next_purchase_offer,
            "recommendations": [self._build_recommendation(product) for product in recommended],
        }

    def revenue_status(self) -> dict[str, Any]:
        snapshot = self.revenue_governor.snapshot()
        return {
            **snapshot,
            "daily_percentage": round(snapshot["daily_percentage"], 2),
            "monthly_percentage": round(snapshot["monthly_percentage"], 2),
        }


def _discount_code(segment: CustomerSegment, order_id: str) -> str:
    prefix = "".join(part[0] for part in segment.id.split("-")).upper()
    return f"NEXT-{prefix}{int(segment.discount_value)}-{order_id}".upper()


def build_default_service(settings: FunnelSettings | None = None) -> SalesFunnelService:
    """Service over the demo catalog, with oracle and event store from settings."""
    settings = settings or load_settings()
    repository = build_demo_repository()
    oracle_cache = TTLCache(
        ttl_seconds=settings.cache.oracle_ttl_seconds,
        capacity=settings.cache.capacity,
        eviction_batch=settings.cache.eviction_batch,
    )
    return SalesFunnelService(
        repository,
        repository,
        settings=settings,
        oracle=build_oracle(settings.oracle, oracle_cache),
        store=FunnelEventStore(settings.db_path),
    )
