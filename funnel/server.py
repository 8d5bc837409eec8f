"""FastAPI server exposing the sales funnel engine to the storefront."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import BackgroundTasks, Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from funnel.service import SalesFunnelService, build_default_service


class JsonLogFormatter(logging.Formatter):
    """Simple JSON log formatter for structured production logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        return json.dumps(payload)


logger = logging.getLogger("funnel")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    detail: str


class CartItem(ApiModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(1, ge=1)


class PersonalizedOffersRequest(ApiModel):
    product_id: int = Field(..., ge=1)
    viewed_product_ids: list[int] = Field(default_factory=list)
    user_id: int | None = None
    position: str = Field("product_page", validation_alias="source")


class CheckoutOffersRequest(ApiModel):
    cart_items: list[CartItem] = Field(..., min_length=1)
    user_id: int | None = None


class UserSegmentRequest(ApiModel):
    user_id: int | None = None
    browsing_history: list[int] = Field(default_factory=list)


class ProductViewsRequest(ApiModel):
    product_ids: list[int] = Field(..., min_length=1)


class OrderReference(ApiModel):
    order_id: str = Field(..., min_length=1)

    @field_validator("order_id", mode="before")
    @classmethod
    def accept_numeric_order_id(cls, value: Any) -> Any:
        """Storefront order ids arrive as integers; keep them as text."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class PersonalizedRecommendationsRequest(ApiModel):
    current_product_id: int | None = None
    viewed_product_ids: list[int] = Field(default_factory=list)
    user_id: int | None = None
    limit: int = Field(4, ge=0, le=20)


class CartRecommendationsRequest(ApiModel):
    cart_items: list[CartItem] = Field(..., min_length=1)
    user_id: int | None = None


class RecordOrderRevenueRequest(OrderReference):
    amount: float = Field(..., ge=0)


class OrderConfirmationRequest(OrderReference):
    order_items: list[CartItem] = Field(default_factory=list)
    user_id: int | None = None


class FunnelOffer(ApiModel):
    id: int
    name: str
    description: str
    image: str | None
    original_price: float
    offer_price: float | None
    discount_percentage: float


class PersonalizedOffersResponse(ApiModel):
    offers: list[FunnelOffer]
    message: str
    cta: str
    segment: str
    funnel_step_id: str | None
    promotion_message: str | None


class CheckoutOffer(ApiModel):
    id: int
    name: str
    description: str
    message: str
    image: str | None
    price: float
    cta: str


class CheckoutOffersResponse(ApiModel):
    offers: list[CheckoutOffer]


class UserSegmentResponse(ApiModel):
    segment: str
    name: str


class ProductViewsResponse(ApiModel):
    success: bool
    message: str


class RecordOrderRevenueResponse(ApiModel):
    success: bool
    within_limits: bool
    daily_percentage: float
    monthly_percentage: float
    revenue_status: str


class ProductRecommendation(ApiModel):
    id: int
    name: str
    slug: str
    price: float
    image: str | None
    rating: float
    review_count: int


class RecommendationsResponse(ApiModel):
    recommendations: list[ProductRecommendation]


class CartRecommendation(ApiModel):
    trigger_product_id: int
    recommendations: list[FunnelOffer]


class CartRecommendationsResponse(ApiModel):
    segment_id: str
    recommendations: list[CartRecommendation]


class NextPurchaseOffer(ApiModel):
    discount_code: str
    discount_value: float
    discount_type: str
    valid_days: int
    message: str


class OrderConfirmationOffersResponse(ApiModel):
    segment_id: str
    next_purchase_offer: NextPurchaseOffer
    recommendations: list[ProductRecommendation]


class RevenueStatusResponse(ApiModel):
    status: str
    ad_spend_multiplier: float
    should_offer_promotions: bool
    daily_percentage: float
    monthly_percentage: float
    can_accept_more_orders: bool


service: SalesFunnelService | None = None


def initialize_service(instance: SalesFunnelService | None = None) -> SalesFunnelService:
    """Install the service used by all routes, replacing any previous one."""
    global service
    if service is not None:
        service.rate_limiter.stop_sweeper()
    service = instance if instance is not None else build_default_service()
    return service


def _service() -> SalesFunnelService:
    if service is None:
        return initialize_service()
    return service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the rate-limit bucket sweeper for as long as the app serves."""
    active = _service()
    active.rate_limiter.start_sweeper(active.settings.rate_limit.sweep_interval_seconds)
    try:
        yield
    finally:
        if service is not None:
            service.rate_limiter.stop_sweeper()


app = FastAPI(title="UTV Sales Funnel API", lifespan=lifespan)


def _client_id(request: Request) -> str:
    session_id = request.headers.get("x-session-id", "").strip()
    if session_id:
        return f"session:{session_id}"
    return request.client.host if request.client else "unknown"


@app.middleware("http")
async def rate_limit_and_timing(request: Request, call_next):
    start = time.perf_counter()
    if request.url.path.startswith("/api/") and not _service().rate_limiter.check(_client_id(request)):
        logger.warning(
            "rate_limit_exceeded",
            extra={"extra": {"path": request.url.path, "client": _client_id(request)}},
        )
        return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})

    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.info(
        f"request_completed {request.method} {request.url.path}",
        extra={"extra": {"path": request.url.path, "method": request.method, "status_code": response.status_code, "elapsed_ms": elapsed_ms}},
    )
    return response


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception):
    logger.error(
        f"unhandled_exception: {exc}",
        extra={"extra": {"path": request.url.path, "method": request.method}},
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health", tags=["System"])
def health() -> dict:
    """Healthcheck endpoint."""
    return {"status": "ok"}


@app.post(
    "/api/funnel/personalized-offers",
    response_model=PersonalizedOffersResponse,
    tags=["Funnel"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def personalized_offers(
    payload: PersonalizedOffersRequest = Body(
        ...,
        example={"productId": 1, "viewedProductIds": [3, 5], "userId": None, "source": "product_page"},
    ),
) -> PersonalizedOffersResponse:
    try:
        result = _service().get_personalized_offers(
            payload.product_id,
            payload.viewed_product_ids,
            payload.user_id,
            payload.position,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return PersonalizedOffersResponse(**result)


@app.post(
    "/api/funnel/checkout-offers",
    response_model=CheckoutOffersResponse,
    tags=["Funnel"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def checkout_offers(payload: CheckoutOffersRequest) -> CheckoutOffersResponse:
    try:
        result = _service().get_checkout_offers([item.product_id for item in payload.cart_items], payload.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return CheckoutOffersResponse(**result)


@app.post(
    "/api/funnel/user-segment",
    response_model=UserSegmentResponse,
    tags=["Funnel"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def user_segment(payload: UserSegmentRequest) -> UserSegmentResponse:
    return UserSegmentResponse(**_service().get_user_segment(payload.user_id, payload.browsing_history))


@app.post(
    "/api/analytics/product-views",
    response_model=ProductViewsResponse,
    tags=["Analytics"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def product_views(payload: ProductViewsRequest, background_tasks: BackgroundTasks) -> ProductViewsResponse:
    active = _service()
    try:
        result = active.track_product_views(payload.product_ids)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    background_tasks.add_task(active.apply_product_views, payload.product_ids)
    return ProductViewsResponse(**result)


@app.post(
    "/api/record-order-revenue",
    response_model=RecordOrderRevenueResponse,
    tags=["Revenue"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def record_order_revenue(payload: RecordOrderRevenueRequest) -> RecordOrderRevenueResponse:
    try:
        result = _service().record_order_revenue(payload.order_id, payload.amount)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return RecordOrderRevenueResponse(**result)


@app.get("/api/revenue-status", response_model=RevenueStatusResponse, tags=["Revenue"])
def revenue_status() -> RevenueStatusResponse:
    return RevenueStatusResponse(**_service().revenue_status())


@app.post(
    "/api/personalized-recommendations",
    response_model=RecommendationsResponse,
    tags=["Recommendations"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def personalized_recommendations(payload: PersonalizedRecommendationsRequest) -> RecommendationsResponse:
    try:
        result = _service().get_personalized_recommendations(
            payload.current_product_id,
            payload.viewed_product_ids,
            payload.user_id,
            payload.limit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return RecommendationsResponse(**result)


@app.post(
    "/api/cart-recommendations",
    response_model=CartRecommendationsResponse,
    tags=["Recommendations"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def cart_recommendations(payload: CartRecommendationsRequest) -> CartRecommendationsResponse:
    result = _service().get_cart_recommendations([item.product_id for item in payload.cart_items], payload.user_id)
    return CartRecommendationsResponse(**result)


@app.post(
    "/api/order-confirmation-offers",
    response_model=OrderConfirmationOffersResponse,
    tags=["Recommendations"],
    responses={422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def order_confirmation_offers(payload: OrderConfirmationRequest) -> OrderConfirmationOffersResponse:
    result = _service().get_order_confirmation_offers(
        payload.order_id,
        [item.product_id for item in payload.order_items],
        payload.user_id,
    )
    return OrderConfirmationOffersResponse(**result)
