"""Domain models for products, orders and visitor behavior signals."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class Product(BaseModel):
    """Catalog product as consumed by the funnel engine.

    Storage layers hand prices and ratings over as decimal strings; they are
    coerced to floats here so pricing and ranking code only ever sees numbers.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1)
    slug: str = ""
    description: str = ""
    price: float = Field(..., gt=0, description="Listed price in USD.")
    compare_at_price: float | None = Field(None, ge=0)
    cost_price: float | None = Field(None, ge=0, description="Supplier cost, when known.")
    category_id: int
    brand_id: int | None = None
    inventory_count: int = Field(0, ge=0)
    is_popular: bool = False
    is_featured: bool = False
    rating: float = Field(0.0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    image_url: str | None = None

    @field_validator("price", "compare_at_price", "cost_price", "rating", mode="before")
    @classmethod
    def coerce_decimal_strings(cls, value: object, info: ValidationInfo) -> object:
        """Accept decimal strings such as ``"599.99"`` for numeric fields.

        A blank string means "not set": ``None`` for the optional prices and
        the ``0.0`` default for ``rating``.
        """
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return 0.0 if info.field_name == "rating" else None
            return float(stripped)
        return value

    def margin_ratio(self) -> float:
        """Return ``(price - compare_at_price) / price`` with a missing compare price as 0."""
        compare = self.compare_at_price or 0.0
        return (self.price - compare) / self.price


class Order(BaseModel):
    """Completed order, reduced to what segmentation needs."""

    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int | None = None
    total: float = Field(0.0, ge=0)
    product_ids: list[int] = Field(default_factory=list)


class VisitorSignal(BaseModel):
    """Per-request behavioral input supplied by the caller."""

    model_config = ConfigDict(extra="forbid")

    user_id: int | None = None
    viewed_product_ids: list[int] = Field(default_factory=list)
    cart_abandon_product_ids: list[int] = Field(default_factory=list)
    purchase_history_product_ids: list[int] = Field(default_factory=list)
    device: str | None = None
    referrer: str | None = None

    @field_validator(
        "viewed_product_ids",
        "cart_abandon_product_ids",
        "purchase_history_product_ids",
    )
    @classmethod
    def drop_duplicate_ids(cls, values: list[int]) -> list[int]:
        """Remove repeated ids while keeping first-seen order."""
        return list(dict.fromkeys(values))
