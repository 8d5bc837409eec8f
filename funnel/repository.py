"""Repository protocols consumed by the funnel engine, plus an in-memory backend."""

from __future__ import annotations

from typing import Iterable, Protocol

from funnel.models import Order, Product


class ProductRepository(Protocol):
    """Read-only product lookups the engine depends on."""

    def get_by_id(self, product_id: int) -> Product | None: ...

    def list_by_category(self, category_id: int, limit: int | None = None) -> list[Product]: ...

    def list_featured(self, limit: int | None = None) -> list[Product]: ...

    def list_products(self, limit: int | None = None) -> list[Product]: ...


class OrderRepository(Protocol):
    def list_by_user(self, user_id: int) -> list[Order]: ...


def _take(products: list[Product], limit: int | None) -> list[Product]:
    if limit is None:
        return products
    return products[: max(0, limit)]


class InMemoryCatalogRepository:
    """Product and order repository backed by plain lists, in insertion order."""

    def __init__(self, products: Iterable[Product] = (), orders: Iterable[Order] = ()) -> None:
        self._products: dict[int, Product] = {}
        self._orders: list[Order] = []
        for product in products:
            self.add_product(product)
        for order in orders:
            self.add_order(order)

    def add_product(self, product: Product) -> None:
        self._products[product.id] = product

    def add_order(self, order: Order) -> None:
        self._orders.append(order)

    def get_by_id(self, product_id: int) -> Product | None:
        return self._products.get(product_id)

    def list_by_category(self, category_id: int, limit: int | None = None) -> list[Product]:
        matches = [product for product in self._products.values() if product.category_id == category_id]
        return _take(matches, limit)

    def list_featured(self, limit: int | None = None) -> list[Product]:
        return _take([product for product in self._products.values() if product.is_featured], limit)

    def list_products(self, limit: int | None = None) -> list[Product]:
        return _take(list(self._products.values()), limit)

    def list_by_user(self, user_id: int) -> list[Order]:
        return [order for order in self._orders if order.user_id == user_id]


def build_demo_repository() -> InMemoryCatalogRepository:
    """Repository seeded with the demo UTV catalog and orders."""
    from funnel.demo_data import build_demo_orders, build_demo_products

    return InMemoryCatalogRepository(build_demo_products(), build_demo_orders())
