"""Manual funnel walkthrough harness.

Walks a few scripted visitors through product page, cart, checkout and
order confirmation against the demo catalog, printing each payload. Runs
rule-based only (no oracle) and without the SQLite event store.
"""

from __future__ import annotations

import json

from funnel.repository import build_demo_repository
from funnel.service import SalesFunnelService

VISITORS = [
    # 1) Anonymous visitor browsing wheels and tires.
    {"label": "anonymous-wheels", "user_id": None, "viewed": [3, 5], "product_id": 5, "cart": [5]},
    # 2) Returning customer (user 1 has two past orders).
    {"label": "returning-customer", "user_id": 1, "viewed": [1, 9], "product_id": 2, "cart": [2, 9]},
    # 3) Logged-in window shopper with a long browsing trail.
    {"label": "window-shopper", "user_id": 42, "viewed": [1, 2, 3, 4, 6, 8], "product_id": 8, "cart": [8]},
]


def build_service() -> SalesFunnelService:
    repository = build_demo_repository()
    return SalesFunnelService(repository, repository)


def _print(title: str, payload: dict) -> None:
    print(f"--- {title}")
    print(json.dumps(payload, indent=2))


def main() -> None:
    service = build_service()
    for index, visitor in enumerate(VISITORS, start=1):
        print(f"\n===== {visitor['label']} =====")
        _print(
            "personalized offers",
            service.get_personalized_offers(visitor["product_id"], visitor["viewed"], visitor["user_id"]),
        )
        _print("cart recommendations", service.get_cart_recommendations(visitor["cart"], visitor["user_id"]))
        _print("checkout offers", service.get_checkout_offers(visitor["cart"], visitor["user_id"]))

        order_id = f"SIM-{index:04d}"
        total = sum(service.get_product(product_id).price for product_id in visitor["cart"])
        _print("order revenue", service.record_order_revenue(order_id, total))
        _print(
            "order confirmation",
            service.get_order_confirmation_offers(order_id, visitor["cart"], visitor["user_id"]),
        )

    _print("revenue status", service.revenue_status())


if __name__ == "__main__":
    main()
