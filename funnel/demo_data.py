"""Seed catalog for demos, the manual harness and tests.

Ten real aftermarket UTV products across seven categories, plus a couple of
historical orders so the returning-customer path has something to find.
"""

from __future__ import annotations

from funnel.models import Order, Product


def build_demo_products() -> list[Product]:
    """Return the ten-product UTV catalog in catalog order."""
    return [
        Product(
            id=1,
            name="SuperATV Heavy Duty Rhino 2.0 Axle for Polaris RZR XP 1000",
            slug="superatv-heavy-duty-rhino-axle-polaris-rzr-xp-1000",
            description="SuperATV's Rhino 2.0 axles are the strongest and most durable axles on the market. Designed specifically for high horsepower machines and aggressive riders.",
            price=349.95,
            compare_at_price=399.95,
            cost_price=220.00,
            category_id=2,
            brand_id=1,
            inventory_count=54,
            is_popular=True,
            is_featured=True,
            rating=4.9,
            review_count=176,
            image_url="https://superatv.com/rhino-2-axles-polaris-rzr-xp-1000-front-1.jpg",
        ),
        Product(
            id=2,
            name='SuperATV 6" Lift Kit for Polaris Ranger 1000 XP',
            slug="superatv-6-inch-lift-kit-polaris-ranger-1000-xp",
            description="Take your Ranger's ground clearance and performance to new heights with SuperATV's 6\" Lift Kit, allowing for larger tires and improved off-road capabilities.",
            price=1799.95,
            compare_at_price=1999.95,
            cost_price=1100.00,
            category_id=1,
            brand_id=1,
            inventory_count=8,
            is_popular=True,
            is_featured=True,
            rating=4.8,
            review_count=64,
            image_url="https://superatv.com/6-inch-lift-kit-polaris-ranger-1000-main.jpg",
        ),
        Product(
            id=3,
            name="Method Race Wheels 406 Beadlock 15x7 UTV Wheel Package with BFG KM3 Tires",
            slug="method-race-wheels-406-beadlock-utv-wheel-package-bfg-km3-tires",
            description="Complete wheel and tire package featuring Method's premium 406 beadlock wheels paired with BFGoodrich Mud-Terrain KM3 tires.",
            price=2399.99,
            compare_at_price=2599.99,
            cost_price=1850.00,
            category_id=3,
            brand_id=7,
            inventory_count=12,
            is_popular=True,
            is_featured=True,
            rating=4.9,
            review_count=48,
            image_url="https://sidebysideutvparts.com/method-406-beadlock-bfg-km3-package.jpg",
        ),
        Product(
            id=4,
            name="Tusk UTV Cab Pack Storage Bag for Polaris RZR XP 1000",
            slug="tusk-utv-cab-pack-storage-bag-polaris-rzr-xp-1000",
            description="Maximize your storage with the Tusk UTV Cab Pack. This durable, weather-resistant storage solution installs easily in your RZR's cabin area.",
            price=149.99,
            compare_at_price=179.99,
            cost_price=85.00,
            category_id=5,
            brand_id=2,
            inventory_count=32,
            is_popular=True,
            is_featured=False,
            rating=4.7,
            review_count=89,
            image_url="https://rockymountainatvmc.com/tusk-cab-pack-rzr-1000-main.jpg",
        ),
        Product(
            id=5,
            name="Pro Armor Crawler XG All-Terrain UTV Tires 30x10R14 (Set of 4)",
            slug="pro-armor-crawler-xg-all-terrain-utv-tires-30x10r14-set",
            description="Pro Armor Crawler XG tires deliver exceptional performance across diverse terrain with an aggressive tread pattern, 8-ply rating, and reinforced sidewalls.",
            price=799.99,
            compare_at_price=899.99,
            cost_price=520.00,
            category_id=3,
            brand_id=4,
            inventory_count=24,
            is_popular=True,
            is_featured=True,
            rating=4.8,
            review_count=124,
            image_url="https://proarmor.com/crawler-xg-tire-angled.jpg",
        ),
        Product(
            id=6,
            name="DragonFire Racing ReadyForce Door Kit for Can-Am Maverick X3",
            slug="dragonfire-racing-readyforce-door-kit-can-am-maverick-x3",
            description="Enhance the safety and comfort of your Can-Am Maverick X3 with DragonFire's ReadyForce doors, built on a durable aluminum frame with high-impact polymer panels.",
            price=899.99,
            compare_at_price=999.99,
            cost_price=625.00,
            category_id=4,
            brand_id=6,
            inventory_count=14,
            is_popular=True,
            is_featured=True,
            rating=4.9,
            review_count=78,
            image_url="https://dragonfireracing.com/readyforce-doors-x3-installed.jpg",
        ),
        Product(
            id=7,
            name="Seizmik Vented Windshield for Honda Talon 1000R/1000X",
            slug="seizmik-vented-windshield-honda-talon-1000",
            description="Seizmik's vented windshield for Honda Talon delivers the perfect balance of protection and airflow with adjustable vents.",
            price=349.99,
            compare_at_price=399.99,
            cost_price=220.00,
            category_id=4,
            brand_id=8,
            inventory_count=19,
            is_popular=True,
            is_featured=False,
            rating=4.7,
            review_count=52,
            image_url="https://seizmik.com/vented-windshield-talon-installed.jpg",
        ),
        Product(
            id=8,
            name="SSV Works Complete 5-Speaker Overhead Audio System for Polaris RZR XP",
            slug="ssv-works-complete-5-speaker-overhead-audio-system-polaris-rzr-xp",
            description="Transform your ride with SSV Works' premium overhead sound system for Polaris RZR, with weather-resistant components tuned for the open-air UTV environment.",
            price=1499.99,
            compare_at_price=1699.99,
            cost_price=1050.00,
            category_id=6,
            brand_id=9,
            inventory_count=7,
            is_popular=True,
            is_featured=True,
            rating=4.8,
            review_count=34,
            image_url="https://ssvworks.com/rzr-5-speaker-system-installed.jpg",
        ),
        Product(
            id=9,
            name='High Lifter 3-5" Signature Series Lift Kit for Can-Am Defender HD',
            slug="high-lifter-signature-series-lift-kit-can-am-defender",
            description="High Lifter's Signature Series lift kit gives your Can-Am Defender the additional ground clearance needed for tackling extreme mud and trail obstacles.",
            price=899.99,
            compare_at_price=999.99,
            cost_price=610.00,
            category_id=1,
            brand_id=10,
            inventory_count=11,
            is_popular=True,
            is_featured=True,
            rating=4.8,
            review_count=42,
            image_url="https://highlifter.com/defender-lift-kit-installed.jpg",
        ),
        Product(
            id=10,
            name="Moose Racing 4500lb Synthetic Rope UTV Winch",
            slug="moose-racing-4500lb-synthetic-rope-utv-winch",
            description="Moose Racing's 4500lb winch combines reliable performance with lightweight synthetic rope for safer recovery operations.",
            price=499.99,
            compare_at_price=599.99,
            cost_price=350.00,
            category_id=7,
            brand_id=5,
            inventory_count=22,
            is_popular=True,
            is_featured=False,
            rating=4.7,
            review_count=68,
            image_url="https://partsunlimited.com/moose-4500-winch-main.jpg",
        ),
    ]


def build_demo_orders() -> list[Order]:
    """Return historical orders for the demo users (user 1 has bought before)."""
    return [
        Order(id=1001, user_id=1, total=499.9, product_ids=[1, 4]),
        Order(id=1002, user_id=1, total=899.99, product_ids=[9]),
    ]
