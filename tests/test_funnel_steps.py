import pytest

from funnel.catalog import (
    CUSTOMER_SEGMENTS,
    FUNNEL_POSITIONS,
    FunnelStep,
    ProductAssociations,
    get_segment,
    get_segment_for_role,
)
from funnel.funnel_steps import select_step


def _step(step_id: str, rate: float, triggers: set[int], segments: set[str] | None = None) -> FunnelStep:
    return FunnelStep(
        id=step_id,
        name=step_id.title(),
        description=f"{step_id} description",
        cta="Add",
        position="product_page",
        offer_type="cross_sell",
        target_segment_ids=frozenset(segments or {"new-owners"}),
        conversion_rate=rate,
        product_associations=ProductAssociations(frozenset(triggers), (4, 7)),
    )


def test_selected_step_always_matches_segment_and_position() -> None:
    for segment in CUSTOMER_SEGMENTS:
        for position in FUNNEL_POSITIONS:
            for trigger in [None, *range(1, 12)]:
                step = select_step(segment, trigger, position)
                if step is None:
                    continue
                assert segment.id in step.target_segment_ids
                assert step.position == position


def test_highest_conversion_rate_wins_among_trigger_matches() -> None:
    new_visitor = get_segment_for_role("new_visitor")
    steps = (
        _step("slow-seller", 0.15, {3, 5}),
        _step("fast-seller", 0.28, {3}),
    )
    step = select_step(new_visitor, 3, "product_page", steps)
    assert step is not None
    assert step.id == "fast-seller"
    assert step.conversion_rate == 0.28


def test_trigger_match_beats_better_converting_generic_step() -> None:
    steps = (
        _step("generic", 0.5, {9}),
        _step("specific", 0.1, {3}),
    )
    assert select_step(get_segment("new-owners"), 3, "product_page", steps).id == "specific"


def test_equal_rates_keep_catalog_order() -> None:
    steps = (
        _step("first", 0.2, {3}),
        _step("second", 0.2, {3}),
    )
    assert select_step(get_segment("new-owners"), 3, "product_page", steps).id == "first"


def test_falls_back_to_best_segment_position_match() -> None:
    steps = (
        _step("low", 0.1, {1}),
        _step("high", 0.3, {2}),
    )
    assert select_step(get_segment("new-owners"), 8, "product_page", steps).id == "high"
    assert select_step(get_segment("new-owners"), None, "product_page", steps).id == "high"


def test_catalog_product_page_steps() -> None:
    assert select_step(get_segment("new-owners"), 3, "product_page").id == "protection-bundle"
    assert select_step(get_segment("performance-enthusiasts"), 3, "product_page").id == "performance-upsell"
    assert select_step(get_segment("mud-riders"), 9, "product_page").id == "performance-upsell"


def test_no_step_for_untargeted_segment_is_not_an_error() -> None:
    assert select_step(get_segment("utility-workers"), 1, "product_page") is None
    assert select_step(get_segment("utility-workers"), 1, "checkout") is None


def test_every_segment_gets_the_loyalty_reward() -> None:
    for segment in CUSTOMER_SEGMENTS:
        assert select_step(segment, 1, "order_confirmation").id == "loyalty-discount"


def test_unknown_position_is_rejected() -> None:
    with pytest.raises(ValueError):
        select_step(get_segment("new-owners"), 1, "landing_page")
