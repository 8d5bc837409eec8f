"""Funnel step selection by segment, trigger product and funnel position."""

from __future__ import annotations

from typing import Iterable

from funnel.catalog import FUNNEL_POSITIONS, FUNNEL_STEPS, CustomerSegment, FunnelStep


def _best_converting(steps: list[FunnelStep]) -> FunnelStep:
    # max() keeps the first of equal rates, so catalog order breaks ties.
    return max(steps, key=lambda step: step.conversion_rate)


def select_step(
    segment: CustomerSegment,
    trigger_product_id: int | None,
    position: str,
    steps: Iterable[FunnelStep] = FUNNEL_STEPS,
) -> FunnelStep | None:
    """Pick the best-converting step for a segment at a funnel position.

    Steps whose trigger products include ``trigger_product_id`` win over
    steps that only match segment and position. Returns ``None`` when no
    step targets the segment at that position.

    Raises:
        ValueError: If ``position`` is not a known funnel position.
    """
    if position not in FUNNEL_POSITIONS:
        raise ValueError(f"position must be one of {', '.join(FUNNEL_POSITIONS)}")

    eligible = [
        step
        for step in steps
        if step.position == position and segment.id in step.target_segment_ids
    ]
    if not eligible:
        return None

    matching = [
        step
        for step in eligible
        if trigger_product_id is not None and trigger_product_id in step.product_associations.trigger_product_ids
    ]
    if matching:
        return _best_converting(matching)
    return _best_converting(eligible)
