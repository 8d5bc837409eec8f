import pytest

from funnel.cache import TTLCache
from funnel.catalog import get_segment
from funnel.models import VisitorSignal
from funnel.recommendations import RecommendationResolver, recommendation_cache_key
from funnel.repository import build_demo_repository


class _RankingOracle:
    def __init__(self, ranked: list[int]) -> None:
        self.ranked = ranked
        self.prompts: list[str] = []

    def classify_segment(self, profile_text: str) -> str:
        raise AssertionError("not used by the resolver")

    def rank_products(self, prompt_context: str) -> list[int]:
        self.prompts.append(prompt_context)
        return list(self.ranked)


class _BrokenOracle:
    def __init__(self) -> None:
        self.calls = 0

    def classify_segment(self, profile_text: str) -> str:
        raise ConnectionError("oracle unreachable")

    def rank_products(self, prompt_context: str) -> list[int]:
        self.calls += 1
        raise ConnectionError("oracle unreachable")


def _resolver(oracle=None) -> RecommendationResolver:
    return RecommendationResolver(build_demo_repository(), oracle, TTLCache(ttl_seconds=60))


def test_results_respect_limit_and_never_repeat_or_include_trigger() -> None:
    resolver = _resolver()
    segment = get_segment("recreational-riders")
    for trigger in [None, *range(1, 11)]:
        for limit in range(0, 7):
            result = resolver.recommend(segment, VisitorSignal(viewed_product_ids=[3]), trigger, limit)
            assert len(result) <= limit
            assert len(result) == len(set(result))
            assert trigger not in result


def test_fallback_orders_same_category_then_complementary_then_top_rated() -> None:
    resolver = _resolver()
    trigger = build_demo_repository().get_by_id(5)
    # 3 shares the category; 6 and 9 sit inside the +-30% price band; 1 is the best-rated remainder
    assert resolver.fallback(trigger, 4) == [3, 6, 9, 1]
    assert resolver.fallback(trigger, 2) == [3, 6]


def test_top_rated_fill_skips_products_without_reviews() -> None:
    repository = build_demo_repository()
    unreviewed = repository.get_by_id(10).model_copy(update={"id": 11, "rating": 5.0, "review_count": 0})
    repository.add_product(unreviewed)
    resolver = RecommendationResolver(repository, cache=TTLCache(ttl_seconds=60))
    result = resolver.fallback(repository.get_by_id(4), 10)
    assert result[-1] == 11


def test_negative_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        _resolver().recommend(get_segment("new-owners"), VisitorSignal(), 1, -1)


def test_unknown_trigger_yields_empty_list() -> None:
    assert _resolver().recommend(get_segment("new-owners"), VisitorSignal(), 999, 4) == []


def test_without_trigger_uses_personalized_mode() -> None:
    resolver = _resolver()
    segment = get_segment("new-owners")
    expected = [product.id for product in resolver.personalized(segment, None, 4)]
    assert resolver.recommend(segment, VisitorSignal(), None, 4) == expected


def test_trigger_less_results_are_cached_per_segment() -> None:
    resolver = _resolver()
    visitor = VisitorSignal()
    assert resolver.recommend(get_segment("performance-enthusiasts"), visitor, None, 4) == [1, 3, 6, 2]
    assert resolver.recommend(get_segment("new-owners"), visitor, None, 4) == [8, 4, 7, 10]
    assert recommendation_cache_key(None, [], 4, "new-owners") != recommendation_cache_key(None, [], 4)


def test_personalized_mode_ranks_targeted_products_first() -> None:
    resolver = _resolver()
    products = resolver.personalized(get_segment("new-owners"), 5, 10)
    assert [product.id for product in products] == [8, 4, 7, 10, 3]


def test_step_mode_sorts_offers_by_margin_ratio() -> None:
    from funnel.catalog import FUNNEL_STEPS

    protection = next(step for step in FUNNEL_STEPS if step.id == "protection-bundle")
    offers = _resolver().for_step(protection, 3)
    assert [product.id for product in offers] == [7, 4]
    assert [product.id for product in _resolver().for_step(protection, 1)] == [7]


def test_oracle_ranking_is_sanitized() -> None:
    oracle = _RankingOracle([5, 2, 2, 99, 4, 8, 1])
    result = _resolver(oracle).recommend(
        get_segment("mud-riders"), VisitorSignal(viewed_product_ids=[5]), 5, 3
    )
    assert result == [2, 4, 8]
    prompt = oracle.prompts[0]
    assert "Pro Armor Crawler XG" in prompt
    assert "Mud Enthusiasts" in prompt
    assert "$799.99" in prompt


def test_oracle_answer_without_usable_ids_falls_back() -> None:
    resolver = _resolver(_RankingOracle([5, 404]))
    trigger = build_demo_repository().get_by_id(5)
    result = resolver.recommend(get_segment("new-owners"), VisitorSignal(), 5, 4)
    assert result == resolver.fallback(trigger, 4)


def test_failing_oracle_still_returns_recommendations() -> None:
    oracle = _BrokenOracle()
    resolver = _resolver(oracle)
    result = resolver.recommend(get_segment("new-owners"), VisitorSignal(), 5, 4)
    assert result == [3, 6, 9, 1]
    assert oracle.calls == 1


def test_results_are_cached_by_trigger_views_and_limit() -> None:
    oracle = _RankingOracle([2, 4])
    resolver = _resolver(oracle)
    segment = get_segment("new-owners")
    first = resolver.recommend(segment, VisitorSignal(viewed_product_ids=[3, 1]), 5, 4)
    second = resolver.recommend(segment, VisitorSignal(viewed_product_ids=[1, 3]), 5, 4)
    assert first == second == [2, 4]
    assert len(oracle.prompts) == 1

    resolver.recommend(segment, VisitorSignal(viewed_product_ids=[1, 3]), 5, 2)
    assert len(oracle.prompts) == 2


def test_cache_key_ignores_view_order() -> None:
    assert recommendation_cache_key(5, [3, 1], 4) == recommendation_cache_key(5, [1, 3, 3], 4)
    assert recommendation_cache_key(5, [3, 1], 4) != recommendation_cache_key(6, [3, 1], 4)
