from funnel.models import VisitorSignal
from funnel.repository import build_demo_repository
from funnel.segmentation import SegmentClassifier, build_profile_text, dominant_category


class _StaticOracle:
    def __init__(self, answer: str) -> None:
        self.answer = answer
        self.profiles: list[str] = []

    def classify_segment(self, profile_text: str) -> str:
        self.profiles.append(profile_text)
        return self.answer

    def rank_products(self, prompt_context: str) -> list[int]:
        raise AssertionError("not used by the classifier")


class _BrokenOracle:
    def __init__(self) -> None:
        self.calls = 0

    def classify_segment(self, profile_text: str) -> str:
        self.calls += 1
        raise TimeoutError("oracle timed out")

    def rank_products(self, prompt_context: str) -> list[int]:
        raise TimeoutError("oracle timed out")


def _classifier(oracle=None) -> SegmentClassifier:
    repository = build_demo_repository()
    return SegmentClassifier(repository, repository, oracle)


def test_purchase_history_always_wins() -> None:
    classifier = _classifier()
    visitors = [
        VisitorSignal(purchase_history_product_ids=[4]),
        VisitorSignal(user_id=9, purchase_history_product_ids=[2], cart_abandon_product_ids=[1]),
        VisitorSignal(purchase_history_product_ids=[3], viewed_product_ids=[1, 2, 3, 4, 5, 6, 7]),
    ]
    for visitor in visitors:
        assert classifier.classify(visitor).id == "performance-enthusiasts"


def test_user_orders_count_as_purchase_history() -> None:
    segment = _classifier().classify(VisitorSignal(user_id=1))
    assert segment.id == "performance-enthusiasts"


def test_cart_abandoners_are_price_sensitive() -> None:
    segment = _classifier().classify(VisitorSignal(user_id=7, cart_abandon_product_ids=[4]))
    assert segment.id == "utility-workers"


def test_anonymous_visitor_follows_dominant_category() -> None:
    classifier = _classifier()
    assert classifier.classify(VisitorSignal(viewed_product_ids=[3, 5])).id == "recreational-riders"
    assert classifier.classify(VisitorSignal(viewed_product_ids=[4])).id == "utility-workers"
    assert classifier.classify(VisitorSignal(viewed_product_ids=[9, 1, 2])).id == "mud-riders"


def test_category_tie_goes_to_first_seen_category() -> None:
    classifier = _classifier()
    # product 2 is suspension (1), product 1 is drivetrain (2)
    assert classifier.classify(VisitorSignal(viewed_product_ids=[2, 1])).id == "mud-riders"
    assert classifier.classify(VisitorSignal(viewed_product_ids=[1, 2])).id == "performance-enthusiasts"


def test_unmapped_category_falls_back_to_new_owners() -> None:
    segment = _classifier().classify(VisitorSignal(viewed_product_ids=[6, 10]))
    assert segment.id == "new-owners"


def test_logged_in_browser_with_many_views_is_feature_focused() -> None:
    classifier = _classifier()
    many = VisitorSignal(user_id=42, viewed_product_ids=[1, 2, 3, 4, 5, 6])
    few = VisitorSignal(user_id=42, viewed_product_ids=[1, 2, 3, 4, 5])
    assert classifier.classify(many).id == "recreational-riders"
    assert classifier.classify(few).id == "new-owners"


def test_unknown_products_do_not_break_classification() -> None:
    segment = _classifier().classify(VisitorSignal(viewed_product_ids=[404, 405]))
    assert segment.id == "new-owners"


def test_oracle_answer_is_matched_case_insensitively() -> None:
    oracle = _StaticOracle("  mud enthusiasts ")
    segment = _classifier(oracle).classify(VisitorSignal(viewed_product_ids=[3]))
    assert segment.id == "mud-riders"
    assert "Wheels & Tires" in oracle.profiles[0]


def test_unrecognized_oracle_answer_falls_back_to_rules() -> None:
    oracle = _StaticOracle("Weekend Warriors")
    segment = _classifier(oracle).classify(VisitorSignal(viewed_product_ids=[3, 5]))
    assert segment.id == "recreational-riders"


def test_failing_oracle_falls_back_within_the_same_call() -> None:
    oracle = _BrokenOracle()
    classifier = _classifier(oracle)
    assert classifier.classify(VisitorSignal(purchase_history_product_ids=[1])).id == "performance-enthusiasts"
    assert classifier.classify(VisitorSignal(viewed_product_ids=[8])).id == "recreational-riders"
    assert oracle.calls == 2


def test_oracle_is_skipped_without_signal() -> None:
    oracle = _StaticOracle("Mud Enthusiasts")
    segment = _classifier(oracle).classify(VisitorSignal())
    assert segment.id == "new-owners"
    assert oracle.profiles == []


def test_rule_path_is_deterministic() -> None:
    classifier = _classifier()
    visitor = VisitorSignal(viewed_product_ids=[5, 2, 3, 9])
    results = {classifier.classify_by_rules(visitor).id for _ in range(5)}
    assert len(results) == 1


def test_profile_text_summarizes_history() -> None:
    repository = build_demo_repository()
    viewed = [repository.get_by_id(3), repository.get_by_id(10)]
    text = build_profile_text(viewed, [1, 4], order_count=2)
    assert "Wheels & Tires" in text
    assert "Winches & Recovery" in text
    assert "Previous orders: 2" in text
    assert "Mud Enthusiasts" in text


def test_dominant_category_of_nothing_is_none() -> None:
    assert dominant_category([]) is None
