import pytest
import requests

from funnel import llm, oracle
from funnel.cache import TTLCache
from funnel.config import OracleSettings
from funnel.llm import OracleError, generate_llm_response
from funnel.oracle import OpenRouterRankingOracle, build_oracle, parse_product_ids


class _Response:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


def _chat(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def test_parse_product_ids_accepts_arrays_and_wrapped_objects() -> None:
    assert parse_product_ids("[3, 7, 1]") == [3, 7, 1]
    assert parse_product_ids('```json\n["4", 10]\n```') == [4, 10]
    assert parse_product_ids('{"recommendations": [2, 8]}') == [2, 8]


@pytest.mark.parametrize("answer", ["", "[]", "Try product 4", '{"items": [1]}', "[1.5]", "[true]"])
def test_parse_product_ids_rejects_unusable_answers(answer: str) -> None:
    with pytest.raises(OracleError):
        parse_product_ids(answer)


def test_missing_api_key_is_reported_as_oracle_error() -> None:
    with pytest.raises(OracleError):
        generate_llm_response("system", "user", api_key="")


def test_transport_failure_is_reported_as_oracle_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(llm.requests, "post", _raise)
    with pytest.raises(OracleError):
        generate_llm_response("system", "user", api_key="key")


def test_http_errors_and_bad_payloads_are_oracle_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    responses = iter([_Response(429, text="slow down"), _Response(200, payload=None), _Response(200, payload={"choices": []})])
    monkeypatch.setattr(llm.requests, "post", lambda *args, **kwargs: next(responses))
    for _ in range(3):
        with pytest.raises(OracleError):
            generate_llm_response("system", "user", api_key="key")


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "no choices"),
        ({"choices": "none"}, "no choices"),
        ({"choices": [{}]}, "was empty"),
        ({"choices": [{"message": None}]}, "was empty"),
        (_chat("   "), "was empty"),
    ],
)
def test_malformed_answers_are_oracle_errors(monkeypatch: pytest.MonkeyPatch, payload, message: str) -> None:
    monkeypatch.setattr(llm.requests, "post", lambda *args, **kwargs: _Response(200, payload=payload))
    with pytest.raises(OracleError, match=message):
        generate_llm_response("system", "user", api_key="key")


def test_successful_completion_returns_content(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def _post(url, headers, json, timeout):
        captured.update(json=json, timeout=timeout)
        return _Response(200, payload=_chat("Mud Enthusiasts"))

    monkeypatch.setattr(llm.requests, "post", _post)
    answer = generate_llm_response("system", "user", api_key="key", timeout=2.5)
    assert answer == "Mud Enthusiasts"
    assert captured["timeout"] == 2.5
    assert captured["json"]["messages"][1]["content"] == "user"


def test_build_oracle_requires_enabled_and_key() -> None:
    assert build_oracle(OracleSettings(api_key="")) is None
    assert build_oracle(OracleSettings(enabled=False, api_key="key")) is None
    assert isinstance(build_oracle(OracleSettings(api_key="key")), OpenRouterRankingOracle)


def test_oracle_memoizes_answers_per_prompt(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def _complete(system_prompt, user_prompt, **kwargs):
        calls.append(user_prompt)
        return '"Recreational Riders".'

    monkeypatch.setattr(oracle, "generate_llm_response", _complete)
    ranking_oracle = OpenRouterRankingOracle(OracleSettings(api_key="key"), cache=TTLCache(ttl_seconds=1800))

    assert ranking_oracle.classify_segment("profile A") == "Recreational Riders"
    assert ranking_oracle.classify_segment("profile A") == "Recreational Riders"
    assert ranking_oracle.classify_segment("profile B") == "Recreational Riders"
    assert calls == ["profile A", "profile B"]


def test_oracle_ranking_parses_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(oracle, "generate_llm_response", lambda *args, **kwargs: "[9, 2]")
    ranking_oracle = OpenRouterRankingOracle(OracleSettings(api_key="key"))
    assert ranking_oracle.rank_products("context") == [9, 2]
