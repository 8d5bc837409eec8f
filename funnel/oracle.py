"""Ranking oracle: an optional LLM consulted for segmentation and ranking.

The engine only depends on the :class:`RankingOracle` protocol. Callers must
treat every oracle call as fallible and keep a deterministic path ready.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Protocol

from funnel.cache import TTLCache
from funnel.config import OracleSettings
from funnel.llm import OracleError, generate_llm_response

logger = logging.getLogger(__name__)

SEGMENT_SYSTEM_PROMPT = "You are a customer segmentation analyst for an aftermarket UTV parts store."
RANKING_SYSTEM_PROMPT = (
    "You are a product recommendation expert for UTV aftermarket parts. Recommend similar or "
    "complementary products based on the product a customer is viewing."
)


class RankingOracle(Protocol):
    def classify_segment(self, profile_text: str) -> str: ...

    def rank_products(self, prompt_context: str) -> list[int]: ...


def _prompt_hash(kind: str, prompt: str) -> str:
    normalized = json.dumps({"kind": kind, "prompt": prompt}, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.lower().startswith("json"):
            stripped = stripped[4:]
    return stripped.strip()


def parse_product_ids(text: str) -> list[int]:
    """Parse an oracle answer into product ids.

    Accepts a bare JSON array or an object wrapping one under
    ``recommendations`` / ``product_ids``.

    Raises:
        OracleError: If the answer is not a non-empty array of integer ids.
    """
    try:
        parsed: Any = json.loads(_strip_code_fence(text))
    except ValueError as exc:
        raise OracleError("Oracle ranking answer is not valid JSON.") from exc

    if isinstance(parsed, dict):
        parsed = parsed.get("recommendations", parsed.get("product_ids"))
    if not isinstance(parsed, list) or not parsed:
        raise OracleError("Oracle ranking answer is not a non-empty JSON array.")

    product_ids: list[int] = []
    for item in parsed:
        if isinstance(item, bool):
            raise OracleError(f"Oracle returned a non-integer product id: {item!r}")
        if isinstance(item, int):
            product_ids.append(item)
        elif isinstance(item, str) and item.strip().isdigit():
            product_ids.append(int(item.strip()))
        else:
            raise OracleError(f"Oracle returned a non-integer product id: {item!r}")
    return product_ids


class OpenRouterRankingOracle:
    """Ranking oracle backed by OpenRouter chat completions.

    Raw answers are memoized per prompt in ``cache`` so repeated profiles do
    not spend another request inside the cache TTL.
    """

    def __init__(self, settings: OracleSettings, cache: TTLCache | None = None) -> None:
        self.settings = settings
        self.cache = cache

    def _complete(self, kind: str, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        key = _prompt_hash(kind, user_prompt)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        answer = generate_llm_response(
            system_prompt,
            user_prompt,
            api_key=self.settings.api_key,
            model=self.settings.model,
            max_tokens=max_tokens,
            timeout=self.settings.timeout_seconds,
        )
        if self.cache is not None:
            self.cache.set(key, answer)
        return answer

    def classify_segment(self, profile_text: str) -> str:
        answer = self._complete("segment", SEGMENT_SYSTEM_PROMPT, profile_text, max_tokens=50)
        return answer.strip().strip('."\'')

    def rank_products(self, prompt_context: str) -> list[int]:
        answer = self._complete("ranking", RANKING_SYSTEM_PROMPT, prompt_context, max_tokens=100)
        return parse_product_ids(answer)


def build_oracle(settings: OracleSettings, cache: TTLCache | None = None) -> RankingOracle | None:
    """Return a configured oracle, or ``None`` when no API key is available."""
    if not settings.configured:
        logger.info("ranking oracle disabled; rule-based fallbacks only")
        return None
    return OpenRouterRankingOracle(settings, cache=cache)
