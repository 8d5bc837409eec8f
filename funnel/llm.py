"""OpenRouter chat-completion client used by the ranking oracle.

A single synchronous call built on `requests`; every failure mode is
reported as :class:`OracleError` so callers have one exception to fall back on.
"""

from __future__ import annotations

from typing import Any

import requests

OPENROUTER_CHAT_COMPLETIONS_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_OPENROUTER_MODEL = "openai/gpt-4o"
REQUEST_TIMEOUT_SECONDS = 10.0


class OracleError(RuntimeError):
    """Raised when the oracle is unavailable or returns something unusable."""


def _answer_text(payload: Any) -> str:
    """Pull the first choice's message text out of a chat-completion payload."""
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices:
        raise OracleError("Ranking oracle answer had no choices.")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise OracleError("Ranking oracle answer was empty.")
    return content


def generate_llm_response(
    system_prompt: str,
    user_prompt: str,
    *,
    api_key: str,
    model: str = DEFAULT_OPENROUTER_MODEL,
    temperature: float = 0.2,
    max_tokens: int = 200,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> str:
    """Generate a synchronous LLM response via OpenRouter chat completions.

    Args:
        system_prompt: System instruction prompt.
        user_prompt: User prompt content.
        api_key: OpenRouter API key.
        model: OpenRouter model identifier.
        temperature: Sampling temperature for generation.
        max_tokens: Completion token cap.
        timeout: Request timeout in seconds; a slow oracle is treated as unavailable.

    Returns:
        Assistant message content string.

    Raises:
        OracleError: For a missing API key, transport/API failures, or
            malformed responses.
    """
    if not api_key:
        raise OracleError("OPENROUTER_API_KEY is not set; ranking oracle is unavailable.")

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    payload = {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }

    try:
        response = requests.post(
            OPENROUTER_CHAT_COMPLETIONS_URL,
            headers=headers,
            json=payload,
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise OracleError(f"Ranking oracle unreachable: {exc}") from exc

    if response.status_code >= 400:
        body_preview = response.text[:500]
        raise OracleError(f"Ranking oracle returned HTTP {response.status_code}: {body_preview}")

    try:
        response_json = response.json()
    except ValueError as exc:
        raise OracleError("Ranking oracle answer was not JSON.") from exc

    return _answer_text(response_json)
