"""Runtime settings for the sales funnel engine, loaded from environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "funnel.db"


@dataclass(frozen=True)
class CacheSettings:
    recommendation_ttl_seconds: float = 24 * 60 * 60
    oracle_ttl_seconds: float = 30 * 60
    capacity: int = 100
    eviction_batch: int = 10


@dataclass(frozen=True)
class RateLimitSettings:
    max_requests: int = 100
    window_seconds: float = 60 * 60
    sweep_interval_seconds: float = 15 * 60


@dataclass(frozen=True)
class RevenueSettings:
    max_monthly_revenue: float = 500_000.0


@dataclass(frozen=True)
class OracleSettings:
    enabled: bool = True
    api_key: str = ""
    model: str = "openai/gpt-4o"
    timeout_seconds: float = 10.0

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.api_key)


@dataclass(frozen=True)
class FunnelSettings:
    cache: CacheSettings = field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    revenue: RevenueSettings = field(default_factory=RevenueSettings)
    oracle: OracleSettings = field(default_factory=OracleSettings)
    db_path: Path = DEFAULT_DB_PATH


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc


def load_settings() -> FunnelSettings:
    """Build settings from environment variables, falling back to defaults.

    Raises:
        ValueError: If a numeric variable cannot be parsed.
    """
    oracle = OracleSettings(
        enabled=_env_flag("FUNNEL_ORACLE_ENABLED", True),
        api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
        model=os.getenv("OPENROUTER_MODEL", "").strip() or OracleSettings.model,
        timeout_seconds=_env_float("FUNNEL_ORACLE_TIMEOUT_SECONDS", OracleSettings.timeout_seconds),
    )
    revenue = RevenueSettings(
        max_monthly_revenue=_env_float("FUNNEL_MAX_MONTHLY_REVENUE", RevenueSettings.max_monthly_revenue),
    )
    db_path = os.getenv("FUNNEL_DB_PATH", "").strip()
    return FunnelSettings(
        revenue=revenue,
        oracle=oracle,
        db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
    )
