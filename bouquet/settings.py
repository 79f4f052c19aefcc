"""
Settings — shop and engine configuration.

Fluent builder pattern, same as the idempotency Policy:

    settings = (
        Settings()
        .with_base_url("https://flowers.example")
        .with_session_ttl(hours=2)
        .with_sweep_interval(seconds=30)
    )

Or from the environment (a `.env` file is loaded first):

    BOUQUET_BASE_URL=https://flowers.example
    BOUQUET_TAX_RATE=0.08
    BOUQUET_DATABASE_URL=sqlite+aiosqlite:///shop.db
    BOUQUET_REPLAY_ON_PENDING=fail

    settings = Settings.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from bouquet.idempotency import OnPending, Policy


ENV_PREFIX = "BOUQUET_"


class SettingsError(Exception):
    """Raised when an environment value cannot be parsed."""


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Immutable shop configuration.

    Note: each `with_*` returns a new Settings, instances are safe to share
    between the engine, the sweeper and the HTTP layer.
    """

    base_url: str = "http://localhost:3000"
    currency: str = "USD"
    tax_rate: Decimal = Decimal("0.08")
    session_ttl: timedelta = timedelta(hours=6)
    min_quantity: int = 1
    max_quantity: int = 100
    name_max_length: int = 100
    sweep_interval: timedelta = timedelta(seconds=60)
    replay_clear_interval: timedelta = timedelta(minutes=15)
    replay_policy: Policy = Policy()
    log_level: str = "INFO"
    database_url: str | None = None

    @property
    def tax_label(self) -> str:
        """`Tax (8%)` for a 0.08 rate."""
        percent = (self.tax_rate * 100).normalize()
        return f"Tax ({percent:f}%)"

    def with_base_url(self, url: str) -> Settings:
        return replace(self, base_url=url.rstrip("/"))

    def with_currency(self, currency: str) -> Settings:
        return replace(self, currency=currency.upper())

    def with_tax_rate(self, rate: Decimal | str) -> Settings:
        return replace(self, tax_rate=Decimal(rate))

    def with_session_ttl(
        self,
        *,
        seconds: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        """
        Lifetime of a session from creation.

        Example:
            .with_session_ttl(hours=6)
            .with_session_ttl(delta=timedelta(minutes=30))
        """
        ttl = delta if delta is not None else timedelta(seconds=(seconds or 0) + (hours or 0) * 3600)
        if ttl <= timedelta(0):
            raise SettingsError("Session TTL must be positive")
        return replace(self, session_ttl=ttl)

    def with_sweep_interval(self, *, seconds: float) -> Settings:
        return replace(self, sweep_interval=timedelta(seconds=seconds))

    def with_replay_clear_interval(self, *, seconds: float) -> Settings:
        return replace(self, replay_clear_interval=timedelta(seconds=seconds))

    def with_replay_policy(self, policy: Policy) -> Settings:
        return replace(self, replay_policy=policy)

    def with_log_level(self, level: str) -> Settings:
        return replace(self, log_level=level.upper())

    def with_database(self, url: str | None) -> Settings:
        return replace(self, database_url=url)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        dotenv: bool = True,
    ) -> Settings:
        """
        Build settings from `BOUQUET_*` variables.

        `environ` defaults to `os.environ` after loading `.env`; pass a dict
        (and `dotenv=False`) in tests.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        def get(name: str) -> str | None:
            value = environ.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        settings = cls()
        if (base_url := get("BASE_URL")) is not None:
            settings = settings.with_base_url(base_url)
        if (currency := get("CURRENCY")) is not None:
            settings = settings.with_currency(currency)
        if (rate := get("TAX_RATE")) is not None:
            try:
                settings = settings.with_tax_rate(rate)
            except InvalidOperation as e:
                raise SettingsError(f"{ENV_PREFIX}TAX_RATE is not a decimal: {rate!r}") from e
        if (ttl := get("SESSION_TTL_SECONDS")) is not None:
            settings = settings.with_session_ttl(seconds=_seconds("SESSION_TTL_SECONDS", ttl))
        if (sweep := get("SWEEP_INTERVAL_SECONDS")) is not None:
            settings = settings.with_sweep_interval(seconds=_seconds("SWEEP_INTERVAL_SECONDS", sweep))
        if (clear := get("REPLAY_CLEAR_SECONDS")) is not None:
            settings = settings.with_replay_clear_interval(seconds=_seconds("REPLAY_CLEAR_SECONDS", clear))
        if (on_pending := get("REPLAY_ON_PENDING")) is not None:
            try:
                policy = settings.replay_policy.with_on_pending(OnPending.parse(on_pending))
            except ValueError as e:
                raise SettingsError(f"{ENV_PREFIX}REPLAY_ON_PENDING: {e}") from e
            settings = settings.with_replay_policy(policy)
        if (wait := get("REPLAY_WAIT_SECONDS")) is not None:
            policy = settings.replay_policy.with_wait_timeout(seconds=_seconds("REPLAY_WAIT_SECONDS", wait))
            settings = settings.with_replay_policy(policy)
        if (level := get("LOG_LEVEL")) is not None:
            settings = settings.with_log_level(level)
        if (url := get("DATABASE_URL")) is not None:
            settings = settings.with_database(url)
        return settings


def _seconds(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as e:
        raise SettingsError(f"{ENV_PREFIX}{name} is not a number: {raw!r}") from e
    if value <= 0:
        raise SettingsError(f"{ENV_PREFIX}{name} must be positive, got {raw!r}")
    return value


__all__ = (
    "ENV_PREFIX",
    "Settings",
    "SettingsError",
)
