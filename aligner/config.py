"""Aligner configuration.

Loaded once at startup from a JSON document whose keys follow the strategy
config format (``interval``, ``sessions``, ``quoteCurrencies``,
``expectedBalances``, ``useTakerOrder``, ``dryRun``). API credentials are
never part of this file; venues read them from the environment.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from aligner.errors import ConfigError

STRATEGY_ID = "xalign"

_INTERVAL_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_INTERVAL_PATTERN = re.compile(r"^(\d+)([smhd])$")


def parse_interval(value: Union[str, int, float]) -> float:
    """Parse ``"1m"``/``"4h"``/``"1d"`` style intervals (or plain seconds)."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid interval: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _INTERVAL_PATTERN.match(value.strip())
        if match is None:
            raise ConfigError(f"Invalid interval: {value!r}")
        seconds = float(int(match.group(1)) * _INTERVAL_UNITS[match.group(2)])
    if seconds <= 0:
        raise ConfigError(f"Interval must be positive, got {value!r}")
    return seconds


def _to_decimal(currency: str, value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigError(f"Invalid expected balance for {currency}: {value!r}") from exc
    if not amount.is_finite():
        raise ConfigError(f"Expected balance for {currency} must be finite, got {value!r}")
    return amount


def _to_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class QuoteCurrencyPreference:
    """Quote currencies to try, in priority order, per order side."""

    buy: tuple[str, ...] = ()
    sell: tuple[str, ...] = ()


@dataclass(frozen=True)
class AlignConfig:
    """Configuration for the balance aligner."""

    # Seconds between cycles
    interval: float = 60.0

    # Venue names in priority order
    sessions: tuple[str, ...] = ()

    # Required; None fails validation
    quote_currencies: Optional[QuoteCurrencyPreference] = None

    # Currency -> target net balance
    expected_balances: Mapping[str, Decimal] = field(default_factory=dict)

    use_taker_order: bool = False
    dry_run: bool = False

    def validate(self) -> None:
        if self.quote_currencies is None:
            raise ConfigError("quoteCurrencies is not defined")
        if self.interval <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval}")
        if not self.sessions:
            raise ConfigError("sessions is empty")

    @property
    def currencies(self) -> list[str]:
        """Target currencies in the fixed order cycles process them."""
        return sorted(self.expected_balances)

    @property
    def instance_id(self) -> str:
        return STRATEGY_ID + "-".join(self.sessions) + "-".join(self.currencies)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AlignConfig:
        """Build and validate a config from the JSON-style mapping."""
        quotes_raw = data.get("quoteCurrencies")
        quote_currencies = None
        if quotes_raw is not None:
            if not isinstance(quotes_raw, Mapping):
                raise ConfigError("quoteCurrencies must be an object with buy/sell lists")
            quote_currencies = QuoteCurrencyPreference(
                buy=tuple(quotes_raw.get("buy") or ()),
                sell=tuple(quotes_raw.get("sell") or ()),
            )

        expected_raw = data.get("expectedBalances") or {}
        if not isinstance(expected_raw, Mapping):
            raise ConfigError("expectedBalances must be an object")

        config = cls(
            interval=parse_interval(data.get("interval", "1m")),
            sessions=tuple(data.get("sessions") or ()),
            quote_currencies=quote_currencies,
            expected_balances={cur: _to_decimal(cur, v) for cur, v in expected_raw.items()},
            use_taker_order=_to_bool("useTakerOrder", data.get("useTakerOrder", False)),
            dry_run=_to_bool("dryRun", data.get("dryRun", False)),
        )
        config.validate()
        return config


def load_config(path: Union[str, Path]) -> AlignConfig:
    """Read and validate an aligner config from a JSON file."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Config root must be an object: {path}")
    return AlignConfig.from_dict(raw)
