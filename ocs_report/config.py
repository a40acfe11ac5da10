"""Report engine configuration.

Reads ``OCS_*`` environment variables with sensible defaults, or a YAML
mapping with the same keys. Never exposes the upstream token in repr or
serialization.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ocs_report.errors import ConfigError

# The upstream refuses usage queries spanning more than one week.
UPSTREAM_MAX_WINDOW_DAYS = 7

DEFAULT_RANGE_START = date(2025, 6, 1)


def _int_env(key: str, default: Optional[int]) -> Optional[int]:
    """Parse an int env var with fallback."""
    val = os.environ.get(key)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _float_env(key: str, default: float) -> float:
    val = os.environ.get(key)
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _str_tuple_env(key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Parse comma-separated env var to a tuple."""
    val = os.environ.get(key, "")
    if not val:
        return default
    return tuple(v.strip() for v in val.split(",") if v.strip())


def _as_date(value: Any, key: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ConfigError(f"{key} must be an ISO date (YYYY-MM-DD), got {value!r}")


@dataclass(frozen=True)
class ReportConfig:
    """Immutable engine configuration. Safe to log; the token is masked."""

    # ── Upstream ───────────────────────────────────────────────────
    base_url: str = ""
    token: str = ""
    timeout: float = 25.0
    retries: int = 0

    # ── Scope ──────────────────────────────────────────────────────
    default_account_id: Optional[int] = None
    reseller_id: Optional[int] = None

    # ── Aggregation ────────────────────────────────────────────────
    range_start: date = DEFAULT_RANGE_START
    max_window_days: int = UPSTREAM_MAX_WINDOW_DAYS
    pool_width: int = 6
    window_concurrency: int = 4
    usage_type_codes: Tuple[str, ...] = ("33",)

    def __repr__(self) -> str:
        return (
            f"ReportConfig(base_url={self.base_url!r}, "
            f"token={'***' if self.token else ''!r}, timeout={self.timeout}, "
            f"retries={self.retries}, default_account_id={self.default_account_id}, "
            f"reseller_id={self.reseller_id}, range_start={self.range_start.isoformat()!r}, "
            f"max_window_days={self.max_window_days}, pool_width={self.pool_width}, "
            f"window_concurrency={self.window_concurrency}, "
            f"usage_type_codes={self.usage_type_codes!r})"
        )

    # ----- class methods -------------------------------------------------

    @classmethod
    def from_env(cls, **overrides: Any) -> "ReportConfig":
        """Load configuration from ``OCS_*`` environment variables."""
        cfg = cls(
            base_url=os.environ.get("OCS_BASE_URL", ""),
            token=os.environ.get("OCS_TOKEN", ""),
            timeout=_float_env("OCS_TIMEOUT", 25.0),
            retries=_int_env("OCS_RETRIES", 0),
            default_account_id=_int_env("OCS_ACCOUNT_ID", None) or None,
            reseller_id=_int_env("OCS_RESELLER_ID", None),
            range_start=_as_date(
                os.environ.get("OCS_RANGE_START") or DEFAULT_RANGE_START, "OCS_RANGE_START"
            ),
            max_window_days=_int_env("OCS_MAX_WINDOW_DAYS", UPSTREAM_MAX_WINDOW_DAYS),
            pool_width=_int_env("OCS_POOL_WIDTH", 6),
            window_concurrency=_int_env("OCS_WINDOW_CONCURRENCY", 4),
            usage_type_codes=_str_tuple_env("OCS_USAGE_TYPE_CODES", ("33",)),
        )
        return cfg.merge_overrides(**overrides)

    @classmethod
    def from_yaml(cls, path: str) -> "ReportConfig":
        """Load from a YAML file and validate."""
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")
        with open(p) as f:
            raw = yaml.safe_load(f)
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must be a YAML mapping: {path}")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReportConfig":
        """Build config from a plain dict, applying defaults."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls().merge_overrides(**d)

    # ----- mutation -------------------------------------------------------

    def merge_overrides(self, **kwargs: Any) -> "ReportConfig":
        """Return a new config with non-None overrides applied, validated."""
        changes: Dict[str, Any] = {}
        for key, val in kwargs.items():
            if val is None:
                continue
            if key == "range_start":
                val = _as_date(val, key)
            elif key == "usage_type_codes":
                if isinstance(val, str):
                    val = tuple(v.strip() for v in val.split(",") if v.strip())
                else:
                    val = tuple(str(v) for v in val)
            changes[key] = val
        try:
            cfg = dataclasses.replace(self, **changes)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc
        cfg.validate()
        return cfg

    # ----- validation ----------------------------------------------------

    def validate(self) -> None:
        """Raise ConfigError if the configuration is invalid."""
        if not 1 <= self.max_window_days <= UPSTREAM_MAX_WINDOW_DAYS:
            raise ConfigError(
                f"max_window_days must be between 1 and {UPSTREAM_MAX_WINDOW_DAYS}, "
                f"got {self.max_window_days}"
            )
        if self.pool_width < 1:
            raise ConfigError(f"pool_width must be >= 1, got {self.pool_width}")
        if self.window_concurrency < 1:
            raise ConfigError(
                f"window_concurrency must be >= 1, got {self.window_concurrency}"
            )
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout}")
        if self.retries < 0:
            raise ConfigError(f"retries must be >= 0, got {self.retries}")
        if self.default_account_id is not None and self.default_account_id <= 0:
            raise ConfigError(
                f"default_account_id must be positive, got {self.default_account_id}"
            )

    def require_upstream(self) -> None:
        """Raise ConfigError unless the upstream URL and token are set."""
        if not self.base_url:
            raise ConfigError("OCS_BASE_URL missing")
        if not self.token:
            raise ConfigError("OCS_TOKEN missing")

    # ----- serialisation --------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict with the token masked."""
        return {
            "base_url": self.base_url,
            "token": "configured" if self.token else "not set",
            "timeout": self.timeout,
            "retries": self.retries,
            "default_account_id": self.default_account_id,
            "reseller_id": self.reseller_id,
            "range_start": self.range_start.isoformat(),
            "max_window_days": self.max_window_days,
            "pool_width": self.pool_width,
            "window_concurrency": self.window_concurrency,
            "usage_type_codes": list(self.usage_type_codes),
        }
