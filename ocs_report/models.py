"""Pydantic models for report entities.

Everything the engine hands back is built from these; ``AggregateRow`` is
the only one that leaves the package.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ocs_report.utils import bytes_to_gb


# ── Accounts / subscribers ───────────────────────────────────────

class Account(BaseModel):
    id: int
    name: str


class PackageSnapshot(BaseModel):
    """Most recently activated prepaid package of a subscriber."""

    template_id: Optional[int] = None
    template_name: Optional[str] = None
    activated_at: Optional[str] = None
    expires_at: Optional[str] = None
    data_bytes: Optional[float] = None
    used_bytes: Optional[float] = None


class TemplateCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    template_id: int
    cost: Optional[float] = None
    currency: Optional[str] = None
    name: Optional[str] = None


# ── Usage ────────────────────────────────────────────────────────

class UsageWindow(BaseModel):
    """Inclusive date range accepted by one usage query."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class WindowResult(BaseModel):
    """Usage of one subscriber over one window; None means not reported."""

    bytes: Optional[float] = None
    subscriber_cost: Optional[float] = None
    reseller_cost: Optional[float] = None

    @property
    def empty(self) -> bool:
        return self.bytes is None and self.subscriber_cost is None and self.reseller_cost is None


# ── Enrichment / output ──────────────────────────────────────────

class Enrichment(BaseModel):
    """Whatever the enricher could find for one subscriber."""

    subscriber_id: int
    package: Optional[PackageSnapshot] = None
    template_cost: Optional[TemplateCost] = None
    total_bytes: Optional[float] = None
    total_subscriber_cost: Optional[float] = None
    total_reseller_cost: Optional[float] = None
    usage_windows: int = 0
    usage_windows_failed: int = 0
    package_lookup_failed: bool = False
    cost_lookup_failed: bool = False

    def row_fields(self) -> Dict[str, Any]:
        """Fields to assign onto the subscriber's skeleton row."""
        pkg = self.package or PackageSnapshot()
        cost = self.template_cost
        return {
            "prepaid_package_template_id": pkg.template_id,
            "prepaid_package_template_name": pkg.template_name,
            "package_activated_at": pkg.activated_at,
            "package_expires_at": pkg.expires_at,
            "package_data_bytes": pkg.data_bytes,
            "package_used_bytes": pkg.used_bytes,
            "subscriber_one_time_cost": cost.cost if cost else None,
            "cost_currency": cost.currency if cost else None,
            "total_bytes": self.total_bytes,
            "total_subscriber_cost": self.total_subscriber_cost,
            "total_reseller_cost": self.total_reseller_cost,
            "usage_windows": self.usage_windows,
            "usage_windows_failed": self.usage_windows_failed,
            "package_lookup_failed": self.package_lookup_failed,
            "cost_lookup_failed": self.cost_lookup_failed,
        }


class AggregateRow(BaseModel):
    """One denormalized row per subscriber."""

    model_config = ConfigDict(frozen=True)

    # Identity / listSubscriber attributes
    subscriber_id: Optional[int] = None
    iccid: Optional[str] = None
    imsi: Optional[str] = None
    phone_number: Optional[str] = None
    activation_date: Optional[str] = None
    last_usage_date: Optional[str] = None
    subscriber_status: Optional[str] = None
    sim_status: Optional[str] = None
    esim: Optional[bool] = None
    smdp_server: Optional[str] = None
    activation_code: Optional[str] = None
    prepaid: Optional[bool] = None
    balance: Optional[float] = None
    account: Optional[str] = None
    reseller: Optional[str] = None
    last_mcc: Optional[str] = None
    last_mnc: Optional[str] = None

    # Package
    prepaid_package_template_id: Optional[int] = None
    prepaid_package_template_name: Optional[str] = None
    package_activated_at: Optional[str] = None
    package_expires_at: Optional[str] = None
    package_data_bytes: Optional[float] = None
    package_used_bytes: Optional[float] = None

    # Template cost
    subscriber_one_time_cost: Optional[float] = None
    cost_currency: Optional[str] = None

    # Usage totals
    total_bytes: Optional[float] = None
    total_subscriber_cost: Optional[float] = None
    total_reseller_cost: Optional[float] = None
    usage_windows: int = 0
    usage_windows_failed: int = 0
    package_lookup_failed: bool = False
    cost_lookup_failed: bool = False
    enrichment_failed: bool = False

    @property
    def degraded(self) -> bool:
        return (
            self.usage_windows_failed > 0
            or self.package_lookup_failed
            or self.cost_lookup_failed
            or self.enrichment_failed
        )

    def to_flat(self) -> Dict[str, Any]:
        """Primitive-valued dict for tables and serializers."""
        flat = self.model_dump()
        flat["pckdata_gb"] = bytes_to_gb(self.package_data_bytes)
        flat["used_gb"] = bytes_to_gb(self.package_used_bytes)
        flat["total_gb"] = bytes_to_gb(self.total_bytes)
        flat["degraded"] = self.degraded
        return flat


def rows_to_flat(rows: List[AggregateRow]) -> List[Dict[str, Any]]:
    return [r.to_flat() for r in rows]
