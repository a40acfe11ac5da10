"""Per-subscriber enrichment: package, template cost and usage totals.

Each step fails on its own. A failed step leaves its fields empty and is
counted on the result; it never aborts the subscriber or the report.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

from ocs_report.models import Enrichment, PackageSnapshot, UsageWindow, WindowResult
from ocs_report.pricing import TemplateCostCache
from ocs_report.shapes import (
    PACKAGE_ACTIVATION_KEYS,
    PACKAGE_DATA_KEYS,
    PACKAGE_EXPIRATION_KEYS,
    PACKAGE_USED_KEYS,
    PACKAGES,
    TEMPLATE_ID_KEYS,
    TEMPLATE_NAME_KEYS,
    USAGE,
    USAGE_BY_TYPE_KEYS,
    USAGE_BYTES_KEYS,
    USAGE_QUANTITY_KEYS,
    USAGE_RESELLER_COST_KEYS,
    USAGE_SUBSCRIBER_COST_KEYS,
    USAGE_TYPE_KEYS,
    ShapeResolver,
)
from ocs_report.utils import first_present, gather_bounded, parse_timestamp, to_number
from ocs_report.windows import plan

logger = logging.getLogger(__name__)


# ── Packages ─────────────────────────────────────────────────────

def select_package(packages: Sequence[Any]) -> Optional[dict]:
    """Package with the latest activation; ties go to the later list entry.

    Packages without a parseable activation sort before all others.
    """
    usable = [p for p in packages if isinstance(p, dict)]
    if not usable:
        return None

    def _key(indexed):
        index, pkg = indexed
        ts = parse_timestamp(first_present(pkg, PACKAGE_ACTIVATION_KEYS))
        return (ts or datetime.min, index)

    return max(enumerate(usable), key=_key)[1]


def to_snapshot(pkg: dict) -> PackageSnapshot:
    template = pkg.get("packageTemplate")
    if not isinstance(template, dict):
        template = pkg
    template_id = to_number(first_present(template, TEMPLATE_ID_KEYS))
    name = first_present(template, TEMPLATE_NAME_KEYS)
    activated = first_present(pkg, PACKAGE_ACTIVATION_KEYS)
    expires = first_present(pkg, PACKAGE_EXPIRATION_KEYS)
    return PackageSnapshot(
        template_id=int(template_id) if template_id is not None else None,
        template_name=str(name) if name is not None else None,
        activated_at=str(activated) if activated is not None else None,
        expires_at=str(expires) if expires is not None else None,
        data_bytes=to_number(first_present(pkg, PACKAGE_DATA_KEYS)),
        used_bytes=to_number(first_present(pkg, PACKAGE_USED_KEYS)),
    )


# ── Usage ────────────────────────────────────────────────────────

def _add(total: Optional[float], value: Optional[float]) -> Optional[float]:
    if value is None:
        return total
    return (total or 0.0) + value


def _typed_bytes(item: dict, type_codes: Sequence[str]) -> Optional[float]:
    """Data volume reported under one of the configured usage type codes."""
    found: Optional[float] = None
    item_type = first_present(item, USAGE_TYPE_KEYS)
    if item_type is not None and str(item_type) in type_codes:
        found = _add(found, to_number(first_present(item, USAGE_QUANTITY_KEYS)))
    by_type = first_present(item, USAGE_BY_TYPE_KEYS)
    if isinstance(by_type, dict):
        for code in type_codes:
            entry = by_type.get(code)
            if isinstance(entry, dict):
                entry = first_present(entry, USAGE_QUANTITY_KEYS)
            found = _add(found, to_number(entry))
    return found


def parse_window_result(items: Sequence[Any], type_codes: Sequence[str]) -> WindowResult:
    """Sum usage items of one window; fields nobody reported stay None."""
    result = WindowResult()
    for item in items:
        if not isinstance(item, dict):
            continue
        volume = to_number(first_present(item, USAGE_BYTES_KEYS))
        if volume is None:
            volume = _typed_bytes(item, type_codes)
        result.bytes = _add(result.bytes, volume)
        result.subscriber_cost = _add(
            result.subscriber_cost, to_number(first_present(item, USAGE_SUBSCRIBER_COST_KEYS))
        )
        result.reseller_cost = _add(
            result.reseller_cost, to_number(first_present(item, USAGE_RESELLER_COST_KEYS))
        )
    return result


class SubscriberEnricher:
    """Resolve package, template cost and usage for single subscribers.

    One instance serves one report: it holds that report's template cost
    cache and the reporting interval.
    """

    def __init__(
        self,
        resolver: ShapeResolver,
        cost_cache: TemplateCostCache,
        range_start: date,
        range_end: date,
        max_window_days: int = 7,
        window_concurrency: int = 4,
        usage_type_codes: Sequence[str] = ("33",),
    ) -> None:
        self._resolver = resolver
        self._costs = cost_cache
        self._windows = plan(range_start, range_end, max_window_days)
        self._window_concurrency = window_concurrency
        self._type_codes = tuple(usage_type_codes)

    def windows(self) -> List[UsageWindow]:
        return list(self._windows)

    async def _window_usage(self, subscriber_id: int, window: UsageWindow) -> Optional[WindowResult]:
        """WindowResult for one window; None when every candidate failed."""
        res = await self._resolver.attempt(
            USAGE,
            subscriber_id,
            {"start": window.start.isoformat(), "end": window.end.isoformat()},
        )
        if res.all_failed:
            logger.debug(
                "Subscriber %s: usage %s..%s unavailable", subscriber_id, window.start, window.end
            )
            return None
        return parse_window_result(res.items, self._type_codes)

    async def enrich(self, subscriber_id: int) -> Enrichment:
        out = Enrichment(subscriber_id=subscriber_id)

        # 1. package
        try:
            res = await self._resolver.attempt(PACKAGES, subscriber_id)
            out.package_lookup_failed = res.all_failed
            pkg = select_package(res.items)
            if pkg is not None:
                out.package = to_snapshot(pkg)
        except Exception as exc:
            logger.warning("Subscriber %s: package lookup raised %r", subscriber_id, exc)
            out.package_lookup_failed = True

        # 2. template cost
        template_id = out.package.template_id if out.package else None
        if template_id is not None:
            try:
                out.template_cost = await self._costs.get(template_id)
            except Exception as exc:
                logger.warning("Subscriber %s: template %s cost raised %r", subscriber_id, template_id, exc)
            out.cost_lookup_failed = out.template_cost is None

        # 3. usage over all windows
        windows = self.windows()
        out.usage_windows = len(windows)
        results = await gather_bounded(
            [lambda w=w: self._window_usage(subscriber_id, w) for w in windows],
            self._window_concurrency,
        )
        for window, result in zip(windows, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Subscriber %s: usage %s..%s raised %r", subscriber_id, window.start, window.end, result
                )
                out.usage_windows_failed += 1
                continue
            if result is None:
                out.usage_windows_failed += 1
                continue
            out.total_bytes = _add(out.total_bytes, result.bytes)
            out.total_subscriber_cost = _add(out.total_subscriber_cost, result.subscriber_cost)
            out.total_reseller_cost = _add(out.total_reseller_cost, result.reseller_cost)

        if out.usage_windows_failed or out.package_lookup_failed or out.cost_lookup_failed:
            logger.warning(
                "Subscriber %s degraded: %d/%d usage windows failed, package lookup %s, cost lookup %s",
                subscriber_id,
                out.usage_windows_failed,
                out.usage_windows,
                "failed" if out.package_lookup_failed else "ok",
                "failed" if out.cost_lookup_failed else "ok",
            )
        return out
