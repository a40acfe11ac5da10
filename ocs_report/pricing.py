"""Per-report cache of prepaid package template costs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from ocs_report.errors import UpstreamError
from ocs_report.models import TemplateCost
from ocs_report.shapes import (
    TEMPLATE_COST_KEYS,
    TEMPLATE_CURRENCY_KEYS,
    TEMPLATE_NAME_KEYS,
    TEMPLATE_OPERATION,
    TEMPLATE_PATHS,
)
from ocs_report.utils import dig, first_present, to_number

logger = logging.getLogger(__name__)


def parse_template_cost(template_id: int, data: Any) -> Optional[TemplateCost]:
    """Read a template's price out of a reply; None if no price is present."""
    for path in TEMPLATE_PATHS:
        node = dig(data, path)
        if not isinstance(node, dict):
            continue
        cost = to_number(first_present(node, TEMPLATE_COST_KEYS))
        if cost is None:
            continue
        currency = first_present(node, TEMPLATE_CURRENCY_KEYS)
        name = first_present(node, TEMPLATE_NAME_KEYS)
        return TemplateCost(
            template_id=template_id,
            cost=cost,
            currency=str(currency) if currency is not None else None,
            name=str(name) if name is not None else None,
        )
    return None


class TemplateCostCache:
    """Template id -> TemplateCost, shared by the enrichers of one report.

    The in-flight lookup is stored per id, so concurrent requests for the
    same template share a single upstream call. Failed lookups resolve to
    None and are not retried within the report.

    Usage::

        cache = TemplateCostCache(gateway)
        cost = await cache.get(42)
    """

    def __init__(self, gateway) -> None:
        self._gateway = gateway
        self._tasks: Dict[int, "asyncio.Task[Optional[TemplateCost]]"] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, template_id: int) -> bool:
        return template_id in self._tasks

    async def _fetch(self, template_id: int) -> Optional[TemplateCost]:
        try:
            resp = await self._gateway.call(
                TEMPLATE_OPERATION, {"prepaidPackageTemplateId": template_id}
            )
        except UpstreamError as exc:
            logger.warning("Template %s cost lookup failed: %s", template_id, exc)
            return None
        cost = parse_template_cost(template_id, resp.data)
        if cost is None:
            logger.debug("Template %s: no price in reply", template_id)
        return cost

    async def get(self, template_id: int) -> Optional[TemplateCost]:
        task = self._tasks.get(template_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch(template_id))
            self._tasks[template_id] = task
        return await asyncio.shield(task)
