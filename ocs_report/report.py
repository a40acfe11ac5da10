"""Report orchestration: list subscribers, enrich each, merge into rows.

Usage::

    config = ReportConfig.from_env()
    rows = build_report_sync(3771, config)
    for row in rows:
        print(row.iccid, row.total_bytes, row.degraded)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ocs_report.config import ReportConfig
from ocs_report.enricher import SubscriberEnricher
from ocs_report.errors import ConfigError, FatalReportError, UpstreamError
from ocs_report.gateway import OcsGateway
from ocs_report.models import Account, AggregateRow, Enrichment
from ocs_report.pricing import TemplateCostCache
from ocs_report.shapes import ACCOUNTS, ShapeResolver
from ocs_report.utils import dig, first_present, gather_bounded, parse_timestamp, to_number

logger = logging.getLogger(__name__)

SUBSCRIBER_LIST_OPERATION = "listSubscriber"
SUBSCRIBER_LIST_PATH = "listSubscriber.subscriberList"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
        return value.strip().lower() in ("true", "1", "yes")
    return None


def latest_status(entries: Any) -> Optional[dict]:
    """Latest entry of a status history by ``startDate``; last wins on ties."""
    if not isinstance(entries, list):
        return None
    usable = [e for e in entries if isinstance(e, dict)]
    if not usable:
        return None
    return max(
        enumerate(usable),
        key=lambda ie: (parse_timestamp(ie[1].get("startDate")) or datetime.min, ie[0]),
    )[1]


def skeleton_row(sub: Dict[str, Any]) -> AggregateRow:
    """Base row from one ``listSubscriber`` entry, before enrichment."""
    sim = sub.get("sim") if isinstance(sub.get("sim"), dict) else {}
    status = latest_status(sub.get("status")) or {}
    sid = to_number(sub.get("subscriberId"))
    return AggregateRow(
        subscriber_id=int(sid) if sid is not None else None,
        iccid=_str(dig(sub, "imsiList.0.iccid") or sim.get("iccid")),
        imsi=_str(dig(sub, "imsiList.0.imsi")),
        phone_number=_str(dig(sub, "phoneNumberList.0.phoneNumber")),
        activation_date=_str(sub.get("activationDate")),
        last_usage_date=_str(sub.get("lastUsageDate")),
        subscriber_status=_str(status.get("status")),
        sim_status=_str(sim.get("status")),
        esim=_bool(sim.get("esim")),
        smdp_server=_str(sim.get("smdpServer")),
        activation_code=_str(sim.get("activationCode")),
        prepaid=_bool(sub.get("prepaid")),
        balance=to_number(sub.get("balance")),
        account=_str(sub.get("account")),
        reseller=_str(sub.get("reseller")),
        last_mcc=_str(sub.get("lastMcc")),
        last_mnc=_str(sub.get("lastMnc")),
    )


def merge(row: AggregateRow, enrichment: Enrichment) -> AggregateRow:
    return row.model_copy(update=enrichment.row_fields())


def normalize_accounts(entries: List[Any]) -> List[Account]:
    accounts: List[Account] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        account_id = to_number(first_present(entry, ("accountId", "id")))
        if not account_id:
            continue
        name = first_present(entry, ("accountName", "name", "label")) or f"Account {int(account_id)}"
        accounts.append(Account(id=int(account_id), name=str(name)))
    return accounts


class ReportBuilder:
    """Build reports against one gateway.

    Each ``build`` call gets its own template cost cache; nothing mutable is
    shared between calls.
    """

    def __init__(
        self,
        gateway,
        config: ReportConfig,
        resolver: Optional[ShapeResolver] = None,
        today: Callable[[], date] = utc_today,
        enricher_factory: Optional[Callable[[TemplateCostCache, date], Any]] = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._resolver = resolver or ShapeResolver(gateway)
        self._today = today
        self._enricher_factory = enricher_factory or self._default_enricher

    def _default_enricher(self, cache: TemplateCostCache, range_end: date) -> SubscriberEnricher:
        cfg = self._config
        return SubscriberEnricher(
            self._resolver,
            cache,
            range_start=cfg.range_start,
            range_end=range_end,
            max_window_days=cfg.max_window_days,
            window_concurrency=cfg.window_concurrency,
            usage_type_codes=cfg.usage_type_codes,
        )

    def _account_id(self, account_id: Optional[int]) -> int:
        resolved = account_id or self._config.default_account_id
        if not resolved:
            raise ConfigError("Provide an account id (OCS_ACCOUNT_ID or --account-id)")
        return int(resolved)

    async def list_subscribers(self, account_id: int) -> List[Dict[str, Any]]:
        try:
            resp = await self._gateway.call(SUBSCRIBER_LIST_OPERATION, {"accountId": account_id})
        except UpstreamError as exc:
            raise FatalReportError(account_id, f"subscriber listing failed: {exc}") from exc
        subscribers = resp.get_path(SUBSCRIBER_LIST_PATH)
        if not isinstance(subscribers, list):
            logger.info("Account %s: no subscriber list in reply", account_id)
            return []
        return [s for s in subscribers if isinstance(s, dict)]

    async def build(self, account_id: Optional[int] = None) -> List[AggregateRow]:
        account_id = self._account_id(account_id)
        t0 = time.monotonic()
        subscribers = await self.list_subscribers(account_id)

        rows: List[AggregateRow] = []
        seen = set()
        for sub in subscribers:
            row = skeleton_row(sub)
            if row.subscriber_id is not None:
                if row.subscriber_id in seen:
                    logger.warning("Account %s: duplicate subscriber %s dropped", account_id, row.subscriber_id)
                    continue
                seen.add(row.subscriber_id)
            rows.append(row)

        # One reporting interval for every row, even across midnight.
        range_end = self._today()
        enricher = self._enricher_factory(TemplateCostCache(self._gateway), range_end)
        targets = [i for i, row in enumerate(rows) if row.subscriber_id is not None]
        results = await gather_bounded(
            [lambda sid=rows[i].subscriber_id: enricher.enrich(sid) for i in targets],
            self._config.pool_width,
        )
        for i, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning("Subscriber %s: enrichment raised %r", rows[i].subscriber_id, result)
                rows[i] = rows[i].model_copy(update={"enrichment_failed": True})
                continue
            rows[i] = merge(rows[i], result)

        degraded = sum(1 for r in rows if r.degraded)
        logger.info(
            "Account %s: %d rows (%d degraded) in %.1fs",
            account_id, len(rows), degraded, time.monotonic() - t0,
        )
        return rows

    async def list_accounts(self, reseller_id: Optional[int] = None) -> List[Account]:
        """Accounts visible to the token, with a default-account fallback."""
        reseller_id = reseller_id or self._config.reseller_id
        accounts = normalize_accounts(await self._resolver.resolve(ACCOUNTS, reseller_id))
        if accounts:
            return accounts

        default_id = self._config.default_account_id
        if not default_id:
            return []
        try:
            subscribers = await self.list_subscribers(default_id)
        except FatalReportError as exc:
            logger.warning("Default account %s unavailable: %s", default_id, exc)
            return []
        name = _str(subscribers[0].get("account")) if subscribers else None
        return [Account(id=default_id, name=name or f"Account {default_id}")]


async def build_report(
    account_id: Optional[int] = None,
    config: Optional[ReportConfig] = None,
    gateway: Optional[OcsGateway] = None,
) -> List[AggregateRow]:
    """Build the report for one account.

    Raises FatalReportError only when the account's subscribers cannot be
    listed; any other upstream failure shows up as empty fields.
    """
    config = config or ReportConfig.from_env()
    if gateway is not None:
        return await ReportBuilder(gateway, config).build(account_id)
    async with OcsGateway.from_config(config) as gw:
        return await ReportBuilder(gw, config).build(account_id)


def build_report_sync(
    account_id: Optional[int] = None,
    config: Optional[ReportConfig] = None,
) -> List[AggregateRow]:
    """Blocking wrapper around :func:`build_report`."""
    return asyncio.run(build_report(account_id, config))


async def list_accounts(
    reseller_id: Optional[int] = None,
    config: Optional[ReportConfig] = None,
) -> List[Account]:
    config = config or ReportConfig.from_env()
    async with OcsGateway.from_config(config) as gw:
        return await ReportBuilder(gw, config).list_accounts(reseller_id)
