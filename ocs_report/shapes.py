"""Shape resolution: tenant-specific request/response variants.

OCS tenants do not agree on operation names or on where a reply keeps its
payload. Each logical operation therefore has an ordered list of
candidates, each pairing a request body with an extraction path. The
resolver tries them in order and keeps the first non-empty result; a
candidate that fails upstream is treated as "no result".

Field-name variants used when reading items live here as well, so that
every naming guess of the engine sits in one module.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ocs_report.errors import UpstreamError
from ocs_report.utils import dig

logger = logging.getLogger(__name__)

# Logical operations
PACKAGES = "packages"
USAGE = "usage"
ACCOUNTS = "accounts"


@dataclass(frozen=True)
class Candidate:
    """One known (request body, extraction path) variant."""

    operation: str
    build_params: Callable[[Optional[int], Mapping[str, Any]], Dict[str, Any]]
    path: str

    def params(self, subject_id: Optional[int], extra: Mapping[str, Any]) -> Dict[str, Any]:
        return self.build_params(subject_id, extra)


@dataclass
class Resolution:
    items: List[Any] = field(default_factory=list)
    candidate: Optional[Candidate] = None
    errors: List[UpstreamError] = field(default_factory=list)
    tried: int = 0

    @property
    def all_failed(self) -> bool:
        """Every candidate raised; distinct from a valid empty answer."""
        return not self.items and self.tried > 0 and len(self.errors) == self.tried


def _by_subscriber(sid, extra):
    return {"subscriberId": sid}


def _usage_nested(sid, extra):
    return {
        "subscriber": {"subscriberId": sid},
        "period": {"start": extra["start"], "end": extra["end"]},
    }


def _usage_flat(sid, extra):
    return {"subscriberId": sid, "fromDate": extra["start"], "toDate": extra["end"]}


def _by_reseller(rid, extra):
    return {"resellerId": rid} if rid else {}


def _no_params(_, extra):
    return {}


DEFAULT_CANDIDATES: Dict[str, Tuple[Candidate, ...]] = {
    PACKAGES: (
        Candidate("listSubscriberPrepaidPackages", _by_subscriber, "listSubscriberPrepaidPackages.packages"),
        Candidate("listSubscriberPrepaidPackage", _by_subscriber, "listSubscriberPrepaidPackage.packages"),
        Candidate("listSubscriberPrepaidPackage", _by_subscriber, "listSubscriberPrepaidPackage.prepaidPackageList"),
    ),
    USAGE: (
        Candidate("subscriberUsageOverPeriod", _usage_nested, "subscriberUsageOverPeriod.total"),
        Candidate("subscriberUsageOverPeriod", _usage_nested, "subscriberUsageOverPeriod.usages"),
        Candidate("subscriberUsageOverPeriod", _usage_flat, "subscriberUsageOverPeriod.total"),
    ),
    ACCOUNTS: (
        Candidate("listResellerAccount", _by_reseller, "listResellerAccount.accounts"),
        Candidate("listAccount", _no_params, "listAccount.accounts"),
        Candidate("listAccounts", _no_params, "listAccounts.accounts"),
        Candidate("listResellerAccounts", _no_params, "listResellerAccounts.accounts"),
        Candidate("listCustomerAccounts", _no_params, "listCustomerAccounts.accounts"),
    ),
}


# ── Field-name variants ──────────────────────────────────────────

PACKAGE_ACTIVATION_KEYS = ("tsactivationutc", "tsActivationUtc", "activationDate", "startDate")
PACKAGE_EXPIRATION_KEYS = ("tsexpirationutc", "tsExpirationUtc", "expirationDate", "endDate")
PACKAGE_DATA_KEYS = ("pckdatabyte", "pckDataByte", "dataByte")
PACKAGE_USED_KEYS = ("useddatabyte", "usedDataByte", "usedByte")
TEMPLATE_ID_KEYS = ("prepaidpackagetemplateid", "prepaidPackageTemplateId", "templateId")
TEMPLATE_NAME_KEYS = ("prepaidpackagetemplatename", "prepaidPackageTemplateName", "templateName", "name")

USAGE_BYTES_KEYS = ("bytes", "dataBytes", "totalBytes", "dataVolume", "volume")
USAGE_SUBSCRIBER_COST_KEYS = ("subscriberCost", "cost", "totalCost", "chargedAmount")
USAGE_RESELLER_COST_KEYS = ("resellerCost", "resellerTotalCost", "wholesaleCost")
USAGE_TYPE_KEYS = ("usageType", "type", "typeId")
USAGE_QUANTITY_KEYS = ("quantity", "amount", "value", "bytes")
USAGE_BY_TYPE_KEYS = ("usageByType", "byType", "types")

TEMPLATE_OPERATION = "getPrepaidPackageTemplate"
TEMPLATE_PATHS = ("getPrepaidPackageTemplate.template", "getPrepaidPackageTemplate.prepaidPackageTemplate", "getPrepaidPackageTemplate")
TEMPLATE_COST_KEYS = ("cost", "price", "subscriberCost", "amount")
TEMPLATE_CURRENCY_KEYS = ("currency", "currencyCode", "currencyName")


def extract_items(data: Any, path: str) -> List[Any]:
    """Items at ``path``; a mapping there counts as a single item."""
    found = dig(data, path)
    if isinstance(found, list):
        return found
    if isinstance(found, dict) and found:
        return [found]
    return []


class ShapeResolver:
    """Try candidate variants for a logical operation until one answers."""

    def __init__(self, gateway, candidates: Optional[Mapping[str, Sequence[Candidate]]] = None) -> None:
        self._gateway = gateway
        self._candidates = dict(DEFAULT_CANDIDATES if candidates is None else candidates)

    def candidates_for(self, logical_op: str) -> Sequence[Candidate]:
        try:
            return self._candidates[logical_op]
        except KeyError:
            raise ValueError(f"Unknown logical operation: {logical_op!r}")

    async def attempt(
        self,
        logical_op: str,
        subject_id: Optional[int],
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> Resolution:
        extra = extra_params or {}
        result = Resolution()
        # Candidates differing only in extraction path share one upstream call.
        seen: Dict[str, Any] = {}
        for candidate in self.candidates_for(logical_op):
            result.tried += 1
            params = candidate.params(subject_id, extra)
            key = json.dumps({candidate.operation: params}, sort_keys=True, default=str)
            outcome = seen.get(key)
            if outcome is None:
                try:
                    outcome = await self._gateway.call(candidate.operation, params)
                except UpstreamError as exc:
                    outcome = exc
                seen[key] = outcome
            if isinstance(outcome, UpstreamError):
                logger.debug("%s/%s for %s failed: %s", logical_op, candidate.operation, subject_id, outcome)
                result.errors.append(outcome)
                continue
            items = extract_items(outcome.data, candidate.path)
            if items:
                result.items = items
                result.candidate = candidate
                return result
        return result

    async def resolve(
        self,
        logical_op: str,
        subject_id: Optional[int],
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> List[Any]:
        """First non-empty result among the candidates; never raises upstream errors."""
        return (await self.attempt(logical_op, subject_id, extra_params)).items
