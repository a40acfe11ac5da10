"""OcsGateway, the single chokepoint for calls to the OCS endpoint.

The upstream multiplexes every operation through one URL: each call POSTs
``{operation: params}`` to ``<base_url>?token=<token>``.

Usage::

    async with OcsGateway.from_config(config) as gw:
        resp = await gw.call("listSubscriber", {"accountId": 3771})
        subscribers = resp.get_path("listSubscriber.subscriberList") or []
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ocs_report.config import ReportConfig
from ocs_report.errors import (
    ConfigError,
    UpstreamError,
    UpstreamErrorKind,
    UpstreamHTTPError,
)
from ocs_report.utils import dig, excerpt

logger = logging.getLogger(__name__)

# Status codes that warrant a retry
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

BODY_EXCERPT_LIMIT = 300


@dataclass(frozen=True)
class RawResponse:
    """A 2xx upstream reply.

    ``data`` is the parsed JSON document, or None when the body was empty
    or not JSON. Some tenants answer valid-but-empty queries that way, so
    it is reported through ``unstructured`` instead of raised.
    """

    status_code: int
    data: Any
    text: str
    operation: Optional[str] = None

    @property
    def unstructured(self) -> bool:
        return self.data is None

    def get_path(self, path: str) -> Any:
        return dig(self.data, path)

    def require_json(self) -> Any:
        """Return ``data`` or raise UpstreamError(kind=UNPARSEABLE)."""
        if self.data is None:
            raise UpstreamError(
                UpstreamErrorKind.UNPARSEABLE,
                "empty or non-JSON response body",
                status_code=self.status_code,
                body_excerpt=excerpt(self.text, BODY_EXCERPT_LIMIT),
                operation=self.operation,
            )
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        """Passthrough view: JSON data, or an empty / nonJson marker."""
        if self.data is not None:
            data: Any = self.data
        elif self.text:
            data = {"nonJson": self.text}
        else:
            data = {"empty": True}
        return {"status": self.status_code, "data": data}


class OcsGateway:
    """Asynchronous client for the OCS endpoint.

    Stateless apart from the pooled HTTP connection, so one instance may be
    shared by any number of concurrent callers.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 25.0,
        retries: int = 0,
        retry_delay: float = 0.5,
        retry_backoff: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            base_url: OCS endpoint URL (without the token query parameter)
            token: OCS API token, sent as the ``token`` query parameter
            timeout: Per-call timeout in seconds
            retries: Extra attempts for 429/5xx and network errors
            retry_delay: Initial delay between retries (seconds)
            retry_backoff: Backoff multiplier for retries
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        if not base_url:
            raise ConfigError("OCS_BASE_URL missing")
        if not token:
            raise ConfigError("OCS_TOKEN missing")
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._retries = retries
        self._retry_delay = retry_delay
        self._retry_backoff = retry_backoff
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: ReportConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OcsGateway":
        config.require_upstream()
        return cls(
            base_url=config.base_url,
            token=config.token,
            timeout=config.timeout,
            retries=config.retries,
            transport=transport,
        )

    # ── Internal helpers ─────────────────────────────────────────

    def _should_retry(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS_CODES

    def _raise_for_status(self, resp: httpx.Response, text: str, operation: str) -> None:
        """Raise UpstreamHTTPError for any non-2xx reply."""
        if 200 <= resp.status_code < 300:
            return
        message = f"HTTP {resp.status_code} {resp.reason_phrase}".rstrip()
        raise UpstreamHTTPError(
            resp.status_code,
            message,
            body_excerpt=excerpt(text, BODY_EXCERPT_LIMIT),
            operation=operation,
        )

    @staticmethod
    def _parse(text: str) -> Any:
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None

    async def _post_with_retry(self, body: Dict[str, Any], operation: str) -> RawResponse:
        """POST ``body`` once, plus up to ``retries`` retries.

        Retries on 429, 5xx and network errors with exponential backoff.
        Does NOT retry on other 4xx replies or on timeouts.
        """
        delay = self._retry_delay

        for attempt in range(self._retries + 1):
            try:
                resp = await self._client.post(
                    self._base_url,
                    params={"token": self._token},
                    json=body,
                    headers={"Accept": "application/json"},
                )
            except httpx.TimeoutException as e:
                raise UpstreamError(
                    UpstreamErrorKind.TIMEOUT,
                    f"no reply within {self._timeout}s",
                    operation=operation,
                ) from e
            except httpx.TransportError as e:
                if attempt < self._retries:
                    logger.debug("%s: network error, retrying (%s)", operation, e)
                    await asyncio.sleep(delay)
                    delay *= self._retry_backoff
                    continue
                raise UpstreamError(
                    UpstreamErrorKind.NETWORK,
                    f"network error: {e.__class__.__name__}",
                    operation=operation,
                ) from e

            # Full body as text first; structured parsing is best effort.
            text = resp.text
            if self._should_retry(resp.status_code) and attempt < self._retries:
                logger.debug("%s: HTTP %s, retrying", operation, resp.status_code)
                await asyncio.sleep(delay)
                delay *= self._retry_backoff
                continue

            self._raise_for_status(resp, text, operation)
            return RawResponse(
                status_code=resp.status_code,
                data=self._parse(text),
                text=text,
                operation=operation,
            )

        # Unreachable: the final attempt returns or raises. Keeps type checkers happy.
        raise AssertionError("retry loop exited without a result")

    # ── Public API ───────────────────────────────────────────────

    async def call(self, operation: str, params: Optional[Dict[str, Any]] = None) -> RawResponse:
        """POST ``{operation: params}`` and return the reply."""
        return await self._post_with_retry({operation: params or {}}, operation)

    async def call_body(self, body: Dict[str, Any]) -> RawResponse:
        """POST an arbitrary request body (generic passthrough)."""
        operation = ",".join(body) or "-"
        return await self._post_with_retry(body, operation)

    async def __aenter__(self) -> "OcsGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
