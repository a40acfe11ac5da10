"""Shared test fixtures for the report engine tests.

``FakeGateway`` stands in for OcsGateway: each operation name maps to a
handler ``(params) -> data`` that returns the reply document or raises.
Every call is recorded, and in-flight calls are counted so tests can
assert concurrency bounds.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from ocs_report.config import ReportConfig
from ocs_report.errors import UpstreamError, UpstreamErrorKind
from ocs_report.gateway import RawResponse


class FakeGateway:
    def __init__(
        self,
        routes: Optional[Dict[str, Callable[[Dict[str, Any]], Any]]] = None,
        delay: float = 0.0,
    ) -> None:
        self.routes = dict(routes or {})
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def calls_to(self, operation: str) -> List[Dict[str, Any]]:
        return [params for op, params in self.calls if op == operation]

    async def call(self, operation: str, params: Optional[Dict[str, Any]] = None) -> RawResponse:
        params = params or {}
        self.calls.append((operation, params))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            handler = self.routes.get(operation)
            if handler is None:
                raise UpstreamError(
                    UpstreamErrorKind.HTTP, "unknown operation", status_code=400, operation=operation
                )
            data = handler(params)
            return RawResponse(status_code=200, data=data, text="", operation=operation)
        finally:
            self.in_flight -= 1


def upstream_error(operation: str = "op", status: int = 500) -> UpstreamError:
    return UpstreamError(UpstreamErrorKind.HTTP, "boom", status_code=status, operation=operation)


@pytest.fixture
def fake_gateway_cls():
    return FakeGateway


@pytest.fixture
def raise_upstream():
    """Handler factory: a route that always fails upstream."""
    def _factory(status: int = 500):
        def _handler(params):
            raise upstream_error(status=status)
        return _handler
    return _factory


@pytest.fixture
def config() -> ReportConfig:
    """Three windows: 2025-06-01..07, 08..14, 15..20 with today=2025-06-20."""
    return ReportConfig(
        base_url="https://ocs.example.test/api",
        token="secret-token",
        default_account_id=3771,
        range_start=date(2025, 6, 1),
        max_window_days=7,
        pool_width=3,
        window_concurrency=2,
    )


@pytest.fixture
def today():
    return lambda: date(2025, 6, 20)
