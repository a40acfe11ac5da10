"""Tests for the shape resolver and its candidate lists."""

from __future__ import annotations

import asyncio

import pytest

from ocs_report.shapes import ACCOUNTS, PACKAGES, USAGE, Candidate, ShapeResolver, extract_items


def run_async(coro):
    """Helper to run async coroutine in sync test."""
    return asyncio.run(coro)


def _by_sid(sid, extra):
    return {"subscriberId": sid}


class TestFallback:
    def test_empty_then_error_then_hit(self, fake_gateway_cls, raise_upstream) -> None:
        """A is empty, B throws, C answers: C's items come back, B is swallowed."""
        gw = fake_gateway_cls({
            "opA": lambda p: {"opA": {"items": []}},
            "opB": raise_upstream(),
            "opC": lambda p: {"opC": {"items": [{"x": 1}]}},
        })
        resolver = ShapeResolver(gw, {"thing": (
            Candidate("opA", _by_sid, "opA.items"),
            Candidate("opB", _by_sid, "opB.items"),
            Candidate("opC", _by_sid, "opC.items"),
        )})

        assert run_async(resolver.resolve("thing", 7)) == [{"x": 1}]
        assert [op for op, _ in gw.calls] == ["opA", "opB", "opC"]

    def test_stops_at_first_hit(self, fake_gateway_cls) -> None:
        gw = fake_gateway_cls({
            "opA": lambda p: {"opA": {"items": [1]}},
            "opB": lambda p: {"opB": {"items": [2]}},
        })
        resolver = ShapeResolver(gw, {"thing": (
            Candidate("opA", _by_sid, "opA.items"),
            Candidate("opB", _by_sid, "opB.items"),
        )})
        res = run_async(resolver.attempt("thing", 7))
        assert res.items == [1]
        assert res.candidate.operation == "opA"
        assert len(gw.calls) == 1

    def test_all_fail_returns_empty(self, fake_gateway_cls, raise_upstream) -> None:
        gw = fake_gateway_cls({"opA": raise_upstream(), "opB": raise_upstream(502)})
        resolver = ShapeResolver(gw, {"thing": (
            Candidate("opA", _by_sid, "opA.items"),
            Candidate("opB", _by_sid, "opB.items"),
        )})
        res = run_async(resolver.attempt("thing", 7))
        assert res.items == []
        assert res.all_failed is True
        assert len(res.errors) == 2

    def test_valid_empty_is_not_failure(self, fake_gateway_cls) -> None:
        gw = fake_gateway_cls({"opA": lambda p: None})
        resolver = ShapeResolver(gw, {"thing": (Candidate("opA", _by_sid, "opA.items"),)})
        res = run_async(resolver.attempt("thing", 7))
        assert res.items == []
        assert res.all_failed is False

    def test_unknown_logical_op(self, fake_gateway_cls) -> None:
        resolver = ShapeResolver(fake_gateway_cls())
        with pytest.raises(ValueError):
            run_async(resolver.resolve("nope", 1))


class TestDefaultCandidates:
    def test_packages_second_naming(self, fake_gateway_cls) -> None:
        """Tenants that only know the singular operation name still resolve."""
        gw = fake_gateway_cls({
            "listSubscriberPrepaidPackage": lambda p: {
                "listSubscriberPrepaidPackage": {"packages": [{"id": p["subscriberId"]}]}
            },
        })
        assert run_async(ShapeResolver(gw).resolve(PACKAGES, 55)) == [{"id": 55}]

    def test_same_request_is_sent_once(self, fake_gateway_cls) -> None:
        """Candidates that differ only by path share one upstream call."""
        gw = fake_gateway_cls({
            "subscriberUsageOverPeriod": lambda p: {
                "subscriberUsageOverPeriod": {"usages": [{"bytes": 5}]}
            },
        })
        items = run_async(ShapeResolver(gw).resolve(USAGE, 9, {"start": "2025-06-01", "end": "2025-06-07"}))
        assert items == [{"bytes": 5}]
        # nested body once (total + usages), not twice
        assert len(gw.calls) == 1
        assert gw.calls[0][1] == {
            "subscriber": {"subscriberId": 9},
            "period": {"start": "2025-06-01", "end": "2025-06-07"},
        }

    def test_usage_flat_variant(self, fake_gateway_cls) -> None:
        def handler(params):
            if "fromDate" in params:
                return {"subscriberUsageOverPeriod": {"total": {"bytes": 10}}}
            return {}

        gw = fake_gateway_cls({"subscriberUsageOverPeriod": handler})
        items = run_async(ShapeResolver(gw).resolve(USAGE, 9, {"start": "2025-06-01", "end": "2025-06-07"}))
        assert items == [{"bytes": 10}]
        assert gw.calls[-1][1] == {"subscriberId": 9, "fromDate": "2025-06-01", "toDate": "2025-06-07"}

    def test_accounts_reseller_param(self, fake_gateway_cls) -> None:
        gw = fake_gateway_cls({
            "listResellerAccount": lambda p: {"listResellerAccount": {"accounts": [{"accountId": 1}]}},
        })
        run_async(ShapeResolver(gw).resolve(ACCOUNTS, 12))
        assert gw.calls_to("listResellerAccount") == [{"resellerId": 12}]


class TestExtractItems:
    def test_mapping_counts_as_one_item(self) -> None:
        assert extract_items({"a": {"b": {"k": 1}}}, "a.b") == [{"k": 1}]

    def test_empty_mapping_and_scalars(self) -> None:
        assert extract_items({"a": {"b": {}}}, "a.b") == []
        assert extract_items({"a": {"b": 3}}, "a.b") == []
        assert extract_items(None, "a.b") == []
