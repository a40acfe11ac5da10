"""Tests for the ocs-report CLI."""

from __future__ import annotations

import json
import os

from typer.testing import CliRunner

from ocs_report.cli import app

runner = CliRunner()


class TestWindows:
    def test_plan_output(self) -> None:
        result = runner.invoke(app, ["windows", "--start", "2025-06-01", "--end", "2025-06-20"])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines == [
            "2025-06-01  2025-06-07  (7d)",
            "2025-06-08  2025-06-14  (7d)",
            "2025-06-15  2025-06-20  (6d)",
        ]

    def test_default_end_is_utc_today(self, monkeypatch) -> None:
        from datetime import date

        from ocs_report import report as report_mod

        monkeypatch.setattr(report_mod, "utc_today", lambda: date(2025, 6, 10))
        result = runner.invoke(app, ["windows", "--start", "2025-06-01"])
        assert result.exit_code == 0
        assert result.output.strip().splitlines()[-1] == "2025-06-08  2025-06-10  (3d)"


class TestCell:
    def test_empty_cell_is_plain_dash(self) -> None:
        from ocs_report.cli import _cell

        assert _cell(None) == "-"
        assert _cell(1.5) == "1.50"
        assert _cell("x") == "x"


class TestErrors:
    def test_report_without_upstream_is_config_error(self) -> None:
        os.environ.pop("OCS_BASE_URL", None)
        os.environ.pop("OCS_TOKEN", None)
        result = runner.invoke(app, ["report", "--account-id", "1"])
        assert result.exit_code == 2

    def test_missing_config_file(self) -> None:
        result = runner.invoke(app, ["report", "--config", "/tmp/no_such_ocs_config.yaml"])
        assert result.exit_code == 2


class TestReport:
    def test_json_output(self, monkeypatch) -> None:
        from ocs_report import report as report_mod
        from ocs_report.models import AggregateRow

        async def fake_build(account_id, config):
            assert account_id == 3771
            assert config.pool_width == 2
            return [AggregateRow(subscriber_id=1, iccid="89", total_bytes=2048.0)]

        monkeypatch.setattr(report_mod, "build_report", fake_build)
        result = runner.invoke(app, ["report", "--account-id", "3771", "--pool-width", "2"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert rows[0]["iccid"] == "89"
        assert rows[0]["total_bytes"] == 2048.0
        assert rows[0]["degraded"] is False


class TestAccounts:
    def test_json_output(self, monkeypatch) -> None:
        from ocs_report import report as report_mod
        from ocs_report.models import Account

        async def fake_list(reseller_id, config):
            assert reseller_id == 9
            return [Account(id=3771, name="Main")]

        monkeypatch.setattr(report_mod, "list_accounts", fake_list)
        result = runner.invoke(app, ["accounts", "--reseller-id", "9"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"id": 3771, "name": "Main"}]


class TestRaw:
    def test_bad_params_json(self) -> None:
        os.environ["OCS_BASE_URL"] = "https://ocs.example.test/api"
        os.environ["OCS_TOKEN"] = "t"
        result = runner.invoke(app, ["raw", "listSubscriber", "--params", "{not json"])
        assert result.exit_code == 1

    def test_without_upstream_is_config_error(self) -> None:
        os.environ.pop("OCS_BASE_URL", None)
        os.environ.pop("OCS_TOKEN", None)
        result = runner.invoke(app, ["raw", "listSubscriber"])
        assert result.exit_code == 2


class TestVersion:
    def test_version(self) -> None:
        from ocs_report import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output
