"""OCS usage report engine: per-subscriber package, usage and cost rows."""

from ocs_report.config import ReportConfig
from ocs_report.errors import (
    ConfigError,
    FatalReportError,
    OcsReportError,
    UpstreamError,
    UpstreamErrorKind,
    UpstreamHTTPError,
)
from ocs_report.gateway import OcsGateway, RawResponse
from ocs_report.models import Account, AggregateRow, PackageSnapshot, TemplateCost, UsageWindow, WindowResult
from ocs_report.report import ReportBuilder, build_report, build_report_sync, list_accounts
from ocs_report.windows import plan

__version__ = "1.0.0"

__all__ = [
    "ReportConfig",
    "OcsGateway",
    "RawResponse",
    "ReportBuilder",
    "build_report",
    "build_report_sync",
    "list_accounts",
    "plan",
    "Account",
    "AggregateRow",
    "PackageSnapshot",
    "TemplateCost",
    "UsageWindow",
    "WindowResult",
    "OcsReportError",
    "ConfigError",
    "FatalReportError",
    "UpstreamError",
    "UpstreamErrorKind",
    "UpstreamHTTPError",
]
