"""Structured exceptions for the OCS usage report engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class OcsReportError(Exception):
    """Base exception for all report engine errors."""
    pass


class ConfigError(OcsReportError):
    """Invalid or missing configuration."""
    pass


class UpstreamErrorKind(str, Enum):
    TIMEOUT = "timeout"
    HTTP = "http"
    NETWORK = "network"
    UNPARSEABLE = "unparseable"


class UpstreamError(OcsReportError):
    """A single call to the OCS endpoint failed."""

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: str,
        status_code: Optional[int] = None,
        body_excerpt: str = "",
        operation: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        self.operation = operation
        prefix = f"[{status_code}] " if status_code is not None else ""
        super().__init__(f"{prefix}{message} (operation: {operation or '-'})")


class UpstreamHTTPError(UpstreamError):
    """Non-2xx response from the OCS endpoint."""

    def __init__(
        self,
        status_code: int,
        message: str,
        body_excerpt: str = "",
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            UpstreamErrorKind.HTTP,
            message,
            status_code=status_code,
            body_excerpt=body_excerpt,
            operation=operation,
        )


class FatalReportError(OcsReportError):
    """The subscriber listing for an account could not be obtained."""

    def __init__(self, account_id: int, message: str) -> None:
        self.account_id = account_id
        super().__init__(f"account {account_id}: {message}")
