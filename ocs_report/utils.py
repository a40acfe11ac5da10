"""Utilities: bounded fan-out, path lookup, numeric coercion."""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar, Union

T = TypeVar("T")

GIB = 1024 ** 3


async def gather_bounded(
    factories: Iterable[Callable[[], Awaitable[T]]],
    limit: int,
) -> List[Union[T, BaseException]]:
    """Run coroutine factories with at most ``limit`` in flight.

    Results come back in input order. A factory that raises yields its
    exception in place of a result; it never cancels its siblings.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    semaphore = asyncio.Semaphore(limit)

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    return await asyncio.gather(*(_run(f) for f in factories), return_exceptions=True)


def dig(obj: Any, path: Union[str, Sequence[Union[str, int]]]) -> Any:
    """Walk a dotted path (``"a.b.0.c"``) through dicts and lists.

    Returns None as soon as a step is missing.
    """
    parts = path.split(".") if isinstance(path, str) else list(path)
    cur = obj
    for part in parts:
        if isinstance(cur, dict):
            cur = cur.get(part)
        elif isinstance(cur, list):
            try:
                cur = cur[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            return None
        if cur is None:
            return None
    return cur


def first_present(obj: Any, keys: Sequence[str]) -> Any:
    """Value of the first key in ``keys`` that ``obj`` carries (not None)."""
    if not isinstance(obj, dict):
        return None
    for key in keys:
        val = obj.get(key)
        if val is not None:
            return val
    return None


def to_number(value: Any) -> Optional[float]:
    """Coerce an upstream value to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an upstream timestamp; None when missing or unparseable."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip().replace(" ", "T", 1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # Naive stamps are UTC upstream.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def excerpt(text: str, limit: int = 300) -> str:
    return text[:limit] if text else ""


def bytes_to_gb(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value / GIB, 2)
