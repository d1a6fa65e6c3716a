"""
Shared utility functions for parsing and data manipulation

Provides common helpers for:
- Environment parsing: parse_bool, parse_int, parse_float with fallback defaults
- Identifiers: slugs for habit names and hostnames, random session and completion ids
- Async utilities: Timeout wrappers, byte chunking

These utilities are used throughout Cadence for configuration parsing and adapter plumbing.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import Awaitable, Iterable
from typing import Any


def slugify_identifier(value: str) -> str:
    """Convert free text (habit names, hostnames) to a lowercase underscore id."""
    slug = re.sub(r"[^a-z0-9]+", "_", value.strip().lower())
    return slug.strip("_")


def new_identifier(prefix: str) -> str:
    """Random id such as ``session_3f9c0a1b2d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret env-style booleans."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int(value: str | None, default: int) -> int:
    """Best-effort int parser with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: str | None, default: float | None) -> float | None:
    """Best-effort float parser with fallback."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


async def await_with_timeout(awaitable: Awaitable[Any], timeout: float | None) -> Any:
    """Await a coroutine with an optional timeout."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


def chunk_bytes(data: bytes, size: int) -> Iterable[bytes]:
    """Yield fixed-size chunks from a byte buffer."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(data), size):
        end = min(start + size, len(data))
        yield data[start:end]
