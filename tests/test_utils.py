"""Tests for shared parsing helpers (cadence/utils.py)."""

from __future__ import annotations

import asyncio

import pytest
from cadence.utils import (
    await_with_timeout,
    chunk_bytes,
    new_identifier,
    parse_bool,
    parse_float,
    parse_int,
    slugify_identifier,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("Daily Habit", "daily_habit"), ("  Evening   Walk! ", "evening_walk"), ("kitchen-pi.local", "kitchen_pi_local")],
)
def test_slugify_identifier(value, expected):
    assert slugify_identifier(value) == expected


def test_new_identifier_is_prefixed_and_unique():
    first = new_identifier("session")
    second = new_identifier("session")
    assert first.startswith("session_")
    assert len(first) == len("session_") + 12
    assert first != second


@pytest.mark.parametrize(("value", "expected"), [("1", True), ("Yes", True), (" on ", True), ("no", False), ("", False)])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_parse_bool_default():
    assert parse_bool(None, True) is True


def test_parse_int():
    assert parse_int("42", 0) == 42
    assert parse_int("4.2", 7) == 7
    assert parse_int(None, 3) == 3


def test_parse_float():
    assert parse_float("2.5", 0.0) == 2.5
    assert parse_float("fast", 1.0) == 1.0
    assert parse_float(None, None) is None


def test_chunk_bytes():
    assert list(chunk_bytes(b"abcdefg", 3)) == [b"abc", b"def", b"g"]
    assert list(chunk_bytes(b"", 3)) == []


def test_chunk_bytes_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(chunk_bytes(b"abc", 0))


@pytest.mark.anyio
async def test_await_with_timeout():
    async def value():
        return 5

    assert await await_with_timeout(value(), None) == 5
    assert await await_with_timeout(value(), 1.0) == 5
    with pytest.raises(TimeoutError):
        await await_with_timeout(asyncio.sleep(1), 0.01)
