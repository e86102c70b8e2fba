"""
Tests for src.utils module.

Covers:
    - utc_now(): timezone-aware UTC datetime
    - generate_id(): UUID4 string generation
    - ensure_utc(): naive/aware datetime UTC conversion
    - parse_timestamp(): Supabase timestamp parsing
    - snippet(): preview shortening
"""

from datetime import datetime, timezone, timedelta
from uuid import UUID

import pytest

from src.utils import utc_now, generate_id, ensure_utc, parse_timestamp, snippet


# ===========================================================================
# utc_now()
# ===========================================================================


def test_utc_now_returns_timezone_aware_utc():
    """utc_now() must return a datetime whose tzinfo is UTC."""
    result = utc_now()
    assert result.tzinfo is not None
    assert result.tzinfo == timezone.utc


def test_utc_now_returns_current_time():
    """utc_now() must return a time within 2 seconds of datetime.now(utc)."""
    before = datetime.now(timezone.utc)
    result = utc_now()
    after = datetime.now(timezone.utc)
    assert before <= result <= after
    assert (after - before) < timedelta(seconds=2)


# ===========================================================================
# generate_id()
# ===========================================================================


def test_generate_id_returns_valid_uuid4_string():
    """generate_id() must return a string that parses as a valid UUID4."""
    result = generate_id()
    assert isinstance(result, str)
    parsed = UUID(result)
    # UUID version 4
    assert parsed.version == 4


def test_generate_id_returns_unique_values():
    """Successive calls to generate_id() must produce distinct values."""
    ids = {generate_id() for _ in range(100)}
    assert len(ids) == 100


# ===========================================================================
# ensure_utc()
# ===========================================================================


def test_ensure_utc_naive_datetime_adds_utc():
    """A naive (tzinfo=None) datetime gets UTC attached via replace."""
    naive = datetime(2025, 6, 15, 12, 0, 0)
    assert naive.tzinfo is None

    result = ensure_utc(naive)

    assert result.tzinfo == timezone.utc
    # The date/time components must be unchanged (not shifted).
    assert result.year == 2025
    assert result.month == 6
    assert result.day == 15
    assert result.hour == 12
    assert result.minute == 0
    assert result.second == 0


def test_ensure_utc_already_utc_returns_same_value():
    """A UTC-aware datetime is returned unchanged."""
    aware = datetime(2025, 1, 1, 8, 30, 0, tzinfo=timezone.utc)
    result = ensure_utc(aware)
    assert result == aware
    assert result.tzinfo == timezone.utc


def test_ensure_utc_non_utc_aware_converts_to_utc():
    """A timezone-aware datetime in a non-UTC zone is converted to UTC."""
    # UTC+5
    plus_five = timezone(timedelta(hours=5))
    dt_plus5 = datetime(2025, 6, 15, 17, 0, 0, tzinfo=plus_five)

    result = ensure_utc(dt_plus5)

    assert result.tzinfo == timezone.utc
    # 17:00 UTC+5 == 12:00 UTC
    assert result.hour == 12
    assert result.day == 15

# ===========================================================================
# parse_timestamp()
# ===========================================================================


@pytest.mark.parametrize("value", [None, ""])
def test_parse_timestamp_empty_returns_none(value):
    assert parse_timestamp(value) is None


def test_parse_timestamp_z_suffix():
    """PostgREST's trailing ``Z`` form parses as UTC."""
    result = parse_timestamp("2025-06-15T12:00:00Z")
    assert result == datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def test_parse_timestamp_offset_converted_to_utc():
    result = parse_timestamp("2025-06-15T17:00:00+05:00")
    assert result.tzinfo == timezone.utc
    assert result.hour == 12


def test_parse_timestamp_naive_string_assumed_utc():
    assert parse_timestamp("2025-06-15T12:00:00").tzinfo == timezone.utc


def test_parse_timestamp_datetime_passthrough():
    aware = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp(aware) == aware


def test_parse_timestamp_invalid_raises():
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


# ===========================================================================
# snippet()
# ===========================================================================


def test_snippet_short_text_unchanged():
    assert snippet("short", 200) == "short"


def test_snippet_exact_limit_unchanged():
    assert snippet("a" * 200) == "a" * 200


def test_snippet_long_text_cut_with_ellipsis():
    assert snippet("abcdef", 3) == "abc..."
