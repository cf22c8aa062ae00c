from datetime import datetime

import pytest

from utils.time import parse_played_at
from utils.validation import (
    ValidationError,
    parse_optional_positive_int,
    sanitize_string,
    validate_email,
    validate_username,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2024-05-01T19:30", datetime(2024, 5, 1, 19, 30)),
        ("2024-05-01T19:30:00Z", datetime(2024, 5, 1, 19, 30)),
        ("2024-05-01T21:30:00+02:00", datetime(2024, 5, 1, 19, 30)),
        ("2024-05-01", datetime(2024, 5, 1)),
        ("05/01/2024", datetime(2024, 5, 1)),
        ("2024/05/01", datetime(2024, 5, 1)),
    ],
)
def test_parse_played_at_formats(raw, expected):
    assert parse_played_at(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "yesterday", "2024-13-45"])
def test_parse_played_at_rejects(raw):
    assert parse_played_at(raw) is None


def test_sanitize_string_strips_control_characters():
    assert sanitize_string("  Kitchen\x00 table \x07") == "Kitchen table"
    assert sanitize_string("Kitchen table", max_length=7) == "Kitchen"
    assert sanitize_string(None) == ""


def test_username_and_email_rules():
    assert validate_username("deck_master-1")
    assert not validate_username("ab")
    assert not validate_username("has space")
    assert validate_email("player@example.com")
    assert not validate_email("not-an-email")


def test_optional_int_parsing():
    assert parse_optional_positive_int("") is None
    assert parse_optional_positive_int("7") == 7
    with pytest.raises(ValidationError):
        parse_optional_positive_int("0")
    with pytest.raises(ValidationError):
        parse_optional_positive_int("abc", field="deck")
