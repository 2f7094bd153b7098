import pytest

from scorer.services.validation import (
    ValidationError,
    validate_roster,
    validate_score,
    validate_score_adjustment,
)


def test_accepts_valid_adjustment() -> None:
    values = validate_score_adjustment(5, "3", "left", 1, 2)
    assert values == {
        "left_score": 5,
        "right_score": 3,
        "serving_team": "left",
        "server_number": 1,
        "active_server": 2,
    }


def test_active_server_is_optional() -> None:
    assert validate_score_adjustment(0, 30, "right", 2)["active_server"] is None


@pytest.mark.parametrize(
    "args, msg",
    [
        ((-1, 0, "left", 1), "between 0 and 30"),    # negative
        ((0, 31, "left", 1), "between 0 and 30"),    # above limit
        (("x", 0, "left", 1), "integer"),            # non-integer
        ((True, 0, "left", 1), "not a boolean"),     # bool
        ((1.5, 0, "left", 1), "whole number"),       # fractional
        ((None, 0, "left", 1), "integer"),           # missing
        ((1, 0, "centre", 1), "serving team"),       # bad team
        ((1, 0, "left", 0), "1 or 2"),               # bad server number
        ((1, 0, "left", 1, 3), "1 or 2"),            # bad active server
    ],
    ids=[
        "negative",
        "too-high",
        "non-integer",
        "bool",
        "fraction",
        "none",
        "bad-team",
        "bad-server",
        "bad-active-server",
    ],
)
def test_rejects_invalid_adjustments(args, msg) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_score_adjustment(*args)
    assert msg.lower() in str(exc.value).lower()


def test_score_limit_is_configurable() -> None:
    assert validate_score(21, "Score", max_value=21) == 21
    with pytest.raises(ValidationError):
        validate_score(22, "Score", max_value=21)


def test_accepts_complete_rosters() -> None:
    validate_roster("singles", {"A": ["John"], "B": ["Sarah"]})
    validate_roster("doubles", {"A": ["Mike", "Lisa"], "B": ["David", "Emma"]})


@pytest.mark.parametrize(
    "mode, sides, msg",
    [
        ("doubles", {"A": ["Mike"], "B": ["David", "Emma"]}, "exactly 2"),
        ("singles", {"A": ["John", "Jo"], "B": ["Sarah"]}, "exactly 1"),
        ("singles", {"A": ["John"]}, "2 sides"),
        ("doubles", {"A": ["Mike", "Mike"], "B": ["David", "Emma"]}, "same player"),
        ("triples", {"A": ["x"], "B": ["y"]}, "unsupported"),
    ],
    ids=["short-doubles", "crowded-singles", "one-side", "duplicate", "bad-mode"],
)
def test_rejects_invalid_rosters(mode, sides, msg) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_roster(mode, sides)
    assert msg.lower() in str(exc.value).lower()
