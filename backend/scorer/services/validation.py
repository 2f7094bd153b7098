from typing import Any, Dict, List, Optional

from ..config import MAX_ADJUSTABLE_SCORE

SIDES = ("left", "right")
SERVER_NUMBERS = (1, 2)


class ValidationError(Exception):
    """Raised when a manual score adjustment is invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def _as_int(raw: Any, label: str) -> int:
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(raw, bool):
        raise ValidationError(f"{label} must be an integer (not a boolean).")
    if isinstance(raw, float) and not raw.is_integer():
        raise ValidationError(f"{label} must be a whole number.")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be an integer.")


def validate_score(
    raw: Any,
    label: str,
    *,
    min_value: int = 0,
    max_value: int = MAX_ADJUSTABLE_SCORE,
) -> int:
    value = _as_int(raw, label)
    if value < min_value or value > max_value:
        raise ValidationError(
            f"{label} must be between {min_value} and {max_value}."
        )
    return value


def validate_server_number(raw: Any, label: str) -> int:
    value = _as_int(raw, label)
    if value not in SERVER_NUMBERS:
        raise ValidationError(f"{label} must be 1 or 2.")
    return value


def validate_score_adjustment(
    left_score: Any,
    right_score: Any,
    serving_team: Any,
    server_number: Any,
    active_server: Any = None,
    *,
    max_score: int = MAX_ADJUSTABLE_SCORE,
) -> Dict[str, Optional[int] | str]:
    """Validate and normalize a referee's manual score correction.

    Rules:
    - Both scores are integers in ``[0, max_score]`` (booleans are rejected)
    - ``serving_team`` is ``"left"`` or ``"right"``
    - ``server_number`` (and ``active_server`` when given) is 1 or 2
    """

    left = validate_score(left_score, "Left score", max_value=max_score)
    right = validate_score(right_score, "Right score", max_value=max_score)

    if serving_team not in SIDES:
        raise ValidationError("Serving team must be 'left' or 'right'.")

    display = validate_server_number(server_number, "Server number")
    active = (
        None
        if active_server is None
        else validate_server_number(active_server, "Active server")
    )

    return {
        "left_score": left,
        "right_score": right,
        "serving_team": serving_team,
        "server_number": display,
        "active_server": active,
    }


ROSTER_SIZES = {"singles": 1, "doubles": 2}


def validate_roster(game_mode: str, side_players: Dict[str, List[str]]) -> None:
    """Check a loaded match has exactly the players its game mode needs per side."""

    expected = ROSTER_SIZES.get(game_mode)
    if expected is None:
        raise ValidationError(f"Unsupported game mode '{game_mode}'.")

    if len(side_players) != 2:
        raise ValidationError("Pickleball matches require exactly 2 sides.")

    for side, players in side_players.items():
        if len(players) != expected:
            raise ValidationError(
                f"{game_mode.title()} matches require exactly {expected}"
                f" player(s) per side (side {side} has {len(players)})."
            )
        if len(set(players)) != len(players):
            raise ValidationError(f"Side {side} lists the same player twice.")
