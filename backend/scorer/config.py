import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def parse_int(env_var: str, default: int, *, minimum: int = 0) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default

    if value < minimum:
        logger.warning("%s must be >= %d; defaulting to %d", env_var, minimum, default)
        return default

    return value


def parse_float(env_var: str, default: float, *, minimum: float = 0.0) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if value < minimum:
        logger.warning("%s cannot be below %.2f; defaulting to %.2f", env_var, minimum, default)
        return default

    return value


def parse_bool(env_var: str, default: bool = False) -> bool:
    raw_value = os.getenv(env_var)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

# Game rules
DEFAULT_MAX_SCORE = parse_int("DEFAULT_MAX_SCORE", 11, minimum=1)
WIN_BY_MARGIN = parse_int("WIN_BY_MARGIN", 2, minimum=1)
MAX_ADJUSTABLE_SCORE = parse_int("MAX_ADJUSTABLE_SCORE", 30, minimum=1)
HISTORY_LIMIT = parse_int("HISTORY_LIMIT", 20, minimum=1)
AUDIT_LOG_LIMIT = parse_int("AUDIT_LOG_LIMIT", 500, minimum=1)

# Tournament backend
MATCHES_ENDPOINT = os.getenv(
    "MATCHES_ENDPOINT", "https://api.tournament-system.com/matches"
)
SCORES_ENDPOINT = os.getenv("SCORES_ENDPOINT", "https://api.tournament-system.com/scores")
TOURNAMENT_API_TOKEN = os.getenv("TOURNAMENT_API_TOKEN")
SUBMISSION_TIMEOUT_SECONDS = parse_float("SUBMISSION_TIMEOUT_SECONDS", 10.0)
SUBMISSION_RETRY_ATTEMPTS = parse_int("SUBMISSION_RETRY_ATTEMPTS", 3, minimum=1)
DEFAULT_REFEREE_ID = os.getenv("DEFAULT_REFEREE_ID", "REF001")

# Demo fixtures instead of the tournament backend
DEMO_MODE = parse_bool("DEMO_MODE", default=False)
DEMO_SUCCESS_RATE = min(parse_float("DEMO_SUCCESS_RATE", 0.8), 1.0)

# Unset means the in-process store
REDIS_URL = os.getenv("REDIS_URL")
