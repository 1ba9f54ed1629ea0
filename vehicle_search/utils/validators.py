"""
Input validators for the search pipeline
"""
from typing import Optional

from vehicle_search.errors import ValidationError

MIN_RESULTS = 1
MAX_RESULTS = 100


def validate_query(query: Optional[str]) -> str:
    """
    Validate the raw query text

    Args:
        query: Query text from the caller

    Returns:
        The stripped query

    Raises:
        ValidationError: If the query is missing or blank
    """
    if query is None:
        raise ValidationError("query is required")
    if not isinstance(query, str):
        raise ValidationError(f"query must be a string, got {type(query).__name__}")
    stripped = query.strip()
    if not stripped:
        raise ValidationError("query must not be blank")
    return stripped


def validate_session_id(session_id: Optional[str]) -> str:
    """Validate a session id, returning it stripped"""
    if session_id is None or not str(session_id).strip():
        raise ValidationError("session_id is required")
    return str(session_id).strip()


def validate_max_results(max_results: int) -> int:
    """
    Validate the requested result count

    Raises:
        ValidationError: If max_results is not an integer in [1, 100]
    """
    if isinstance(max_results, bool) or not isinstance(max_results, int):
        raise ValidationError(f"max_results must be an integer, got {max_results!r}")
    if not MIN_RESULTS <= max_results <= MAX_RESULTS:
        raise ValidationError(
            f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}, got {max_results}"
        )
    return max_results
