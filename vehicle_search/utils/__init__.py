"""
Utility modules for the vehicle search pipeline
"""
from .supabase_client import get_supabase_client
from .validators import validate_query, validate_session_id, validate_max_results
from .parsing import parse_number, parse_year, parse_date
from .matching import constraint_matches, matching_group, matched_fields

__all__ = [
    "get_supabase_client",
    "validate_query",
    "validate_session_id",
    "validate_max_results",
    "parse_number",
    "parse_year",
    "parse_date",
    "constraint_matches",
    "matching_group",
    "matched_fields",
]
