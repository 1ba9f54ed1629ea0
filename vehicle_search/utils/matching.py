"""
Evaluate constraints against vehicle records

Shared by the in-memory catalog (filtering) and the coordinator
(highlighting which fields of a result satisfied the query).
"""
from datetime import date
from typing import Any, List, Optional, Sequence

from vehicle_search.models.constraints import (
    ConstraintGroup,
    ConstraintOperator,
    SearchConstraint,
)
from vehicle_search.models.vehicles import Vehicle


def field_value(vehicle: Vehicle, field_name: str) -> Any:
    """Read a field from a vehicle, None when the field does not exist"""
    return getattr(vehicle, field_name, None)


def _normalise(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _comparable(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return False
    if isinstance(left, date) and isinstance(right, date):
        return True
    return isinstance(left, (int, float)) and isinstance(right, (int, float))


def constraint_matches(vehicle: Vehicle, constraint: SearchConstraint) -> bool:
    """
    Check whether a vehicle satisfies one constraint

    String comparisons are case-insensitive. Contains on a list field checks
    membership; on a text field it checks for a substring.

    Args:
        vehicle: Vehicle record
        constraint: Constraint to evaluate

    Returns:
        True when the vehicle satisfies the constraint
    """
    actual = field_value(vehicle, constraint.field_name)
    expected = constraint.value
    operator = constraint.operator

    if actual is None:
        return operator == ConstraintOperator.NOT_EQUALS

    if operator == ConstraintOperator.CONTAINS:
        needle = _normalise(str(expected))
        if isinstance(actual, (list, tuple)):
            return any(_normalise(str(item)) == needle for item in actual)
        return needle in _normalise(str(actual))

    if operator in (ConstraintOperator.EQUALS, ConstraintOperator.NOT_EQUALS):
        if _comparable(actual, expected):
            equal = actual == expected
        else:
            equal = _normalise(str(actual)) == _normalise(str(expected))
        return equal if operator == ConstraintOperator.EQUALS else not equal

    if not _comparable(actual, expected):
        return False

    if operator == ConstraintOperator.LESS_THAN:
        return actual < expected
    if operator == ConstraintOperator.LESS_THAN_OR_EQUAL:
        return actual <= expected
    if operator == ConstraintOperator.GREATER_THAN:
        return actual > expected
    if operator == ConstraintOperator.GREATER_THAN_OR_EQUAL:
        return actual >= expected

    return False


def group_matches(vehicle: Vehicle, group: ConstraintGroup) -> bool:
    return all(constraint_matches(vehicle, c) for c in group.constraints)


def matching_group(vehicle: Vehicle, groups: Sequence[ConstraintGroup]) -> Optional[ConstraintGroup]:
    """The largest group the vehicle fully satisfies, if any"""
    matched = [group for group in groups if group_matches(vehicle, group)]
    if not matched:
        return None
    return max(matched, key=lambda group: len(group.constraints))


def matched_fields(vehicle: Vehicle, constraints: Sequence[SearchConstraint]) -> List[str]:
    """Distinct field names whose constraints the vehicle satisfies"""
    fields = []
    for constraint in constraints:
        if constraint.field_name not in fields and constraint_matches(vehicle, constraint):
            fields.append(constraint.field_name)
    return fields
