"""
Query Composer
Merges the current turn's constraints with inherited ones into one ComposedQuery

Order of operations:
1. Conflict scan over inherited + current, oldest first. When two constraints
   on a field cannot both hold, the older one is dropped and a warning is
   recorded.
2. Merge. A field the current turn constrains replaces every inherited
   constraint on that field; other inherited constraints carry forward.
   A model that none of the surviving makes builds is dropped.
3. Grouping. Alternative Equals values on one field ("BMW or Audi") become
   separate OR groups sharing the remaining constraints. Models go only into
   the groups of their own make.
"""
import itertools
import re
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

from vehicle_search.models import (
    ComposedQuery,
    ConstraintGroup,
    ConstraintKind,
    ConstraintOperator,
    FilterExpression,
    QueryType,
    SearchConstraint,
)
from vehicle_search.models.vehicle_catalogue import make_for_model

logger = logging.getLogger(__name__)

INHERITED = "inherited"
CURRENT = "current"

MAKE_FIELD = "make"
MODEL_FIELD = "model"

DISJUNCTION_PATTERN = re.compile(r"\bor\b", re.IGNORECASE)


def _comparable(left, right) -> bool:
    if isinstance(left, str) or isinstance(right, str):
        return False
    return isinstance(left, date) == isinstance(right, date)


def _same_value(left, right) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left.strip().lower() == right.strip().lower()
    return left == right


def _satisfies_bound(value, bound: SearchConstraint) -> bool:
    if bound.operator == ConstraintOperator.LESS_THAN:
        return value < bound.value
    if bound.operator == ConstraintOperator.LESS_THAN_OR_EQUAL:
        return value <= bound.value
    if bound.operator == ConstraintOperator.GREATER_THAN:
        return value > bound.value
    return value >= bound.value


def are_unsatisfiable(first: SearchConstraint, second: SearchConstraint) -> bool:
    """
    Check whether two constraints on the same field can never both hold

    Args:
        first: Earlier constraint
        second: Later constraint

    Returns:
        True for disjoint ranges, an Equals outside a bound, two different
        Equals values, or Equals and NotEquals of the same value
    """
    if first.field_name != second.field_name:
        return False

    operators = {first.operator, second.operator}
    if ConstraintOperator.CONTAINS in operators:
        return False

    if first.operator == second.operator == ConstraintOperator.EQUALS:
        return not _same_value(first.value, second.value)

    if operators == {ConstraintOperator.EQUALS, ConstraintOperator.NOT_EQUALS}:
        return _same_value(first.value, second.value)

    if ConstraintOperator.NOT_EQUALS in operators:
        return False

    if not _comparable(first.value, second.value):
        return False

    if ConstraintOperator.EQUALS in operators:
        equals, bound = (first, second) if first.operator == ConstraintOperator.EQUALS else (second, first)
        return not _satisfies_bound(equals.value, bound)

    if first.is_lower_bound == second.is_lower_bound:
        return False

    lower, upper = (first, second) if first.is_lower_bound else (second, first)
    if lower.value > upper.value:
        return True
    if lower.value == upper.value and (lower.is_strict or upper.is_strict):
        return True
    return False


def alternative_fields(constraints: Sequence[SearchConstraint]) -> Set[str]:
    """Fields carrying two or more distinct Equals values"""
    values: Dict[str, List] = {}
    for constraint in constraints:
        if constraint.operator != ConstraintOperator.EQUALS:
            continue
        seen = values.setdefault(constraint.field_name, [])
        if not any(_same_value(v, constraint.value) for v in seen):
            seen.append(constraint.value)
    return {field for field, seen in values.items() if len(seen) > 1}


def resolve_conflicts(
    current: Sequence[SearchConstraint],
    inherited: Sequence[SearchConstraint],
    raw_text: Optional[str]
) -> Tuple[List[Tuple[SearchConstraint, str]], List[str], Dict[str, Set[str]]]:
    """
    Drop the older constraint of every unsatisfiable pair

    Equals values that are alternatives of one another are not conflicts:
    inherited alternatives survived an earlier composition, and current ones
    are alternatives when the text says "or".

    Returns:
        (surviving (constraint, source) pairs in order, warnings, alternative
        fields by source)
    """
    alternatives = {
        INHERITED: alternative_fields(inherited),
        CURRENT: alternative_fields(current) if raw_text and DISJUNCTION_PATTERN.search(raw_text) else set(),
    }

    kept: List[Tuple[SearchConstraint, str]] = []
    warnings: List[str] = []

    ordered = [(c, INHERITED) for c in inherited] + [(c, CURRENT) for c in current]
    for constraint, source in ordered:
        survivors = []
        for prior, prior_source in kept:
            if prior == constraint:
                continue
            is_alternative = (
                prior_source == source
                and constraint.field_name in alternatives[source]
                and prior.operator == constraint.operator == ConstraintOperator.EQUALS
            )
            if not is_alternative and are_unsatisfiable(prior, constraint):
                message = (
                    f"Conflicting constraints on {constraint.field_name}: "
                    f"'{prior.describe()}' replaced by '{constraint.describe()}'"
                )
                logger.info(message)
                warnings.append(message)
                continue
            survivors.append((prior, prior_source))
        kept = survivors + [(constraint, source)]

    return kept, warnings, alternatives


def merge_constraints(kept: Sequence[Tuple[SearchConstraint, str]]) -> List[SearchConstraint]:
    """Last explicit wins: current-turn fields replace inherited ones"""
    current_fields = {c.field_name for c, source in kept if source == CURRENT}
    return [
        c for c, source in kept
        if source == CURRENT or c.field_name not in current_fields
    ]


def _is_equals(constraint: SearchConstraint, field_name: str) -> bool:
    return constraint.field_name == field_name and constraint.operator == ConstraintOperator.EQUALS


def drop_orphan_models(constraints: Sequence[SearchConstraint]) -> Tuple[List[SearchConstraint], List[str]]:
    """
    Drop model constraints built by none of the required makes

    A model left over from a make that was replaced ("3 Series" once the make
    became Audi) can never match. Models missing from the catalogue are kept.

    Returns:
        (surviving constraints, warnings)
    """
    makes = [c.value for c in constraints if _is_equals(c, MAKE_FIELD)]
    if not makes:
        return list(constraints), []

    kept: List[SearchConstraint] = []
    warnings: List[str] = []
    for constraint in constraints:
        owner = make_for_model(constraint.value) if _is_equals(constraint, MODEL_FIELD) else None
        if owner is not None and not any(_same_value(owner, make) for make in makes):
            message = (
                f"Conflicting constraints on model: '{constraint.describe()}' is a {owner} model, "
                f"not {' or '.join(str(make) for make in makes)}"
            )
            logger.info(message)
            warnings.append(message)
            continue
        kept.append(constraint)
    return kept, warnings


def build_groups(constraints: Sequence[SearchConstraint], alternatives: Set[str]) -> Tuple[ConstraintGroup, ...]:
    """
    Split alternative Equals values into OR groups

    When makes are alternatives, each model goes only into the groups of the
    make that builds it: "BMW 3 Series or Audi A4" gives BMW + 3 Series and
    Audi + A4. A make with several alternative models gets one group per model.

    Args:
        constraints: Merged constraints
        alternatives: Fields whose Equals values are alternatives

    Returns:
        Constraint groups (empty when there are no constraints)
    """
    if not constraints:
        return ()

    split_fields = [
        field for field in alternative_fields(constraints) if field in alternatives
    ]
    if not split_fields:
        return (ConstraintGroup(constraints=tuple(constraints)),)

    # Catalogue models follow their make instead of forming their own choice
    dependents: List[SearchConstraint] = []
    if MAKE_FIELD in split_fields:
        dependents = [
            c for c in constraints
            if _is_equals(c, MODEL_FIELD) and make_for_model(c.value) is not None
        ]

    def is_choice(constraint: SearchConstraint) -> bool:
        return constraint.field_name in split_fields and constraint.operator == ConstraintOperator.EQUALS

    shared = [c for c in constraints if not is_choice(c) and c not in dependents]
    choices = [
        [c for c in constraints if c.field_name == field and is_choice(c) and c not in dependents]
        for field in split_fields
    ]
    choices = [options for options in choices if options]

    groups = []
    for combination in itertools.product(*choices):
        base = tuple(shared) + tuple(combination)
        make = next((c.value for c in combination if _is_equals(c, MAKE_FIELD)), None)
        own = [d for d in dependents if make is not None and _same_value(make_for_model(d.value), make)]
        if not own:
            groups.append(ConstraintGroup(constraints=base))
            continue
        for model in own:
            groups.append(ConstraintGroup(constraints=base + (model,)))
    return tuple(groups)


def classify_query(groups: Sequence[ConstraintGroup]) -> QueryType:
    if not groups:
        return QueryType.SIMPLE
    if len(groups) > 1:
        return QueryType.COMPLEX
    if any(c.kind == ConstraintKind.SEMANTIC for group in groups for c in group.constraints):
        return QueryType.COMPLEX
    return QueryType.FILTERED


def compose_query(
    current: Sequence[SearchConstraint],
    inherited: Sequence[SearchConstraint] = (),
    raw_text: Optional[str] = None
) -> ComposedQuery:
    """
    Compose one turn's query

    Never raises for contradictory input: conflicts are resolved in favour
    of the more recent constraint and reported through has_conflicts and
    warnings.

    Args:
        current: Constraints from the current turn, explicit then synthesized
        inherited: Constraints inherited from the previous turn
        raw_text: Current turn's raw text

    Returns:
        ComposedQuery
    """
    current = list(current or ())
    inherited = list(inherited or ())

    kept, warnings, alternatives = resolve_conflicts(current, inherited, raw_text)
    merged, orphan_warnings = drop_orphan_models(merge_constraints(kept))
    warnings = warnings + orphan_warnings

    split_on = alternatives[CURRENT] | {
        field for field in alternatives[INHERITED]
        if not any(c.field_name == field for c in current)
    }
    groups = build_groups(merged, split_on)
    query_type = classify_query(groups)

    text = raw_text.strip() if raw_text else None

    composed = ComposedQuery(
        query_type=query_type,
        groups=groups,
        raw_text=text or None,
        has_conflicts=bool(warnings),
        warnings=tuple(warnings),
    )

    logger.debug(
        f"Composed {query_type.value} query: {len(groups)} groups, "
        f"{len(merged)} constraints, conflicts={composed.has_conflicts}"
    )

    return composed


def to_filter_expression(query: ComposedQuery) -> FilterExpression:
    """
    The Exact/Range part of a composed query

    Semantic constraints are removed; groups left empty by that are dropped
    and duplicate groups collapse.
    """
    groups = []
    for group in query.groups:
        filters = tuple(c for c in group.constraints if c.is_filter)
        if filters:
            filtered = ConstraintGroup(constraints=filters)
            if filtered not in groups:
                groups.append(filtered)
    return FilterExpression(groups=tuple(groups))
