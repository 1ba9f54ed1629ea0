"""
Constraint models shared across the search pipeline

A ComposedQuery is a disjunction of ConstraintGroups; each group is a
conjunction of SearchConstraints. All models are frozen so that a turn's
snapshot can be handed between sessions and requests without copying.
"""
from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional, Tuple, Union
from datetime import date
from enum import Enum


class ConstraintOperator(str, Enum):
    """Comparison operators, named after their filter-expression tokens"""
    EQUALS = "eq"
    NOT_EQUALS = "ne"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "le"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "ge"
    CONTAINS = "contains"


class ConstraintKind(str, Enum):
    """How a constraint is evaluated"""
    EXACT = "exact"
    RANGE = "range"
    SEMANTIC = "semantic"


class QueryType(str, Enum):
    """Shape of a composed query"""
    SIMPLE = "simple"
    FILTERED = "filtered"
    COMPLEX = "complex"


class StrategyType(str, Enum):
    """Retrieval strategy chosen for a composed query"""
    EXACT_ONLY = "exact_only"
    SEMANTIC_ONLY = "semantic_only"
    HYBRID = "hybrid"


class SearchApproach(str, Enum):
    """Retrieval backends a strategy can use"""
    EXACT_MATCH = "exact_match"
    SEMANTIC_SEARCH = "semantic_search"


LOWER_BOUND_OPERATORS = (
    ConstraintOperator.GREATER_THAN,
    ConstraintOperator.GREATER_THAN_OR_EQUAL,
)
UPPER_BOUND_OPERATORS = (
    ConstraintOperator.LESS_THAN,
    ConstraintOperator.LESS_THAN_OR_EQUAL,
)
STRICT_OPERATORS = (
    ConstraintOperator.LESS_THAN,
    ConstraintOperator.GREATER_THAN,
)

ConstraintValue = Union[float, date, str]


class SearchConstraint(BaseModel):
    """A single typed condition on one vehicle field"""

    field_name: str = Field(..., min_length=1, description="Vehicle field the condition applies to")
    operator: ConstraintOperator
    value: ConstraintValue
    kind: ConstraintKind

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "field_name": "price",
                "operator": "le",
                "value": 20000,
                "kind": "range"
            }
        }

    @model_validator(mode="after")
    def check_kind_invariants(self):
        if self.kind == ConstraintKind.RANGE:
            if isinstance(self.value, str):
                raise ValueError(f"Range constraint on {self.field_name} needs a numeric or date value")
            if self.operator not in LOWER_BOUND_OPERATORS + UPPER_BOUND_OPERATORS:
                raise ValueError(f"Range constraint on {self.field_name} needs an ordered comparison")
        elif self.kind == ConstraintKind.SEMANTIC:
            if not isinstance(self.value, str):
                raise ValueError(f"Semantic constraint on {self.field_name} needs free text")
            if self.operator != ConstraintOperator.CONTAINS:
                raise ValueError(f"Semantic constraint on {self.field_name} must use contains")
        return self

    @property
    def is_lower_bound(self) -> bool:
        return self.operator in LOWER_BOUND_OPERATORS

    @property
    def is_upper_bound(self) -> bool:
        return self.operator in UPPER_BOUND_OPERATORS

    @property
    def is_strict(self) -> bool:
        return self.operator in STRICT_OPERATORS

    @property
    def is_filter(self) -> bool:
        """Exact and Range constraints are evaluated by the exact backend"""
        return self.kind != ConstraintKind.SEMANTIC

    def describe(self) -> str:
        return f"{self.field_name} {self.operator.value} {format_value(self.value)}"


class ConstraintGroup(BaseModel):
    """Constraints combined with AND semantics"""

    constraints: Tuple[SearchConstraint, ...] = ()

    class Config:
        frozen = True

    def fields(self) -> List[str]:
        return list(dict.fromkeys(c.field_name for c in self.constraints))


class ComposedQuery(BaseModel):
    """One turn's complete query: groups combined with OR semantics"""

    query_type: QueryType
    groups: Tuple[ConstraintGroup, ...] = ()
    raw_text: Optional[str] = None
    has_conflicts: bool = False
    warnings: Tuple[str, ...] = ()

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_groups_not_empty(self):
        if any(not group.constraints for group in self.groups):
            raise ValueError("A composed query cannot carry an empty constraint group")
        return self

    def constraints(self) -> Tuple[SearchConstraint, ...]:
        """Distinct constraints across all groups, in first-seen order"""
        return tuple(dict.fromkeys(c for group in self.groups for c in group.constraints))

    def semantic_constraints(self) -> Tuple[SearchConstraint, ...]:
        return tuple(c for c in self.constraints() if c.kind == ConstraintKind.SEMANTIC)


class FilterExpression(BaseModel):
    """
    The Exact/Range part of a composed query, handed to the exact backend

    Rendered with str() as an OData-style filter:
        make eq 'BMW' and price le 20000
    """

    groups: Tuple[ConstraintGroup, ...] = ()

    class Config:
        frozen = True

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def constraint_count(self) -> int:
        """Size of the largest group"""
        return max((len(group.constraints) for group in self.groups), default=0)

    def constraints(self) -> Tuple[SearchConstraint, ...]:
        return tuple(dict.fromkeys(c for group in self.groups for c in group.constraints))

    def __str__(self) -> str:
        rendered = [render_group(group) for group in self.groups]
        if len(rendered) == 1:
            return rendered[0]
        return " or ".join(f"({clause})" for clause in rendered)


class SearchStrategy(BaseModel):
    """Which backends to run and how to weight them"""

    type: StrategyType
    approaches: Tuple[SearchApproach, ...]
    weights: Dict[SearchApproach, float]
    should_rerank: bool = False

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "type": "hybrid",
                "approaches": ["exact_match", "semantic_search"],
                "weights": {"exact_match": 0.3, "semantic_search": 0.7},
                "should_rerank": True
            }
        }

    def weight(self, approach: SearchApproach) -> float:
        return self.weights.get(approach, 0.0)


def format_value(value: ConstraintValue) -> str:
    """Render a constraint value as a filter-expression literal"""
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    if isinstance(value, date):
        return value.isoformat()
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def render_constraint(constraint: SearchConstraint) -> str:
    if constraint.operator == ConstraintOperator.CONTAINS:
        return f"contains({constraint.field_name}, {format_value(constraint.value)})"
    return constraint.describe()


def render_group(group: ConstraintGroup) -> str:
    return " and ".join(render_constraint(c) for c in group.constraints)
