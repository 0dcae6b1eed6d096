"""
Query descriptor types.

A ``QueryDescriptor`` is a store-independent description of a select: an
ordered list of clauses that must all hold, sort keys and an optional
inclusive row window. The in-memory store evaluates clauses directly with
``matches``; the Postgres store compiles them to SQL.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
import re


OPERATORS = frozenset({"eq", "neq", "in", "gt", "gte", "lt", "lte", "ilike", "is_null"})


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce(row_value: Any, target: Any) -> Any:
    """Coerce a stored value so it compares against ``target``."""
    if row_value is None:
        return None
    if isinstance(target, datetime) and isinstance(row_value, str):
        return parse_timestamp(row_value)
    if isinstance(target, (int, float)) and not isinstance(target, bool):
        if isinstance(row_value, str):
            try:
                return float(row_value)
            except ValueError:
                return row_value
    if isinstance(target, str) and isinstance(row_value, datetime):
        return row_value.isoformat()
    return row_value


def _like_to_regex(pattern: str) -> "re.Pattern":
    """Translate an ILIKE pattern: ``%`` and ``_`` are wildcards, backslash escapes."""
    regex = []
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            regex.append(re.escape(next(chars, "\\")))
        elif char == "%":
            regex.append(".*")
        elif char == "_":
            regex.append(".")
        else:
            regex.append(re.escape(char))
    return re.compile("^" + "".join(regex) + "$", re.IGNORECASE | re.DOTALL)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")



@dataclass(frozen=True)
class Predicate:
    """A single column comparison.

    Attributes:
        column: Column name
        op: One of ``OPERATORS``
        value: Comparison value (a tuple for "in", a bool for "is_null")
    """
    column: str
    op: str
    value: Any = None

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def matches(self, row: Dict[str, Any]) -> bool:
        raw = row.get(self.column)

        if self.op == "is_null":
            return (raw is None) == bool(self.value)
        if self.op == "in":
            return any(_coerce(raw, v) == v for v in self.value)
        if self.op == "ilike":
            return raw is not None and bool(_like_to_regex(self.value).match(str(raw)))

        value = _coerce(raw, self.value)
        if self.op == "eq":
            return value == self.value
        if self.op == "neq":
            return value != self.value
        if value is None:
            return False
        try:
            if self.op == "gt":
                return value > self.value
            if self.op == "gte":
                return value >= self.value
            if self.op == "lt":
                return value < self.value
            return value <= self.value
        except TypeError:
            return False


@dataclass(frozen=True)
class AllOf:
    """Conjunction of clauses."""
    clauses: Tuple["Clause", ...]

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(clause.matches(row) for clause in self.clauses)


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of clauses."""
    clauses: Tuple["Clause", ...]

    def matches(self, row: Dict[str, Any]) -> bool:
        return any(clause.matches(row) for clause in self.clauses)


Clause = Union[Predicate, AllOf, AnyOf]


def eq(column: str, value: Any) -> Predicate:
    return Predicate(column, "eq", value)


def is_in(column: str, values) -> Predicate:
    return Predicate(column, "in", tuple(values))


@dataclass(frozen=True)
class SortConfig:
    """Sort key: a column and direction."""
    field: str = "created_at"
    ascending: bool = False


@dataclass(frozen=True)
class PageRange:
    """Inclusive row window, as used by range-based pagination."""
    start: int
    end: int


@dataclass(frozen=True)
class QueryDescriptor:
    """Store-independent select description."""
    predicates: Tuple[Clause, ...] = ()
    sort: Tuple[SortConfig, ...] = ()
    page_range: Optional[PageRange] = None
    limit: Optional[int] = None

    def where(self, *clauses: Clause) -> "QueryDescriptor":
        return replace(self, predicates=self.predicates + tuple(clauses))

    def order_by(self, field_name: str, ascending: bool = False) -> "QueryDescriptor":
        return replace(self, sort=self.sort + (SortConfig(field_name, ascending),))

    def with_range(self, page_range: Optional[PageRange]) -> "QueryDescriptor":
        return replace(self, page_range=page_range)

    def with_limit(self, limit: int) -> "QueryDescriptor":
        return replace(self, limit=limit)

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(clause.matches(row) for clause in self.predicates)

    def columns(self) -> List[str]:
        """Every column referenced by the predicates and sort keys."""
        found: List[str] = []

        def walk(clause: Clause) -> None:
            if isinstance(clause, Predicate):
                found.append(clause.column)
            else:
                for inner in clause.clauses:
                    walk(inner)

        for clause in self.predicates:
            walk(clause)
        found.extend(sort.field for sort in self.sort)
        return found
