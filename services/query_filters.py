"""
Typed query expressions for repository listings.

Each filter class maps to exactly one Firestore operator and checks its value
on construction, so a malformed clause fails before any query is sent.
A list of filters is a conjunction.

    where("Status", "==", "Pending")
    where("amount", ">=", 1000)
    where("tags", "array_contains", "vip")
    OrderBy("updatedAt", "desc")
"""
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple, Union

from google.cloud.firestore import FieldFilter, Query

# Firestore caps disjunctive clauses
MAX_IN_VALUES = 30
MAX_NOT_IN_VALUES = 10

RANGE_OPERATORS = ("<", "<=", ">", ">=")


def _require_field(field: str) -> None:
    if not isinstance(field, str) or not field.strip():
        raise ValueError("Filter field must be a non-empty string")


def _require_list(op: str, value: Any, limit: int) -> list:
    if isinstance(value, (str, bytes, dict)) or not isinstance(value, Iterable):
        raise ValueError(f"Operator '{op}' requires a list of values, got {type(value).__name__}")
    values = list(value)
    if not values:
        raise ValueError(f"Operator '{op}' requires at least one value")
    if len(values) > limit:
        raise ValueError(f"Operator '{op}' accepts at most {limit} values, got {len(values)}")
    return values


@dataclass(frozen=True)
class QueryFilter:
    field: str
    value: Any

    op = ""

    def __post_init__(self):
        _require_field(self.field)

    def to_field_filter(self) -> FieldFilter:
        return FieldFilter(self.field, self.op, self.value)


@dataclass(frozen=True)
class Equals(QueryFilter):
    op = "=="


@dataclass(frozen=True)
class NotEquals(QueryFilter):
    op = "!="


@dataclass(frozen=True)
class Range(QueryFilter):
    """Ordered comparison: <, <=, > or >="""
    operator: str = ">="

    def __post_init__(self):
        super().__post_init__()
        if self.operator not in RANGE_OPERATORS:
            raise ValueError(f"Unsupported range operator: {self.operator}")
        if self.value is None or isinstance(self.value, (list, tuple, set, dict)):
            raise ValueError(f"Range filter on '{self.field}' needs a scalar value")

    @property
    def op(self) -> str:
        return self.operator


@dataclass(frozen=True)
class ArrayContains(QueryFilter):
    op = "array_contains"

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.value, (list, tuple, set)):
            raise ValueError("array_contains takes a single element; use array_contains_any for several")


@dataclass(frozen=True)
class ArrayContainsAny(QueryFilter):
    op = "array_contains_any"

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "value", _require_list(self.op, self.value, MAX_IN_VALUES))


@dataclass(frozen=True)
class In(QueryFilter):
    op = "in"

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "value", _require_list(self.op, self.value, MAX_IN_VALUES))


@dataclass(frozen=True)
class NotIn(QueryFilter):
    op = "not-in"

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "value", _require_list(self.op, self.value, MAX_NOT_IN_VALUES))


_OPERATORS = {
    "==": Equals,
    "!=": NotEquals,
    "array_contains": ArrayContains,
    "array-contains": ArrayContains,
    "array_contains_any": ArrayContainsAny,
    "array-contains-any": ArrayContainsAny,
    "in": In,
    "not-in": NotIn,
    "not_in": NotIn,
}


def where(field: str, op: str, value: Any) -> QueryFilter:
    """Build the filter for a Firestore-style (field, operator, value) clause"""
    if op in RANGE_OPERATORS:
        return Range(field, value, op)
    filter_cls = _OPERATORS.get(op)
    if filter_cls is None:
        raise ValueError(f"Unsupported filter operator: {op}")
    return filter_cls(field, value)


FilterLike = Union[QueryFilter, Tuple[str, str, Any], List[Any]]


def as_filter(item: FilterLike) -> QueryFilter:
    if isinstance(item, QueryFilter):
        return item
    if isinstance(item, (tuple, list)) and len(item) == 3:
        return where(*item)
    raise ValueError(f"Cannot interpret {item!r} as a query filter")


def validate_filters(filters: Sequence[FilterLike]) -> List[QueryFilter]:
    """Normalise a conjunction and reject combinations Firestore refuses"""
    result = [as_filter(item) for item in filters or []]

    array_clauses = [f for f in result if isinstance(f, (ArrayContains, ArrayContainsAny))]
    if len(array_clauses) > 1:
        raise ValueError("A query supports at most one array_contains or array_contains_any clause")

    disjunctions = 1
    for clause in result:
        if isinstance(clause, (In, ArrayContainsAny)):
            disjunctions *= len(clause.value)
    if disjunctions > MAX_IN_VALUES:
        raise ValueError(f"A query expands to at most {MAX_IN_VALUES} disjunctions, got {disjunctions}")

    not_in = [f for f in result if isinstance(f, NotIn)]
    if len(not_in) > 1:
        raise ValueError("A query supports at most one not-in clause")
    if not_in and any(isinstance(f, NotEquals) for f in result):
        raise ValueError("not-in cannot be combined with != in the same query")

    return result


def prefix(field: str, term: str) -> List[QueryFilter]:
    """Range pair matching string values that start with term"""
    return [Range(field, term, ">="), Range(field, term + "\uf8ff", "<=")]


def between(field: str, start: Any = None, end: Any = None) -> List[QueryFilter]:
    """Inclusive range; either bound may be omitted"""
    clauses: List[QueryFilter] = []
    if start is not None:
        clauses.append(Range(field, start, ">="))
    if end is not None:
        clauses.append(Range(field, end, "<="))
    return clauses


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "asc"

    def __post_init__(self):
        _require_field(self.field)
        direction = (self.direction or "asc").lower()
        if direction in ("asc", "ascending"):
            direction = "asc"
        elif direction in ("desc", "descending"):
            direction = "desc"
        else:
            raise ValueError(f"Unsupported sort direction: {self.direction}")
        object.__setattr__(self, "direction", direction)

    @property
    def firestore_direction(self) -> str:
        return Query.DESCENDING if self.direction == "desc" else Query.ASCENDING


OrderLike = Union[OrderBy, Tuple[str, str], List[str], str]


def as_order(item: OrderLike) -> OrderBy:
    if isinstance(item, OrderBy):
        return item
    if isinstance(item, str):
        return OrderBy(item)
    if isinstance(item, (tuple, list)) and len(item) in (1, 2):
        return OrderBy(*item)
    raise ValueError(f"Cannot interpret {item!r} as a sort order")


def parse_sort(sort: str) -> List[OrderBy]:
    """Parse an API sort string such as "-updatedAt,name" """
    orders = []
    for part in (sort or "").split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            orders.append(OrderBy(part[1:], "desc"))
        else:
            orders.append(OrderBy(part.lstrip("+"), "asc"))
    return orders
