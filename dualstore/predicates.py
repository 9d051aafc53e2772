"""
Client-side query evaluation.

Filter, sort and projection helpers used wherever a backend cannot push a
clause down natively. Comparison semantics follow the document store: values
are ranked by type class first, so a string never equals or exceeds a number,
and a missing field never satisfies a range or inequality filter.
"""

from __future__ import annotations

import functools
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Sequence

from dualstore.types import FilterCondition, OrderCondition, Record

# Cross-type order: null < bool < number < timestamp < string < bytes < array < map
_RANK_NONE = 0
_RANK_BOOL = 1
_RANK_NUMBER = 2
_RANK_TIME = 3
_RANK_STRING = 4
_RANK_BYTES = 5
_RANK_LIST = 6
_RANK_MAP = 7
_RANK_OTHER = 8


def type_rank(value: Any) -> int:
    if value is None:
        return _RANK_NONE
    if isinstance(value, bool):
        return _RANK_BOOL
    if isinstance(value, (int, float)):
        return _RANK_NUMBER
    if isinstance(value, (datetime, date)):
        return _RANK_TIME
    if isinstance(value, str):
        return _RANK_STRING
    if isinstance(value, (bytes, bytearray)):
        return _RANK_BYTES
    if isinstance(value, (list, tuple)):
        return _RANK_LIST
    if isinstance(value, dict):
        return _RANK_MAP
    return _RANK_OTHER


def compare_values(a: Any, b: Any) -> int:
    """Total order over arbitrary record values. Returns -1, 0 or 1."""
    rank_a, rank_b = type_rank(a), type_rank(b)
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if rank_a == _RANK_NONE:
        return 0
    if rank_a == _RANK_LIST:
        for left, right in zip(a, b):
            result = compare_values(left, right)
            if result:
                return result
        return (len(a) > len(b)) - (len(a) < len(b))
    if rank_a == _RANK_MAP:
        a, b = repr(sorted(a.items())), repr(sorted(b.items()))
    elif rank_a == _RANK_OTHER:
        a, b = repr(a), repr(b)
    try:
        return (a > b) - (a < b)
    except TypeError:
        # datetime vs date, naive vs aware
        return (str(a) > str(b)) - (str(a) < str(b))


def _same_class_equal(a: Any, b: Any) -> bool:
    return type_rank(a) == type_rank(b) and compare_values(a, b) == 0


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def matches_filter(record: Record, condition: FilterCondition) -> bool:
    if condition.is_impossible:
        return False

    value = record.get(condition.field)
    target = condition.value
    op = condition.operator

    if op == "eq":
        return _same_class_equal(value, target)
    if op == "neq":
        return value is not None and not _same_class_equal(value, target)
    if op == "in":
        if not isinstance(target, (list, tuple, set, frozenset)):
            return False
        return any(_same_class_equal(value, candidate) for candidate in target)

    # Range filters only match values of the same type class
    if value is None or type_rank(value) != type_rank(target):
        return False
    result = compare_values(value, target)
    if op == "gt":
        return result > 0
    if op == "gte":
        return result >= 0
    if op == "lt":
        return result < 0
    if op == "lte":
        return result <= 0
    return True


def matches(record: Record, filters: Iterable[FilterCondition]) -> bool:
    """AND of every filter, evaluated in declared order."""
    return all(matches_filter(record, condition) for condition in filters)


def apply_filters(records: Iterable[Record], filters: Sequence[FilterCondition]) -> list[Record]:
    if not filters:
        return list(records)
    return [record for record in records if matches(record, filters)]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

def sort_records(
    records: Iterable[Record],
    orderings: Sequence[OrderCondition],
    tie_break_by_id: bool = False,
) -> list[Record]:
    """
    Stable multi-key sort by the declared orderings.

    With tie_break_by_id, equal rows are ordered by `id` in the direction of
    the last ordering, which is how the document store orders ties natively.
    """
    keys = list(orderings)
    if tie_break_by_id:
        direction = keys[-1].direction if keys else "asc"
        keys.append(OrderCondition(field="id", direction=direction))
    if not keys:
        return list(records)

    def compare(left: Record, right: Record) -> int:
        for order in keys:
            result = compare_values(left.get(order.field), right.get(order.field))
            if result:
                return -result if order.descending else result
        return 0

    return sorted(records, key=functools.cmp_to_key(compare))


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def parse_select(fields: str | Sequence[str]) -> list[str]:
    """
    Split a select expression into top-level selectors.

    Commas inside parentheses belong to a relational selector:
    "*, operator:operator_id(id, name)" -> ["*", "operator:operator_id(id, name)"]
    """
    if not isinstance(fields, str):
        return [f.strip() for f in fields if f and f.strip()]

    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in fields:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def is_passthrough_select(select_fields: Sequence[str]) -> bool:
    return any(f == "*" or ":" in f or "(" in f for f in select_fields)


def project(record: Record, select_fields: Sequence[str] | None) -> Record:
    """
    Advisory field selection.

    Wildcard and relational selectors return the record unchanged; joins are
    resolved by the caller.
    """
    if not select_fields or is_passthrough_select(select_fields):
        return record
    selected: Record = {"id": record.get("id")}
    for name in select_fields:
        if name in record:
            selected[name] = record[name]
    return selected


def chunked(values: Sequence[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])
