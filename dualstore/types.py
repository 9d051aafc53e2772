"""
dualstore: Shared Types

Value objects and the query accumulator shared by the builder, the handle
and both executors.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Operator = Literal["eq", "neq", "gt", "gte", "lt", "lte", "in"]
Direction = Literal["asc", "desc"]
Record = dict[str, Any]

OPERATORS: set[str] = {"eq", "neq", "gt", "gte", "lt", "lte", "in"}

# Recorded by in_(field, []). Never matches anything.
IMPOSSIBLE_FIELD = "__impossible__"
NEVER_MATCH = "__never_match__"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: Operator
    value: Any

    @property
    def is_impossible(self) -> bool:
        return self.field == IMPOSSIBLE_FIELD and self.value == NEVER_MATCH


@dataclass(frozen=True)
class OrderCondition:
    field: str
    direction: Direction = "asc"

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


IMPOSSIBLE_FILTER = FilterCondition(field=IMPOSSIBLE_FIELD, operator="eq", value=NEVER_MATCH)


# ---------------------------------------------------------------------------
# QuerySpec
# ---------------------------------------------------------------------------

@dataclass
class QuerySpec:
    """
    Accumulated, not-yet-executed description of one query or mutation.

    Owned by exactly one builder for the lifetime of one logical query.
    At most one of insert_payload / update_payload / delete_flag is set;
    when none is set the QuerySpec describes a read.
    """

    collection: str
    filters: list[FilterCondition] = field(default_factory=list)
    orderings: list[OrderCondition] = field(default_factory=list)
    limit: int | None = None
    select_fields: list[str] | None = None
    single: bool = False
    insert_payload: Record | list[Record] | None = None
    update_payload: Record | None = None
    delete_flag: bool = False

    @property
    def kind(self) -> Literal["read", "insert", "update", "delete"]:
        if self.insert_payload is not None:
            return "insert"
        if self.update_payload is not None:
            return "update"
        if self.delete_flag:
            return "delete"
        return "read"

    @property
    def is_write(self) -> bool:
        return self.kind != "read"

    @property
    def has_impossible_filter(self) -> bool:
        return any(f.is_impossible for f in self.filters)

    def clear_mutation(self) -> None:
        self.insert_payload = None
        self.update_payload = None
        self.delete_flag = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_iso() -> str:
    """Current UTC time as ISO 8601 string with milliseconds."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Time-prefixed unique id: base36 epoch millis, a dash, a random base36 suffix."""
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    random_part = "".join(secrets.choice(_BASE36) for _ in range(13))
    return f"{timestamp}-{random_part}"


def stamp_new_record(record: Record, record_id: str) -> Record:
    """Copy a record for insertion: set id, and created_at/updated_at if absent."""
    stamped = {**record, "id": record_id}
    now = now_iso()
    if not stamped.get("created_at"):
        stamped["created_at"] = now
    if not stamped.get("updated_at"):
        stamped["updated_at"] = now
    return stamped
