"""
Chainable query builder.

Every chain method mutates the one QuerySpec owned by the builder and
returns the builder itself. Nothing here performs I/O or can fail.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from dualstore.predicates import parse_select
from dualstore.types import IMPOSSIBLE_FILTER, FilterCondition, OrderCondition, QuerySpec, Record


class QueryBuilder:
    """Accumulates filters, ordering, limit, projection and one optional mutation."""

    def __init__(self, collection: str):
        self.spec = QuerySpec(collection=collection)

    @property
    def collection(self) -> str:
        return self.spec.collection

    # -- projection --

    def select(self, fields: str | Sequence[str] = "*"):
        """Accepts "a, b, rel:fk(x, y)" or a list of field names."""
        self.spec.select_fields = parse_select(fields)
        return self

    # -- filters --

    def _filter(self, field: str, operator: str, value: Any):
        self.spec.filters.append(FilterCondition(field=field, operator=operator, value=value))
        return self

    def eq(self, field: str, value: Any):
        return self._filter(field, "eq", value)

    def neq(self, field: str, value: Any):
        return self._filter(field, "neq", value)

    def gt(self, field: str, value: Any):
        return self._filter(field, "gt", value)

    def gte(self, field: str, value: Any):
        return self._filter(field, "gte", value)

    def lt(self, field: str, value: Any):
        return self._filter(field, "lt", value)

    def lte(self, field: str, value: Any):
        return self._filter(field, "lte", value)

    def in_(self, field: str, values: Iterable[Any]):
        """Membership filter. An empty list records a filter that matches nothing."""
        values = list(values)
        if not values:
            self.spec.filters.append(IMPOSSIBLE_FILTER)
            return self
        return self._filter(field, "in", values)

    # -- ordering / paging --

    def order(self, field: str, ascending: bool = True):
        self.spec.orderings.append(
            OrderCondition(field=field, direction="asc" if ascending else "desc")
        )
        return self

    def limit(self, count: int):
        self.spec.limit = count
        return self

    def single(self):
        self.spec.limit = 1
        self.spec.single = True
        return self

    # -- mutations (last call wins) --

    def insert(self, data: Record | list[Record]):
        self.spec.clear_mutation()
        if isinstance(data, list):
            self.spec.insert_payload = [dict(item) for item in data]
        else:
            self.spec.insert_payload = dict(data)
        return self

    def update(self, data: Record):
        self.spec.clear_mutation()
        self.spec.update_payload = dict(data)
        return self

    def delete(self):
        self.spec.clear_mutation()
        self.spec.delete_flag = True
        return self
