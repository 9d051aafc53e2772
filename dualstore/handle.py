"""
Deferred-execution handle.

A QueryHandle is a builder bound to an executor. Chaining only edits the
QuerySpec; the executor runs when the handle is awaited or execute() is called.
Each handle executes at most once.

Usage:
    result = await client.handle("vehicles").eq("operator_id", op_id).order("name")
    if result.error:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dualstore.builder import QueryBuilder
from dualstore.envelope import ResultEnvelope
from dualstore.errors import HandleConsumedError

if TYPE_CHECKING:
    from dualstore.executor import Executor


class QueryHandle(QueryBuilder):
    """Builder plus the executor that will consume it."""

    def __init__(self, collection: str, executor: Executor):
        super().__init__(collection)
        self._executor = executor
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    async def execute(self) -> ResultEnvelope:
        """Run the accumulated spec. Equivalent to awaiting the handle."""
        if self._consumed:
            raise HandleConsumedError(f"query on {self.spec.collection!r} was already executed")
        self._consumed = True
        return await self._executor.run(self.spec)

    def __await__(self):
        return self.execute().__await__()

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "pending"
        return f"<QueryHandle {self.spec.collection} {self.spec.kind} {state}>"
