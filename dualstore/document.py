"""
Document-store executor.

Resolves a QuerySpec against a collection/query engine (Firestore model):
filters and multi-field ordering are pushed down natively, writes are
committed as atomic batches.

The store caps membership filters at 30 values. Larger `in` filters run in
chunked mode: one query per chunk, issued in parallel, then the pages are
merged, re-sorted and re-limited so the caller sees exactly what a single
unchunked query would have returned.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
import string
from dataclasses import dataclass
from typing import Any, Literal, Sequence

from dualstore.envelope import ResultEnvelope
from dualstore.errors import DocumentStoreError
from dualstore.executor import Executor, insert_items, insert_result
from dualstore.predicates import apply_filters, chunked, sort_records
from dualstore.types import (
    FilterCondition,
    OrderCondition,
    QuerySpec,
    Record,
    now_iso,
    stamp_new_record,
)

logger = logging.getLogger(__name__)

DEFAULT_IN_LIMIT = 30
DEFAULT_BATCH_LIMIT = 500

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class DocumentWrite:
    """One write inside an atomic batch."""

    op: Literal["set", "update", "delete"]
    doc_id: str
    data: Record | None = None


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------

class DocumentStore:
    """
    Abstract document store.
    Implement with Firestore for production, or in-memory for tests.
    """

    def new_id(self, collection: str) -> str:
        """Allocate a fresh document id."""
        raise NotImplementedError

    async def query(
        self,
        collection: str,
        filters: Sequence[FilterCondition],
        orderings: Sequence[OrderCondition],
        limit: int | None,
    ) -> list[Record]:
        """Run one native query. Every returned record carries `id`."""
        raise NotImplementedError

    async def commit(self, collection: str, writes: Sequence[DocumentWrite]) -> None:
        """Apply all writes atomically: all succeed or none do."""
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """
    In-memory document store for testing.

    Enforces the native `in` value cap, all-or-nothing commits, and the
    rule that ordering on a field drops documents missing it, so the
    executor paths behave as they do in production.
    """

    def __init__(
        self,
        data: dict[str, dict[str, Record]] | None = None,
        max_in_values: int = DEFAULT_IN_LIMIT,
    ) -> None:
        self.collections: dict[str, dict[str, Record]] = copy.deepcopy(data) if data else {}
        self.max_in_values = max_in_values
        self.calls: list[tuple[str, str]] = []
        self.commits: list[list[DocumentWrite]] = []

    def new_id(self, collection: str) -> str:
        return "".join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(20))

    async def query(self, collection, filters, orderings, limit):
        self.calls.append(("query", collection))
        for condition in filters:
            if condition.operator == "in" and len(condition.value) > self.max_in_values:
                raise DocumentStoreError(
                    f"'in' filters support a maximum of {self.max_in_values} elements",
                    code="invalid-argument",
                )
        docs = [
            {**data, "id": doc_id}
            for doc_id, data in self.collections.get(collection, {}).items()
        ]
        # order_by excludes documents that lack the ordered field
        docs = [doc for doc in docs if all(order.field in doc for order in orderings)]
        docs = sort_records(apply_filters(docs, filters), orderings, tie_break_by_id=True)
        if limit:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def commit(self, collection, writes):
        self.calls.append(("commit", collection))
        docs = self.collections.setdefault(collection, {})
        for write in writes:
            if write.op == "update" and write.doc_id not in docs:
                raise DocumentStoreError(
                    f"No document to update: {collection}/{write.doc_id}",
                    code="not-found",
                )
        for write in writes:
            if write.op == "set":
                docs[write.doc_id] = copy.deepcopy(write.data)
            elif write.op == "update":
                docs[write.doc_id].update(copy.deepcopy(write.data))
            else:
                docs.pop(write.doc_id, None)
        self.commits.append(list(writes))


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

def _dedupe(groups: list[list[Record]]) -> list[list[Record]]:
    """Drop records already seen in an earlier group (repeated `in` values)."""
    seen: set[Any] = set()
    result = []
    for group in groups:
        kept = []
        for record in group:
            if record["id"] in seen:
                continue
            seen.add(record["id"])
            kept.append(record)
        result.append(kept)
    return result


class DocumentExecutor(Executor):
    """Executes QuerySpecs against a DocumentStore."""

    name = "document_executor"

    def __init__(
        self,
        store: DocumentStore,
        in_limit: int = DEFAULT_IN_LIMIT,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
    ):
        self._store = store
        self._in_limit = in_limit
        self._batch_limit = batch_limit

    @property
    def store(self) -> DocumentStore:
        return self._store

    def _oversized(self, spec: QuerySpec) -> list[FilterCondition]:
        return [
            f for f in spec.filters
            if f.operator == "in" and len(f.value) > self._in_limit
        ]

    async def _query_groups(self, spec: QuerySpec, apply_limit: bool) -> tuple[list[list[Record]], bool]:
        """
        Run the native query, chunking the first oversized `in` filter.

        Returns one group of records per native query and whether chunking
        was used. Any further oversized `in` filters cannot be pushed down
        and are applied to each group client-side.
        """
        limit = spec.limit if apply_limit else None
        oversized = self._oversized(spec)
        if not oversized:
            records = await self._store.query(spec.collection, spec.filters, spec.orderings, limit)
            return [records], False

        chunk_filter, client_filters = oversized[0], oversized[1:]
        pushdown = [f for f in spec.filters if not any(f is o for o in client_filters)]
        chunk_limit = None if client_filters else limit
        chunks = list(chunked(chunk_filter.value, self._in_limit))
        logger.debug(
            "document_executor: %s in on %s split into %d chunks",
            spec.collection,
            chunk_filter.field,
            len(chunks),
        )

        def chunk_query(values: list[Any]):
            filters = [
                FilterCondition(field=f.field, operator="in", value=values) if f is chunk_filter else f
                for f in pushdown
            ]
            return self._store.query(spec.collection, filters, spec.orderings, chunk_limit)

        results = await asyncio.gather(*(chunk_query(c) for c in chunks), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                # Sibling pages are discarded; a partial read is never returned
                raise result
        groups = [apply_filters(result, client_filters) for result in results]
        return _dedupe(groups), True

    async def _commit(self, collection: str, writes: list[DocumentWrite]) -> None:
        for batch in chunked(writes, self._batch_limit):
            await self._store.commit(collection, batch)

    # -- read --

    async def read(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return self._read_result(spec, [])

        groups, was_chunked = await self._query_groups(spec, apply_limit=True)
        if not was_chunked:
            return self._read_result(spec, groups[0])

        # Each chunk was ordered and limited on its own
        merged = [record for group in groups for record in group]
        merged = sort_records(merged, spec.orderings, tie_break_by_id=True)
        if spec.limit:
            merged = merged[:spec.limit]
        return self._read_result(spec, merged)

    # -- insert --

    async def insert(self, spec: QuerySpec) -> ResultEnvelope:
        items = insert_items(spec)
        written = [
            stamp_new_record(item, item.get("id") or self._store.new_id(spec.collection))
            for item in items
        ]
        if written:
            await self._commit(
                spec.collection,
                [DocumentWrite(op="set", doc_id=record["id"], data=record) for record in written],
            )
        return insert_result(spec, written)

    # -- update / delete --

    async def _matching_groups(self, spec: QuerySpec) -> list[list[Record]]:
        groups, _ = await self._query_groups(spec, apply_limit=False)
        return [group for group in groups if group]

    async def update(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return ResultEnvelope.not_found("No records found")

        groups = await self._matching_groups(spec)
        if not groups:
            return ResultEnvelope.not_found("No records found")

        changes = {**spec.update_payload, "updated_at": now_iso()}
        updated: list[Record] = []
        for group in groups:
            writes = [DocumentWrite(op="update", doc_id=r["id"], data=changes) for r in group]
            try:
                await self._commit(spec.collection, writes)
            except Exception:
                if updated:
                    logger.error(
                        "document_executor: update of %s failed after %d records were committed",
                        spec.collection,
                        len(updated),
                    )
                raise
            updated.extend({**record, **changes} for record in group)
        return self._mutation_result(spec, updated)

    async def delete(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return ResultEnvelope.not_found("No records found")

        groups = await self._matching_groups(spec)
        if not groups:
            return ResultEnvelope.not_found("No records found")

        removed = 0
        for group in groups:
            try:
                await self._commit(
                    spec.collection,
                    [DocumentWrite(op="delete", doc_id=r["id"]) for r in group],
                )
            except Exception:
                if removed:
                    logger.error(
                        "document_executor: delete from %s failed after %d records were committed",
                        spec.collection,
                        removed,
                    )
                raise
            removed += len(group)
        return ResultEnvelope.ok(None)
