"""
Tree-store executor.

Resolves a QuerySpec against a hierarchical key-value store (Realtime
Database layout: /<collection>/<record key>/<fields>). The store can order
and paginate natively on one field only, so filtering, secondary sorting and
limits after filtering all happen client-side.

Writes are issued one record at a time and are NOT atomic: a failure partway
through a multi-record update or delete leaves earlier writes applied.
"""

from __future__ import annotations

import copy
import functools
import logging
from typing import Any

from dualstore.envelope import ResultEnvelope
from dualstore.executor import Executor, insert_items, insert_result
from dualstore.predicates import apply_filters, compare_values, sort_records
from dualstore.types import QuerySpec, Record, generate_id, now_iso, stamp_new_record

logger = logging.getLogger(__name__)

DEFAULT_ORDERED_FETCH_LIMIT = 1000


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------

class TreeStore:
    """
    Abstract tree store.
    Implement over the REST API for production, or in-memory for tests.
    """

    async def get(
        self,
        path: str,
        order_by: str | None = None,
        limit_to_first: int | None = None,
        limit_to_last: int | None = None,
    ) -> Any:
        """Read the subtree at path. Returns None if nothing is stored there."""
        raise NotImplementedError

    async def set(self, path: str, data: Any) -> None:
        """Replace the subtree at path."""
        raise NotImplementedError

    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge the given children into the node at path."""
        raise NotImplementedError

    async def remove(self, path: str) -> None:
        """Delete the subtree at path."""
        raise NotImplementedError


def key_sort_key(key: str) -> tuple[int, int | str]:
    """Native key order: integer-like keys numerically first, then strings."""
    if key.isascii() and key.isdigit() and len(key) < 10:
        return (0, int(key))
    return (1, key)


def _split(path: str) -> list[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


class MemoryTreeStore(TreeStore):
    """In-memory tree store for testing and local development."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.root: dict[str, Any] = copy.deepcopy(data) if data else {}
        self.calls: list[tuple[str, str]] = []

    def _node(self, path: str) -> Any:
        node: Any = self.root
        for segment in _split(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _parent(self, path: str, create: bool) -> tuple[dict[str, Any] | None, str]:
        segments = _split(path)
        node = self.root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if not create:
                    return None, segments[-1]
                child = {}
                node[segment] = child
            node = child
        return node, segments[-1]

    async def get(self, path, order_by=None, limit_to_first=None, limit_to_last=None):
        self.calls.append(("get", path))
        node = copy.deepcopy(self._node(path))
        if not isinstance(node, dict):
            return node
        if order_by is None and limit_to_first is None and limit_to_last is None:
            return node

        items = sorted(node.items(), key=lambda kv: key_sort_key(kv[0]))
        if order_by not in (None, "$key"):
            def child_value(item):
                value = item[1]
                return value.get(order_by) if isinstance(value, dict) else None

            items.sort(key=functools.cmp_to_key(
                lambda a, b: compare_values(child_value(a), child_value(b))
            ))
        if limit_to_first is not None:
            items = items[:limit_to_first]
        if limit_to_last is not None:
            items = items[-limit_to_last:] if limit_to_last else []
        return dict(items)

    async def set(self, path, data):
        self.calls.append(("set", path))
        parent, key = self._parent(path, create=True)
        parent[key] = copy.deepcopy(data)

    async def update(self, path, data):
        self.calls.append(("update", path))
        parent, key = self._parent(path, create=True)
        node = parent.get(key)
        if not isinstance(node, dict):
            node = {}
            parent[key] = node
        node.update(copy.deepcopy(data))

    async def remove(self, path):
        self.calls.append(("remove", path))
        parent, key = self._parent(path, create=False)
        if parent is not None:
            parent.pop(key, None)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def decode_subtree(raw: Any) -> list[Record]:
    """
    Turn a collection node into records with `id` set to the child key.

    The store may hand back a sparse array when keys look like indexes.
    Non-object children are not records and are skipped.
    """
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [(str(index), value) for index, value in enumerate(raw) if value is not None]
    elif isinstance(raw, dict):
        items = list(raw.items())
    else:
        return []
    return [{**value, "id": key} for key, value in items if isinstance(value, dict)]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class TreeExecutor(Executor):
    """
    Executes QuerySpecs against a TreeStore.

    Ordering beyond the first OrderCondition is not supported by the tree
    store and is ignored (with a warning); the document executor honors it.
    """

    name = "tree_executor"

    def __init__(self, store: TreeStore, ordered_fetch_limit: int = DEFAULT_ORDERED_FETCH_LIMIT):
        self._store = store
        self._ordered_fetch_limit = ordered_fetch_limit

    @property
    def store(self) -> TreeStore:
        return self._store

    def _record_path(self, spec: QuerySpec, record_id: str) -> str:
        return f"{spec.collection}/{record_id}"

    async def _fetch(self, spec: QuerySpec) -> list[Record]:
        """
        One native read of the collection.

        The native ordered page is only used when there are no filters;
        otherwise the limit must wait until after client-side filtering.
        """
        params: dict[str, Any] = {}
        if not spec.filters:
            if spec.orderings:
                primary = spec.orderings[0]
                page = spec.limit or self._ordered_fetch_limit
                params["order_by"] = primary.field
                if primary.descending:
                    params["limit_to_last"] = page
                else:
                    params["limit_to_first"] = page
            elif spec.limit:
                # The REST API rejects a limit without an orderBy
                params["order_by"] = "$key"
                params["limit_to_first"] = spec.limit
        raw = await self._store.get(spec.collection, **params)
        return decode_subtree(raw)

    async def _matching(self, spec: QuerySpec) -> list[Record]:
        """Full read + filter, in native key order. Used by update/delete."""
        records = decode_subtree(await self._store.get(spec.collection))
        records.sort(key=lambda r: key_sort_key(r["id"]))
        return apply_filters(records, spec.filters)

    # -- read --

    async def read(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return self._read_result(spec, [])

        records = apply_filters(await self._fetch(spec), spec.filters)

        records.sort(key=lambda r: key_sort_key(r["id"]))
        if spec.orderings:
            if len(spec.orderings) > 1:
                logger.warning(
                    "tree_executor: %s supports one ordered field; ignoring %s",
                    spec.collection,
                    [o.field for o in spec.orderings[1:]],
                )
            records = sort_records(records, spec.orderings[:1])

        if spec.limit:
            records = records[:spec.limit]
        return self._read_result(spec, records)

    # -- insert --

    async def insert(self, spec: QuerySpec) -> ResultEnvelope:
        items = insert_items(spec)
        written: list[Record] = []
        for item in items:
            record = stamp_new_record(item, item.get("id") or generate_id())
            try:
                await self._store.set(self._record_path(spec, record["id"]), record)
            except Exception:
                logger.error(
                    "tree_executor: insert into %s stopped after %d of %d records",
                    spec.collection,
                    len(written),
                    len(items),
                )
                raise
            written.append(record)
        return insert_result(spec, written)

    # -- update --

    async def update(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return ResultEnvelope.not_found("No records found")

        matched = await self._matching(spec)
        if not matched:
            return ResultEnvelope.not_found("No records found")

        changes = {**spec.update_payload, "updated_at": now_iso()}
        updated: list[Record] = []
        for record in matched:
            try:
                await self._store.update(self._record_path(spec, record["id"]), changes)
            except Exception:
                logger.error(
                    "tree_executor: update of %s stopped after %d of %d records",
                    spec.collection,
                    len(updated),
                    len(matched),
                )
                raise
            updated.append({**record, **changes})
        return self._mutation_result(spec, updated)

    # -- delete --

    async def delete(self, spec: QuerySpec) -> ResultEnvelope:
        if spec.has_impossible_filter:
            return ResultEnvelope.not_found("No records found")

        matched = await self._matching(spec)
        if not matched:
            return ResultEnvelope.not_found("No records found")

        for removed, record in enumerate(matched):
            try:
                await self._store.remove(self._record_path(spec, record["id"]))
            except Exception:
                logger.error(
                    "tree_executor: delete from %s stopped after %d of %d records",
                    spec.collection,
                    removed,
                    len(matched),
                )
                raise
        return ResultEnvelope.ok(None)
