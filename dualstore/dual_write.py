"""
Dual-write routing for the gradual tree-store -> document-store migration.

Reads are served by the primary store only. Writes go to the primary and,
when mirroring is enabled, to the secondary. The primary result is always
what the caller sees; secondary failures are recorded, never raised.

Configuration (see dualstore.config):
- PRIMARY_DATABASE: 'rtdb' or 'firestore'
- DUAL_WRITE_ENABLED: mirror writes to the secondary, whichever it is
- FIRESTORE_WRITE_ENABLED: mirror writes to Firestore while RTDB is primary
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass, field

from dualstore.document import DocumentStore, DocumentWrite
from dualstore.envelope import ResultEnvelope
from dualstore.executor import Executor
from dualstore.tree import TreeStore, decode_subtree
from dualstore.types import QuerySpec, now_iso

logger = logging.getLogger(__name__)

MAX_WRITE_ERRORS = 100


@dataclass
class WriteError:
    database: str
    collection: str
    operation: str
    error: str
    timestamp: str = field(default_factory=now_iso)


class WriteErrorLog:
    """Keeps the most recent write failures for monitoring."""

    def __init__(self, max_entries: int = MAX_WRITE_ERRORS) -> None:
        self._entries: deque[WriteError] = deque(maxlen=max_entries)

    def record(self, database: str, collection: str, operation: str, error: object) -> WriteError:
        message = getattr(error, "message", None) or str(error)
        entry = WriteError(database=database, collection=collection, operation=operation, error=message)
        self._entries.append(entry)
        logger.error("dual_write: %s error on %s.%s: %s", database, collection, operation, message)
        return entry

    def errors(self) -> list[WriteError]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DualWriteExecutor(Executor):
    """Routes each spec to the primary executor and mirrors writes."""

    name = "dual_write"

    def __init__(
        self,
        primary: Executor,
        secondary: Executor,
        primary_name: str = "rtdb",
        secondary_name: str = "firestore",
        mirror_writes: bool = False,
        error_log: WriteErrorLog | None = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.primary_name = primary_name
        self.secondary_name = secondary_name
        self.mirror_writes = mirror_writes
        self.error_log = error_log or WriteErrorLog()

    async def run(self, spec: QuerySpec) -> ResultEnvelope:
        if not spec.is_write:
            return await self.primary.run(spec)

        mirror = self._mirror_spec(spec)
        result = await self.primary.run(spec)
        if result.error:
            if result.error.kind == "backend_error":
                self.error_log.record(self.primary_name, spec.collection, spec.kind, result.error.message)
            return result

        if not self.mirror_writes:
            return result

        if mirror.kind == "insert":
            # Same ids and timestamps on both sides
            mirror.insert_payload = copy.deepcopy(result.data)
        secondary_result = await self.secondary.run(mirror)
        if secondary_result.error:
            self.error_log.record(
                self.secondary_name, spec.collection, spec.kind, secondary_result.error.message
            )
        return result

    @staticmethod
    def _mirror_spec(spec: QuerySpec) -> QuerySpec:
        return copy.deepcopy(spec)


# ---------------------------------------------------------------------------
# Migration checks
# ---------------------------------------------------------------------------

@dataclass
class CollectionComparison:
    tree_count: int = 0
    document_count: int = 0
    matched: int = 0
    missing_in_document: list[str] = field(default_factory=list)
    missing_in_tree: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.missing_in_document and not self.missing_in_tree


async def compare_collection(
    tree_store: TreeStore,
    document_store: DocumentStore,
    collection: str,
) -> CollectionComparison:
    """Compare record ids between the two stores for one collection."""
    tree_ids = [record["id"] for record in decode_subtree(await tree_store.get(collection))]
    document_ids = [record["id"] for record in await document_store.query(collection, [], [], None)]

    result = CollectionComparison(tree_count=len(tree_ids), document_count=len(document_ids))
    document_set = set(document_ids)
    tree_set = set(tree_ids)
    for record_id in tree_ids:
        if record_id in document_set:
            result.matched += 1
        else:
            result.missing_in_document.append(record_id)
    result.missing_in_tree = [record_id for record_id in document_ids if record_id not in tree_set]
    return result


async def sync_document(
    tree_store: TreeStore,
    document_store: DocumentStore,
    collection: str,
    doc_id: str,
) -> bool:
    """Copy one record from the tree store into the document store."""
    data = await tree_store.get(f"{collection}/{doc_id}")
    if not isinstance(data, dict):
        logger.info("dual_write: %s/%s not found in tree store", collection, doc_id)
        return False
    await document_store.commit(
        collection,
        [DocumentWrite(op="set", doc_id=doc_id, data={**data, "id": doc_id})],
    )
    logger.info("dual_write: synced %s/%s to document store", collection, doc_id)
    return True
