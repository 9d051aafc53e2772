"""
Cloud Firestore backend for the document executor.

Implements the DocumentStore protocol with the async Firestore client.
Filters use the FieldFilter form of where(); writes go through a WriteBatch
so each commit is atomic.
"""

from __future__ import annotations

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from dualstore.document import DocumentStore
from dualstore.errors import DocumentStoreError

NATIVE_OPERATORS: dict[str, str] = {
    "eq": "==",
    "neq": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "in": "in",
}


class FirestoreDocumentStore(DocumentStore):
    """
    Firestore-based document store.

    The AsyncClient is created on first use so that importing and wiring
    a client does not require credentials.
    """

    def __init__(
        self,
        client: firestore.AsyncClient | None = None,
        project: str | None = None,
        database: str | None = None,
    ):
        self._client = client
        self._project = project
        self._database = database

    def _db(self) -> firestore.AsyncClient:
        if self._client is None:
            kwargs = {}
            if self._project:
                kwargs["project"] = self._project
            if self._database:
                kwargs["database"] = self._database
            self._client = firestore.AsyncClient(**kwargs)
        return self._client

    def new_id(self, collection):
        return self._db().collection(collection).document().id

    async def query(self, collection, filters, orderings, limit):
        query = self._db().collection(collection)
        for condition in filters:
            query = query.where(
                filter=FieldFilter(condition.field, NATIVE_OPERATORS[condition.operator], condition.value)
            )
        for order in orderings:
            direction = firestore.Query.DESCENDING if order.descending else firestore.Query.ASCENDING
            query = query.order_by(order.field, direction=direction)
        if limit:
            query = query.limit(limit)

        try:
            snapshots = await query.get()
        except google_exceptions.GoogleAPICallError as e:
            raise DocumentStoreError(e.message or str(e), code=e.code) from e
        return [{**(snapshot.to_dict() or {}), "id": snapshot.id} for snapshot in snapshots]

    async def commit(self, collection, writes):
        collection_ref = self._db().collection(collection)
        batch = self._db().batch()
        for write in writes:
            ref = collection_ref.document(write.doc_id)
            if write.op == "set":
                batch.set(ref, write.data)
            elif write.op == "update":
                batch.update(ref, write.data)
            else:
                batch.delete(ref)
        try:
            await batch.commit()
        except google_exceptions.GoogleAPICallError as e:
            raise DocumentStoreError(e.message or str(e), code=e.code) from e
