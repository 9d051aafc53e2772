"""
Public entry point.

    client = create_client()
    result = await client.handle("vehicles").eq("operator_id", "OP1").order("name").limit(20)
"""

from __future__ import annotations

import logging
from typing import Any

from dualstore.config import Settings, settings as default_settings
from dualstore.document import DocumentExecutor
from dualstore.dual_write import DualWriteExecutor
from dualstore.envelope import ResultEnvelope
from dualstore.executor import Executor
from dualstore.handle import QueryHandle
from dualstore.rest_tree import RestTreeStore
from dualstore.tree import TreeExecutor

logger = logging.getLogger(__name__)


class Client:
    """Hands out one fresh QueryHandle per logical query."""

    def __init__(self, executor: Executor):
        self.executor = executor

    def handle(self, collection: str) -> QueryHandle:
        return QueryHandle(collection, self.executor)

    def from_(self, collection: str) -> QueryHandle:
        return self.handle(collection)

    async def rpc(self, function_name: str, params: dict[str, Any] | None = None) -> ResultEnvelope:
        """Stored procedures do not exist on either backend."""
        return ResultEnvelope.backend_error(f"RPC not supported: {function_name}")


def build_tree_executor(cfg: Settings) -> TreeExecutor:
    store = RestTreeStore(
        cfg.FIREBASE_DATABASE_URL,
        auth_token=cfg.FIREBASE_AUTH_TOKEN or None,
        timeout=cfg.RTDB_TIMEOUT_SECONDS,
    )
    return TreeExecutor(store, ordered_fetch_limit=cfg.RTDB_ORDERED_FETCH_LIMIT)


def build_document_executor(cfg: Settings) -> DocumentExecutor:
    # Imported here so rtdb-only deployments never touch the Firestore SDK
    from dualstore.firestore_document import FirestoreDocumentStore

    store = FirestoreDocumentStore(
        project=cfg.GOOGLE_CLOUD_PROJECT or None,
        database=cfg.FIRESTORE_DATABASE or None,
    )
    return DocumentExecutor(store, in_limit=cfg.FIRESTORE_IN_LIMIT, batch_limit=cfg.FIRESTORE_BATCH_LIMIT)


_BUILDERS = {
    "rtdb": build_tree_executor,
    "firestore": build_document_executor,
}


def create_client(cfg: Settings | None = None) -> Client:
    """
    Build a client from settings.

    Without write mirroring the primary executor is used directly;
    otherwise a DualWriteExecutor routes between both stores.
    """
    cfg = cfg or default_settings
    cfg.validate()

    primary = _BUILDERS[cfg.PRIMARY_DATABASE](cfg)
    if not cfg.mirror_writes:
        logger.info("client: using %s", cfg.PRIMARY_DATABASE)
        return Client(primary)

    secondary = _BUILDERS[cfg.secondary_database](cfg)
    logger.info(
        "client: primary=%s, mirroring writes to %s",
        cfg.PRIMARY_DATABASE,
        cfg.secondary_database,
    )
    return Client(
        DualWriteExecutor(
            primary,
            secondary,
            primary_name=cfg.PRIMARY_DATABASE,
            secondary_name=cfg.secondary_database,
            mirror_writes=True,
        )
    )
