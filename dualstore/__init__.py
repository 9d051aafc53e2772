"""
dualstore: one chainable query interface over two storage engines.

Components:
  builder: accumulates filters / ordering / limit / mutation into a QuerySpec
  handle: deferred execution, nothing runs until the handle is awaited
  tree: executor for the hierarchical store (client-side filtering)
  document: executor for the document store (pushdown, chunked `in`, batches)
  envelope: the uniform {data, error} result
"""

from dualstore.builder import QueryBuilder
from dualstore.client import Client, create_client
from dualstore.document import DocumentExecutor, DocumentStore, MemoryDocumentStore
from dualstore.envelope import ErrorInfo, ResultEnvelope
from dualstore.errors import DocumentStoreError, HandleConsumedError, StoreError, TreeStoreError
from dualstore.executor import Executor
from dualstore.handle import QueryHandle
from dualstore.tree import MemoryTreeStore, TreeExecutor, TreeStore
from dualstore.types import FilterCondition, OrderCondition, QuerySpec

__all__ = [
    "Client",
    "create_client",
    "QueryBuilder",
    "QueryHandle",
    "QuerySpec",
    "FilterCondition",
    "OrderCondition",
    "Executor",
    "TreeExecutor",
    "TreeStore",
    "MemoryTreeStore",
    "DocumentExecutor",
    "DocumentStore",
    "MemoryDocumentStore",
    "ResultEnvelope",
    "ErrorInfo",
    "StoreError",
    "TreeStoreError",
    "DocumentStoreError",
    "HandleConsumedError",
]
