"""
Test configuration for dualstore.

Both engines run against in-memory stores seeded with the same fixtures, so
contract tests can be parametrized over the tree and document executors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from dualstore.client import Client
from dualstore.document import DocumentExecutor, MemoryDocumentStore
from dualstore.executor import Executor
from dualstore.tests.fixtures import make_dataset
from dualstore.tree import MemoryTreeStore, TreeExecutor


@dataclass
class Engine:
    """A client wired to one in-memory backend, plus direct store access."""

    name: str
    store: Any
    executor: Executor
    client: Client

    def stored(self, collection: str) -> dict[str, dict[str, Any]]:
        if self.name == "tree":
            return self.store.root.get(collection, {})
        return self.store.collections.get(collection, {})


def make_engine(name: str, data=None) -> Engine:
    data = make_dataset() if data is None else data
    if name == "tree":
        store = MemoryTreeStore(data)
        executor = TreeExecutor(store)
    else:
        store = MemoryDocumentStore(data)
        executor = DocumentExecutor(store)
    return Engine(name=name, store=store, executor=executor, client=Client(executor))


@pytest.fixture(params=["tree", "document"])
def engine(request) -> Engine:
    """Runs the test once per backend."""
    return make_engine(request.param)


@pytest.fixture
def tree_engine() -> Engine:
    return make_engine("tree")


@pytest.fixture
def document_engine() -> Engine:
    return make_engine("document")
