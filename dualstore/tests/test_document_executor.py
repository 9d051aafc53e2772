"""
Document executor tests.

Covers chunked execution of oversized `in` filters (parallel fan-out,
merge, re-sort, re-limit), failure of a single chunk, and atomic batch
commits for mutations.
"""

from __future__ import annotations

import asyncio

import pytest

from dualstore.client import Client
from dualstore.document import DocumentExecutor, DocumentWrite, MemoryDocumentStore
from dualstore.errors import DocumentStoreError
from dualstore.types import FilterCondition

pytestmark = pytest.mark.asyncio


def make_fleet(count: int = 70) -> dict[str, dict[str, dict]]:
    """`count` vehicles r00.. with plate P00.., alternating routes, seats cycling 0-6."""
    return {
        "vehicles": {
            f"r{i:02d}": {
                "plate": f"P{i:02d}",
                "route": "A" if i % 2 else "B",
                "seats": i % 7,
            }
            for i in range(count)
        }
    }


# 45 plates, 35 of which exist (P00, P02 .. P68) -> two chunks: 30 + 15
WANTED = [f"P{i:02d}" for i in range(0, 90, 2)]


def chunked_client(data=None, **kwargs) -> tuple[Client, MemoryDocumentStore]:
    store = MemoryDocumentStore(make_fleet() if data is None else data)
    return Client(DocumentExecutor(store, **kwargs)), store


def oracle_client(data=None) -> Client:
    """Same data, but the store accepts any `in` size, so nothing is chunked."""
    store = MemoryDocumentStore(make_fleet() if data is None else data, max_in_values=10_000)
    return Client(DocumentExecutor(store, in_limit=10_000))


def queries(store: MemoryDocumentStore) -> int:
    return sum(1 for call in store.calls if call[0] == "query")


# ============================================================================
# Chunk transparency
# ============================================================================


class TestChunkTransparency:

    @pytest.mark.parametrize(
        "build",
        [
            lambda h: h.in_("plate", WANTED),
            lambda h: h.in_("plate", WANTED).order("seats", ascending=False).limit(10),
            lambda h: h.in_("plate", WANTED).order("seats").order("plate", ascending=False).limit(7),
            lambda h: h.eq("route", "B").in_("plate", WANTED).gte("seats", 3).order("seats"),
            lambda h: h.in_("plate", WANTED).limit(4),
            lambda h: h.in_("plate", WANTED).order("seats", ascending=False).single(),
        ],
    )
    async def test_same_result_as_unchunked_query(self, build):
        client, store = chunked_client()

        chunked_result = await build(client.handle("vehicles"))
        expected = await build(oracle_client().handle("vehicles"))

        assert chunked_result.error is None
        assert chunked_result.data == expected.data
        assert queries(store) == 2

    async def test_store_rejects_oversized_in_directly(self):
        """Without chunking the native store refuses more than 30 values."""
        store = MemoryDocumentStore(make_fleet())

        with pytest.raises(DocumentStoreError):
            await store.query(
                "vehicles",
                [FilterCondition("plate", "in", WANTED)],
                [],
                None,
            )

    async def test_in_at_limit_is_not_chunked(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").in_("plate", WANTED[:30])

        assert len(result.data) == 30
        assert queries(store) == 1

    async def test_repeated_values_do_not_duplicate_records(self):
        client, store = chunked_client()
        plates = [f"P{i:02d}" for i in range(20)]

        result = await client.handle("vehicles").in_("plate", plates + plates)

        assert queries(store) == 2
        assert sorted(r["id"] for r in result.data) == [f"r{i:02d}" for i in range(20)]

    async def test_second_oversized_in_filtered_client_side(self):
        client, store = chunked_client()

        def build(h):
            return h.in_("plate", WANTED).in_("seats", list(range(2, 40))).order("plate").limit(12)

        result = await build(client.handle("vehicles"))
        expected = await build(oracle_client().handle("vehicles"))

        assert result.data == expected.data
        assert len(result.data) == 12

    async def test_chunks_run_in_parallel(self):
        class ConcurrencyProbe(MemoryDocumentStore):
            in_flight = 0
            peak = 0

            async def query(self, collection, filters, orderings, limit):
                ConcurrencyProbe.in_flight += 1
                ConcurrencyProbe.peak = max(ConcurrencyProbe.peak, ConcurrencyProbe.in_flight)
                await asyncio.sleep(0)
                try:
                    return await super().query(collection, filters, orderings, limit)
                finally:
                    ConcurrencyProbe.in_flight -= 1

        store = ConcurrencyProbe(make_fleet())
        values = [f"P{i:02d}" for i in range(70)]  # three chunks

        result = await Client(DocumentExecutor(store)).handle("vehicles").in_("plate", values)

        assert len(result.data) == 70
        assert ConcurrencyProbe.peak == 3

    async def test_failed_chunk_fails_whole_read(self):
        class FailingSecondQuery(MemoryDocumentStore):
            async def query(self, collection, filters, orderings, limit):
                result = await super().query(collection, filters, orderings, limit)
                if queries(self) == 2:
                    raise DocumentStoreError("deadline exceeded", code="deadline-exceeded")
                return result

        store = FailingSecondQuery(make_fleet())

        result = await Client(DocumentExecutor(store)).handle("vehicles").in_("plate", WANTED)

        assert result.data is None
        assert result.error.kind == "backend_error"
        assert result.error.code == "deadline-exceeded"


# ============================================================================
# Mutations
# ============================================================================


class TestBatchedWrites:

    async def test_insert_is_one_commit(self):
        client, store = chunked_client({})

        result = await client.handle("vehicles").insert([{"plate": "X1"}, {"plate": "X2"}, {"plate": "X3"}])

        assert len(result.data) == 3
        assert len(store.commits) == 1
        assert all(write.op == "set" for write in store.commits[0])
        assert all(len(record["id"]) == 20 for record in result.data)

    async def test_batches_split_at_store_limit(self):
        client, store = chunked_client({}, batch_limit=2)

        await client.handle("vehicles").insert([{"plate": f"X{i}"} for i in range(5)])

        assert [len(batch) for batch in store.commits] == [2, 2, 1]

    async def test_update_commits_one_batch_per_chunk(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").update({"route": "C"}).in_("plate", WANTED)

        assert len(result.data) == 35
        assert [len(batch) for batch in store.commits] == [30, 5]
        assert all(r["route"] == "C" for r in result.data)
        assert store.collections["vehicles"]["r01"]["route"] == "A"

    async def test_update_without_chunking_is_single_batch(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").update({"seats": 9}).eq("route", "A")

        assert len(result.data) == 35
        assert len(store.commits) == 1

    async def test_update_ignores_limit(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").update({"seats": 9}).eq("route", "A").limit(3)

        assert len(result.data) == 35

    async def test_failed_batch_applies_nothing(self):
        class RejectingCommit(MemoryDocumentStore):
            async def commit(self, collection, writes):
                raise DocumentStoreError("aborted", code="aborted")

        store = RejectingCommit(make_fleet())

        result = await Client(DocumentExecutor(store)).handle("vehicles").update({"seats": 9}).eq("route", "A")

        assert result.error.kind == "backend_error"
        assert all(doc["seats"] != 9 for doc in store.collections["vehicles"].values())

    async def test_memory_commit_is_all_or_nothing(self):
        store = MemoryDocumentStore(make_fleet(2))

        with pytest.raises(DocumentStoreError):
            await store.commit(
                "vehicles",
                [
                    DocumentWrite(op="update", doc_id="r00", data={"seats": 9}),
                    DocumentWrite(op="update", doc_id="missing", data={"seats": 9}),
                ],
            )

        assert store.collections["vehicles"]["r00"]["seats"] == 0

    async def test_delete_chunked(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").delete().in_("plate", WANTED)

        assert result.error is None
        assert len(store.collections["vehicles"]) == 35
        assert [len(batch) for batch in store.commits] == [30, 5]

    async def test_no_match_commits_nothing(self):
        client, store = chunked_client()

        result = await client.handle("vehicles").delete().eq("plate", "nope")

        assert result.error.kind == "not_found"
        assert store.commits == []
