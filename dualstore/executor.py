"""
Executor interface.

An executor resolves one QuerySpec against one backing store. Concrete
executors implement the four operations; run() is the single execution
boundary that turns unexpected failures into backend_error envelopes.
"""

from __future__ import annotations

import logging

from dualstore.envelope import ResultEnvelope
from dualstore.predicates import project
from dualstore.types import QuerySpec, Record

logger = logging.getLogger(__name__)


class Executor:
    """Abstract executor. Subclasses implement read/insert/update/delete."""

    name = "executor"

    async def run(self, spec: QuerySpec) -> ResultEnvelope:
        """Execute a spec. Never raises; failures come back as backend_error."""
        kind = spec.kind
        try:
            if kind == "insert":
                return await self.insert(spec)
            if kind == "update":
                return await self.update(spec)
            if kind == "delete":
                return await self.delete(spec)
            return await self.read(spec)
        except Exception as e:
            logger.exception("%s: %s on %s failed", self.name, kind, spec.collection)
            return ResultEnvelope.from_exception(e)

    async def read(self, spec: QuerySpec) -> ResultEnvelope:
        raise NotImplementedError

    async def insert(self, spec: QuerySpec) -> ResultEnvelope:
        raise NotImplementedError

    async def update(self, spec: QuerySpec) -> ResultEnvelope:
        raise NotImplementedError

    async def delete(self, spec: QuerySpec) -> ResultEnvelope:
        raise NotImplementedError

    # -- shared result shaping --

    def _read_result(self, spec: QuerySpec, records: list[Record]) -> ResultEnvelope:
        """Project, then honor single(): first record or not_found."""
        selected = [project(record, spec.select_fields) for record in records]
        if spec.single:
            if not selected:
                return ResultEnvelope.not_found()
            return ResultEnvelope.ok(selected[0])
        return ResultEnvelope.ok(selected)

    def _mutation_result(self, spec: QuerySpec, records: list[Record]) -> ResultEnvelope:
        return ResultEnvelope.ok(records[0] if spec.single else records)


def insert_items(spec: QuerySpec) -> list[Record]:
    payload = spec.insert_payload
    if isinstance(payload, list):
        return payload
    return [payload] if payload is not None else []


def insert_result(spec: QuerySpec, written: list[Record]) -> ResultEnvelope:
    """Mirror the payload shape: a list in, a list out."""
    if isinstance(spec.insert_payload, list):
        return ResultEnvelope.ok(written)
    return ResultEnvelope.ok(written[0] if written else None)
