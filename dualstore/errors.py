"""Exceptions raised by dualstore backends and handles."""

from __future__ import annotations

from typing import Any


class StoreError(Exception):
    """A backing store rejected or failed an operation."""

    def __init__(self, message: str, code: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code


class TreeStoreError(StoreError):
    """Tree store (Realtime Database) failure."""
    pass


class DocumentStoreError(StoreError):
    """Document store (Firestore) failure."""
    pass


class HandleConsumedError(RuntimeError):
    """A QueryHandle was consumed more than once."""
    pass
