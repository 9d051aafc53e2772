"""Uniform {data, error} outcome returned by every executor."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

NOT_FOUND = "not_found"
BACKEND_ERROR = "backend_error"


class ErrorInfo(BaseModel):
    """Machine-checkable error kind plus a human-readable message."""

    kind: Literal["not_found", "backend_error"]
    message: str
    code: str | int | None = None  # native store code, preserved opaquely


class ResultEnvelope(BaseModel):
    """
    Outcome of one query or mutation.

    Callers branch on `error` only. An empty `data` list is a successful
    read that matched nothing, never a failure.
    """

    data: Any = None
    error: ErrorInfo | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, data: Any) -> ResultEnvelope:
        return cls(data=data, error=None)

    @classmethod
    def not_found(cls, message: str = "Not found") -> ResultEnvelope:
        return cls(data=None, error=ErrorInfo(kind=NOT_FOUND, message=message))

    @classmethod
    def backend_error(cls, message: str, code: Any = None) -> ResultEnvelope:
        if code is not None and not isinstance(code, (str, int)):
            code = str(code)
        return cls(data=None, error=ErrorInfo(kind=BACKEND_ERROR, message=message, code=code))

    @classmethod
    def from_exception(cls, exc: BaseException) -> ResultEnvelope:
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        return cls.backend_error(str(message), getattr(exc, "code", None))
