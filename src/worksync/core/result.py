# src/worksync/core/result.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import friendly_error_message

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """
    Success/failure outcome of a repository or use-case call.

    Failures carry a human-readable message; there is no error-code taxonomy.
    """

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, message: str) -> Result[T]:
        return cls(error=message or "Operation failed")

    @classmethod
    def from_exception(cls, err: BaseException, default: str) -> Result[T]:
        return cls.failure(friendly_error_message(err, default))
