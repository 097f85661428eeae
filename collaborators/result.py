# result.py — Explicit success / failure values for collaborator calls
"""
result.py — CollaboratorResult

Collaborator calls return a CollaboratorResult instead of raising. The
caller decides what a failure means, usually by `or_else(fallback)`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from analytics.errors import CollaboratorUnavailable

T = TypeVar("T")


@dataclass(frozen=True)
class CollaboratorResult(Generic[T]):
    value: T | None = None
    error: CollaboratorUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> CollaboratorResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: CollaboratorUnavailable | str) -> CollaboratorResult[T]:
        if isinstance(error, str):
            error = CollaboratorUnavailable(error)
        return cls(error=error)

    def or_else(self, fallback: Callable[[CollaboratorUnavailable], T]) -> T:
        """Value on success, otherwise `fallback(error)`."""
        if self.ok:
            return self.value
        return fallback(self.error)

    def unwrap(self) -> T:
        if not self.ok:
            raise self.error
        return self.value
