from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from member_directory.core.exceptions import RemoteReadError

T = TypeVar("T")


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a fail-soft read: data on success, the reason on failure."""

    data: T
    error: Optional[RemoteReadError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "ReadResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: RemoteReadError, empty: T) -> "ReadResult[T]":
        return cls(data=empty, error=error)
