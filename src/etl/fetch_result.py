"""Boundary result type: data or FetchError, never an exception into the core."""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class FetchError:
    source: str
    message: str


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any) -> "FetchResult":
        return cls(data=data)

    @classmethod
    def failure(cls, source: str, message: str) -> "FetchResult":
        return cls(error=FetchError(source=source, message=message))
