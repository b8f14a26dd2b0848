"""Explicit success / failure values returned at the external-client boundary.

Store, Airtable, and LLM clients return :class:`Ok` or :class:`Err` instead of
raw SDK responses, so callers branch on a known shape rather than on untyped
JSON.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    payload: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: str
    detail: Any = None

    @property
    def ok(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}" if self.detail is not None else self.kind


Result = Union[Ok[T], Err]
