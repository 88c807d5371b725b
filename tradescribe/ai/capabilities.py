"""
Pluggable external capabilities.

Extraction, embedding, answering and similarity search are optional
collaborators. They report failure as a value (Failure) instead of raising, so every
caller's fallback branch is an explicit case.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Protocol, Sequence, TypeVar, Union, runtime_checkable

from tradescribe.utils.exceptions import CapabilityError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    error: CapabilityError

    @classmethod
    def of(cls, message: str, status_code: Optional[int] = None) -> "Failure":
        return cls(CapabilityError(message, status_code))

    @property
    def reason(self) -> str:
        return self.error.message


Result = Union[Ok[T], Failure]


@runtime_checkable
class ExtractionCapability(Protocol):
    async def extract(
        self,
        note: str,
        forced_target_id: Optional[str],
        open_trade_context: Sequence[Dict[str, Any]],
    ) -> Result[Dict[str, Any]]:
        """Return the raw JSON object produced for the note."""
        ...


@runtime_checkable
class EmbeddingCapability(Protocol):
    async def embed(self, text: str) -> Result[List[float]]:
        ...


@runtime_checkable
class VectorIndex(Protocol):
    """External similarity search over trade embeddings."""

    async def upsert(self, trade_id: str, vector: Sequence[float]) -> Result[None]:
        ...

    async def query(self, vector: Sequence[float], filter_: Any, limit: int) -> Result[List[str]]:
        ...


@runtime_checkable
class AnswerCapability(Protocol):
    async def answer(self, query: str, context: Sequence[str]) -> Result[str]:
        """Free-text answer to the query, grounded on the given trade descriptions."""
        ...
