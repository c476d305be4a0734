"""Value objects exchanged with document store implementations."""

from typing import Any

from pydantic import BaseModel, Field


class DocumentSnapshot(BaseModel, frozen=True):
    """Point-in-time copy of a stored document.

    version starts at 1 on creation and increases by one on every write,
    so writers can make their next write conditional on what they read.
    """

    path: str
    data: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(ge=1)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class BatchResult(BaseModel):
    """Outcome of a best-effort grouped write, per document path."""

    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)  # path -> error message

    @property
    def ok(self) -> bool:
        return not self.failed
