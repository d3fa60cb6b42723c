"""
Data types shared by the multipart orchestrator and the listing engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


@dataclass(frozen=True, slots=True)
class PartPlan:
    """Validated part layout of a multipart session."""

    part_size: int
    part_count: int

    @property
    def max_part_id(self) -> int:
        """Highest (0-based) part ID of the session."""
        return self.part_count - 1


@dataclass(frozen=True, slots=True)
class UploadSession:
    """Result of initiating a multipart upload."""

    upload_id: str
    path: str
    part_size: int


class BreakpointState(BaseModel):
    """
    Persisted state of a suspended multipart upload.

    Written only when the retry budget for a part is exhausted and consumed by the next resume attempt,
    which continues at ``next_part_id``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    upload_id: str
    next_part_id: int = Field(ge=0)
    part_size: int = Field(gt=0)
    max_part_id: int = Field(ge=0)
    checksum_enabled: bool = False
    pending_fragment_checksum: str = ""

    @model_validator(mode="after")
    def validate_part_range(self) -> Self:
        if self.next_part_id > self.max_part_id:
            raise ValueError(f"next_part_id ({self.next_part_id}) exceeds max_part_id ({self.max_part_id})")
        return self

    @property
    def expected_min_size(self) -> int:
        """Smallest source size that still reaches the last part of the session."""
        return self.max_part_id * self.part_size + 1


@dataclass
class ObjectMetadata:
    """Metadata of a remote file or directory."""

    name: str
    size: int = 0
    content_type: str = ""
    is_dir: bool = False
    checksum: str = ""
    mod_time: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    # set by the listing traversal when an expanded directory had no descendants
    empty_dir: bool = False


@dataclass(frozen=True, slots=True)
class MultipartUploadFile:
    """An unfinished (or finished) multipart upload as reported by the service."""

    key: str
    upload_id: str
    completed: bool
    created_at: int


@dataclass(frozen=True, slots=True)
class UploadedPart:
    """A part already stored for a multipart session."""

    part_id: int
    etag: str
    size: int
