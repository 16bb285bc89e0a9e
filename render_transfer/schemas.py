"""
Transfer pipeline schemas.
Type-safe contracts for download sources, upload requests and results.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Download Sources
# ============================================================================

class ObjectStoreRef(BaseModel):
    """An object inside the managed asset bucket."""
    kind: Literal["store"] = "store"
    path: str = Field(min_length=1)


class HttpRef(BaseModel):
    """Any HTTP(S) resource."""
    kind: Literal["http"] = "http"
    url: str = Field(min_length=1)


TransferSource = Annotated[Union[ObjectStoreRef, HttpRef], Field(discriminator="kind")]


# ============================================================================
# Upload
# ============================================================================

class UploadStrategy(str, Enum):
    """How a file is sent to the object store."""
    SINGLE = "single"
    MULTIPART = "multipart"


class UploadSpec(BaseModel):
    """Immutable input to the uploader."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    file_path: str
    file_size: int = Field(ge=0, description="Must equal the actual file size")
    content_type: str
    content_disposition: str


class UploadResult(BaseModel):
    """Outcome of a completed upload."""
    strategy: UploadStrategy
    bucket: str
    key: str
    size_bytes: int
    part_count: int = 0
    etag: Optional[str] = None


@dataclass(frozen=True)
class PartRange:
    """Byte range [start, end) of one multipart part."""
    part_number: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class PartPlan:
    """Split of a file into fixed-size parts; only the last may be short."""
    file_size: int
    part_size: int

    @property
    def total_parts(self) -> int:
        return math.ceil(self.file_size / self.part_size)

    def part(self, part_number: int) -> PartRange:
        start = (part_number - 1) * self.part_size
        end = min(part_number * self.part_size, self.file_size)
        return PartRange(part_number=part_number, start=start, end=end)

    def __iter__(self) -> Iterator[PartRange]:
        for part_number in range(1, self.total_parts + 1):
            yield self.part(part_number)


@dataclass
class CompletedPart:
    """A part acknowledged by the store."""
    part_number: int
    etag: str


@dataclass
class MultipartSession:
    """State of one in-flight multipart upload. Never persisted or reused."""
    upload_id: str
    completed_parts: List[CompletedPart] = field(default_factory=list)

    def record(self, part_number: int, etag: str) -> None:
        if self.completed_parts and part_number <= self.completed_parts[-1].part_number:
            raise ValueError(
                f"Part {part_number} recorded after part {self.completed_parts[-1].part_number}"
            )
        self.completed_parts.append(CompletedPart(part_number=part_number, etag=etag))

    def as_multipart_upload(self) -> dict:
        """Body for complete_multipart_upload (parts in ascending order)."""
        return {
            "Parts": [
                {"PartNumber": part.part_number, "ETag": part.etag}
                for part in self.completed_parts
            ]
        }


# ============================================================================
# Publish
# ============================================================================

class PublishResult(BaseModel):
    """Render output location handed back to the job orchestrator."""
    key: str
    download_url: str
    size_bytes: Optional[int] = None
    skipped: bool = False
