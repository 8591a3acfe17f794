from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

ERROR_HASH_PREFIX = "error-"


class CaptureMode(str, Enum):
    COMPOSITOR = "compositor"
    PIXEL = "pixel"


class ComparisonStatus(str, Enum):
    CREATED = "created"
    MATCH = "match"
    MISMATCH = "mismatch"


class Command(BaseModel):
    """A single normalized paint command."""

    method: str
    params: Dict[str, Any] = Field(default_factory=dict)


class Viewport(BaseModel):
    width: int = 0
    height: int = 0


class ArtifactMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    viewport: Viewport = Field(default_factory=Viewport)
    user_agent: str = Field("", alias="userAgent")


class Artifact(BaseModel):
    """
    One stored capture. Fingerprint artifacts carry `commands`,
    pixel artifacts carry `image_bytes`; never both.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    timestamp: str
    mode: CaptureMode
    hash: Optional[str] = None
    layer_count: int = Field(0, alias="layerCount")
    commands: Optional[List[Command]] = None
    image_bytes: Optional[bytes] = Field(None, exclude=True)
    metadata: ArtifactMetadata = Field(default_factory=ArtifactMetadata)
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "Artifact":
        if self.mode is CaptureMode.COMPOSITOR:
            if self.commands is None or self.image_bytes is not None:
                raise ValueError("compositor artifacts must carry commands and no image bytes")
        else:
            if self.image_bytes is None or self.commands is not None:
                raise ValueError("pixel artifacts must carry image bytes and no commands")
        return self

    @property
    def is_error(self) -> bool:
        return bool(self.hash) and self.hash.startswith(ERROR_HASH_PREFIX)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


@dataclass
class Layer:
    """A compositor layer and the snapshot taken from it. Never persisted."""

    layer_id: str
    snapshot_id: Optional[str] = None


@dataclass
class Diff:
    added: List[Tuple[int, Command]] = field(default_factory=list)
    removed: List[Tuple[int, Command]] = field(default_factory=list)
    modified: List[Tuple[int, Command, Command]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def to_dict(self) -> dict:
        return {
            "added": [{"index": i, "command": c.model_dump()} for i, c in self.added],
            "removed": [{"index": i, "command": c.model_dump()} for i, c in self.removed],
            "modified": [
                {"index": i, "baseline": b.model_dump(), "actual": a.model_dump()}
                for i, b, a in self.modified
            ],
        }


@dataclass
class PixelComparison:
    match: bool
    mismatched_pixels: int
    total_pixels: int
    diff_percentage: float
    resized: bool = False
    # PIL image with mismatches painted in the alert colour
    diff_image: Any = None


@dataclass
class ComparisonResult:
    status: ComparisonStatus
    mode: CaptureMode
    baseline_ref: Optional[str] = None
    actual_ref: Optional[str] = None
    diff: Optional[Diff] = None
    layer_count: Dict[str, int] = field(default_factory=dict)
    pixels: Optional[PixelComparison] = None

    @property
    def match(self) -> bool:
        return self.status is not ComparisonStatus.MISMATCH
