"""
Pydantic models for PanelSync.

Shared data models across the hot-folder pipeline and the HTTP surface.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =====================================================
# Watch Models
# =====================================================

class HandlerKind(str, Enum):
    """What a watched folder's files are handed to."""
    JOBS = "jobs"
    GEOMETRY_IMPORT = "geometry-import"


class FileEventKind(str, Enum):
    """File change kinds forwarded by a directory watcher."""
    CREATED = "created"
    MODIFIED = "modified"
    RENAMED = "renamed"


class WatchedFolder(BaseModel):
    """A directory, one filename glob and the handler its files go to."""
    model_config = ConfigDict(frozen=True)

    path: Path
    pattern: str
    kind: HandlerKind


class RawFileEvent(BaseModel):
    """One OS notification about a file in a watched folder."""
    model_config = ConfigDict(frozen=True)

    path: Path
    kind: FileEventKind
    observed_at: datetime


class StabilityOutcome(BaseModel):
    """Result of one stability check."""
    model_config = ConfigDict(frozen=True)

    path: Path
    stable: bool
    final_size: Optional[int] = None
    final_mtime_ns: Optional[int] = None


class AttemptOutcome(str, Enum):
    """How a single processing attempt ended."""
    DISCARDED = "discarded"  # path already in flight
    UNSTABLE = "unstable"
    UNSUPPORTED = "unsupported"
    INVALID = "invalid"
    SKIPPED = "skipped"
    DONE = "done"
    FAILED = "failed"


# =====================================================
# Job Descriptor Models
# =====================================================

class JobKind(str, Enum):
    """Job kinds this add-in knows how to run."""
    EXPORT_PANEL_AS_OBJ = "ExportPanelAsOBJ"


class ExportPanelAsObjJob(BaseModel):
    """Export an open part document as OBJ into ``out_folder``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: Literal["ExportPanelAsOBJ"] = Field(alias="Kind")
    source_document_path: str = Field(alias="IptPath")
    out_folder: str = Field(alias="OutFolder")
    panel_id: str = Field(default="P001", alias="PanelId")
    revision: str = Field(default="A", alias="Rev")
    bring_to_front: bool = Field(default=True, alias="BringToFront")

    @field_validator("panel_id", "revision", "bring_to_front", mode="before")
    @classmethod
    def _null_means_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("source_document_path", "out_folder")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


# =====================================================
# Response Models
# =====================================================

class WatcherStatus(BaseModel):
    """Liveness of one directory watcher."""
    path: str
    pattern: str
    kind: HandlerKind
    alive: bool
    failure: Optional[str] = None


class ServiceStatus(BaseModel):
    """Snapshot of the hot-folder service."""
    active: bool
    hot_root: str
    watchers: List[WatcherStatus] = []
    in_flight: List[str] = []
    outcomes: Dict[str, int] = {}


class OperationStatus(BaseModel):
    """Generic operation status."""
    status: str
    message: str
    details: Optional[Dict[str, str]] = None
