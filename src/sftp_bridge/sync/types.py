"""
Type definitions for the sync engines.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Reserved directory name; everything beneath it (at any depth) is archived.
ARCHIVE_DIR = ".done"

# User-metadata key of the delivered flag; the value "true" means delivered.
DELIVERED_METADATA_KEY = "synched"


class EntryKind(str, Enum):
    """Structural classification of a walked remote entry."""

    DIRECTORY = "directory"
    ARCHIVED = "archived"
    ACTIVE = "active"


@dataclass(frozen=True)
class RemoteEntry:
    """One directory-listing result from the remote endpoint."""

    name: str
    is_dir: bool
    modified: datetime
    size: int = 0
    attributes: Any = None

    @classmethod
    def from_attributes(cls, attr: Any) -> "RemoteEntry":
        """Build from a paramiko ``SFTPAttributes`` (or anything shaped like one)."""
        mode = getattr(attr, "st_mode", None)
        if mode is not None:
            is_dir = stat.S_ISDIR(mode)
        else:
            # Fall back to the ls-style long name ("drwxr-xr-x ...")
            is_dir = str(getattr(attr, "longname", "") or "").startswith("d")
        mtime = int(getattr(attr, "st_mtime", 0) or 0)
        return cls(
            name=attr.filename,
            is_dir=is_dir,
            modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
            size=int(getattr(attr, "st_size", 0) or 0),
            attributes=attr,
        )


@dataclass(frozen=True)
class TraversalContext:
    """State threaded by value through each recursive walk step."""

    remote_root: str
    inside_archive: bool = False

    def descend(self, directory_name: str) -> "TraversalContext":
        return replace(self, inside_archive=self.inside_archive or directory_name == ARCHIVE_DIR)


@dataclass(frozen=True)
class WalkItem:
    entry: RemoteEntry
    path: str
    inside_archive: bool

    @property
    def kind(self) -> EntryKind:
        if self.entry.is_dir:
            return EntryKind.DIRECTORY
        return EntryKind.ARCHIVED if self.inside_archive else EntryKind.ACTIVE


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one pull-sync step."""

    action: str  # "uploaded" | "purged"
    source: str
    destination: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "source": self.source, "destination": self.destination}


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one stored object to one remote destination."""

    stream: str
    bucket: str
    key: str
    remote_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"stream": self.stream, "bucket": self.bucket, "key": self.key, "remote_path": self.remote_path}
