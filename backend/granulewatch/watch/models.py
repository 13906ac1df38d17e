"""
Watch data models.

A FileGroup collects the files that share one derived id. It is complete
when it holds one file per required prefix, and stable when none of those
files changed size or modification time across a full poll interval.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .errors import GroupStatError

StatFn = Callable[[str], os.stat_result]


def mtime_of(stat: os.stat_result) -> datetime:
    """Modification time of a stat result as a naive local datetime."""
    return datetime.fromtimestamp(stat.st_mtime)


class FileEntry(BaseModel):
    """One file observed by a directory scan."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., description="Full path to the file")
    name: str = Field(..., description="Base filename")
    size: int = Field(..., description="Size in bytes at scan time")
    modified: datetime = Field(..., description="Modification time at scan time")

    @classmethod
    def from_path(cls, path: Path, stat: StatFn = os.stat) -> "FileEntry":
        """
        Build an entry from a live stat.

        Raises:
            OSError: If the file cannot be stat'ed
        """
        st = stat(str(path))
        return cls(
            path=str(path),
            name=path.name,
            size=st.st_size,
            modified=mtime_of(st),
        )


class TrackedFile(BaseModel):
    """A required file registered in a group."""

    model_config = ConfigDict(extra="forbid")

    prefix: str = Field(..., description="Required prefix this file matched")
    name: str
    path: str
    size: int
    last_modified: datetime

    @property
    def stem(self) -> str:
        """Filename without its extension."""
        return os.path.splitext(self.name)[0]


class FileGroup(BaseModel):
    """
    Files sharing one derived id.

    Invariants:
    - required_found equals len(files) and never decreases
    - required_found never exceeds the configured required count
    - ready is set once, when the group is claimed for dispatch
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    directory: str = Field(..., description="Directory of the first discovered file")
    files: Dict[str, TrackedFile] = Field(
        default_factory=dict, description="Required prefix -> file"
    )
    required_found: int = 0
    last_modified: Optional[datetime] = None
    changed_round: int = Field(
        default=-1, description="Last scan round in which a file was added or changed"
    )
    ready: bool = False

    def register(self, entry: FileEntry, prefix: str) -> TrackedFile:
        """Add a newly discovered file for a prefix not yet in the group."""
        tracked = TrackedFile(
            prefix=prefix,
            name=entry.name,
            path=entry.path,
            size=entry.size,
            last_modified=entry.modified,
        )
        self.files[prefix] = tracked
        self.required_found += 1
        return tracked

    def touch(self, entry: FileEntry) -> None:
        """Advance the group's latest modification time."""
        if self.last_modified is None or entry.modified > self.last_modified:
            self.last_modified = entry.modified

    def any_changed(self, stat: StatFn = os.stat) -> bool:
        """
        Compare a live stat of every tracked file with its recorded values.

        Returns:
            True if at least one file's size or mtime differs

        Raises:
            GroupStatError: If any tracked file cannot be stat'ed
        """
        for tracked in self.files.values():
            try:
                st = stat(tracked.path)
            except OSError as e:
                raise GroupStatError(
                    f"Cannot stat {tracked.path} in group {self.id}: {e}"
                ) from e
            if st.st_size != tracked.size or mtime_of(st) != tracked.last_modified:
                return True
        return False

    def representative(self, required: Sequence[str]) -> Optional[TrackedFile]:
        """First file in required-prefix order, used for content checks."""
        for prefix in required:
            if prefix in self.files:
                return self.files[prefix]
        return None
