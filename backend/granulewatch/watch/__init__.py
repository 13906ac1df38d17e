"""
Granule group watching.

Polling-based discovery of file groups that arrive incrementally, with
completeness and stability detection before dispatch.

Public API:
    FileEntry, TrackedFile, FileGroup: Data models
    NameFormat: Group id extraction from filenames
    FileScanner: Filesystem traversal with extension filtering
    GroupTracker: Group registry, stability check and single claim
    QualityGate, H5DumpQualityGate, AlwaysQualifies: Content checks
    GroupProcessor, WatchEngine: Orchestration: scan -> claim -> pipeline
"""

from .errors import (
    WatchError,
    NameFormatError,
    ScanError,
    GroupStatError,
)
from .models import FileEntry, TrackedFile, FileGroup
from .naming import NameFormat, match_prefix
from .scanner import FileScanner
from .tracker import GroupTracker
from .quality import QualityGate, H5DumpQualityGate, AlwaysQualifies
from .context import build_seed_context
from .engine import GroupOutcome, GroupProcessor, WatchEngine

__all__ = [
    # Errors
    "WatchError",
    "NameFormatError",
    "ScanError",
    "GroupStatError",
    # Models
    "FileEntry",
    "TrackedFile",
    "FileGroup",
    "NameFormat",
    "match_prefix",
    # Core
    "FileScanner",
    "GroupTracker",
    "QualityGate",
    "H5DumpQualityGate",
    "AlwaysQualifies",
    "build_seed_context",
    "GroupOutcome",
    "GroupProcessor",
    "WatchEngine",
]
