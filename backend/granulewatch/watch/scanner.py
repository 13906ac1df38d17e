"""
Filesystem scanner for the watch root.

One full synchronous walk per poll round. Symlinked directories are not
followed.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import ScanError
from .models import FileEntry, StatFn

logger = logging.getLogger(__name__)


class FileScanner:
    """
    Walks a directory tree and stats candidate files.

    Skips hidden files and directories (in-progress copies are commonly
    written under a dot-prefixed temporary name).
    """

    def __init__(
        self,
        extensions: Optional[Iterable[str]] = None,
        skip_hidden: bool = True,
        stat: StatFn = os.stat,
    ):
        """
        Initialize file scanner.

        Args:
            extensions: Only return files with these suffixes (None: all files)
            skip_hidden: Skip files/dirs starting with '.' (default: True)
            stat: Stat function, replaceable in tests
        """
        self.extensions = set(extensions) if extensions is not None else None
        self.skip_hidden = skip_hidden
        self._stat = stat

    def scan(self, root: Path) -> List[FileEntry]:
        """
        Enumerate files under root.

        Returns:
            FileEntry list sorted by path

        Raises:
            ScanError: If root or any directory under it cannot be listed
        """
        root = Path(root)
        if not root.is_dir():
            raise ScanError(f"Watch root is not a directory: {root}")

        errors: List[OSError] = []
        entries: List[FileEntry] = []

        for dirpath, dirnames, filenames in os.walk(
            root, onerror=errors.append, followlinks=False
        ):
            if self.skip_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]

            for filename in filenames:
                if self.skip_hidden and filename.startswith("."):
                    continue
                path = Path(dirpath) / filename
                if self.extensions is not None and path.suffix not in self.extensions:
                    continue
                try:
                    entries.append(FileEntry.from_path(path, stat=self._stat))
                except OSError as e:
                    # Removed or renamed between listing and stat
                    logger.debug(f"Skipping {path}: {e}")

        if errors:
            raise ScanError(f"Failed to enumerate {root}: {errors[0]}")

        return sorted(entries, key=lambda e: e.path)
