"""
Group tracking and stability detection.

Each discovered file is routed to the group named by its derived id. A group
moves through two phases:

1. Collecting: files are registered until one file per required prefix
   has been seen.
2. Settling: on every later scan round the recorded size/mtime of all
   files is compared against a live stat taken one poll interval later.
   The first round in which nothing was added or changed claims the group.

Callers mark the start of each scan round with begin_round(). A group that
gained or changed a file during a round cannot be claimed in that same
round, even if a later file of the same scan sees matching values.

A claimed group is handed out for dispatch exactly once; later discoveries
for the same id are ignored for the lifetime of the process. Nothing is
persisted, so a restart forgets all claims.

Groups are only opened by files modified after the tracker was created, so
restarting over a tree full of old granules does not re-trigger them.
"""

import logging
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .errors import GroupStatError, NameFormatError
from .models import FileEntry, FileGroup, StatFn
from .naming import NameFormat, match_prefix

logger = logging.getLogger(__name__)


class GroupTracker:
    """
    Registry of open and claimed groups.

    All mutation happens under one lock; the watch loop is the only writer.
    """

    def __init__(
        self,
        required: Sequence[str],
        extension: str = ".h5",
        name_format: Optional[NameFormat] = None,
        launch_time: Optional[datetime] = None,
        stat: StatFn = os.stat,
    ):
        """
        Initialize tracker.

        Args:
            required: Ordered required prefixes; their count is the
                completeness threshold
            extension: Required file extension, including the dot
            name_format: Group id extraction rules
            launch_time: Files modified at or before this never open a
                group (default: now)
            stat: Stat function used by the stability check
        """
        if not required:
            raise ValueError("At least one required prefix is needed")
        self.required: List[str] = list(required)
        self.extension = extension
        self.name_format = name_format or NameFormat()
        self.launch_time = launch_time or datetime.now()
        self._stat = stat

        self._lock = threading.Lock()
        self._round = 0
        self._found: Dict[str, FileGroup] = {}
        self._ready: Dict[str, FileGroup] = {}

    def begin_round(self) -> int:
        """Start a new scan round and return its number."""
        with self._lock:
            self._round += 1
            return self._round

    @property
    def required_count(self) -> int:
        return len(self.required)

    def discover(self, entry: FileEntry) -> Optional[FileGroup]:
        """
        Apply one scan observation.

        Returns:
            The group if this observation claimed it and it should be
            dispatched, otherwise None
        """
        with self._lock:
            return self._discover(entry)

    def _discover(self, entry: FileEntry) -> Optional[FileGroup]:
        if os.path.splitext(entry.name)[1] != self.extension:
            return None

        prefix = match_prefix(entry.name, self.required)
        if prefix is None:
            return None

        try:
            group_id = self.name_format.extract_id(entry.name)
        except NameFormatError as e:
            logger.warning(f"Failed to extract id for a required file {entry.path}: {e}")
            return None

        if group_id in self._ready:
            return None

        group = self._found.get(group_id)
        if group is None:
            if entry.modified <= self.launch_time:
                return None
            group = FileGroup(id=group_id, directory=os.path.dirname(entry.path))
            self._found[group_id] = group

        # Compare against values recorded on the previous scan, before
        # this observation refreshes them.
        if (
            group.required_found == self.required_count
            and group.changed_round != self._round
        ):
            try:
                changed = group.any_changed(self._stat)
            except GroupStatError as e:
                logger.warning(f"Failed to check for group change {group_id}: {e}")
                group.changed_round = self._round
            else:
                if not changed:
                    return self._claim(group)
                group.changed_round = self._round
                logger.debug(f"Group {group_id} still changing")

        tracked = group.files.get(prefix)
        if tracked is None:
            logger.info(f"Found {entry.name}")
            group.register(entry, prefix)
            group.changed_round = self._round
        elif tracked.name != entry.name:
            logger.warning(
                f"Ignoring {entry.name}: group {group_id} already has "
                f"{tracked.name} for {prefix}"
            )
            return None
        else:
            if tracked.size != entry.size or tracked.last_modified != entry.modified:
                group.changed_round = self._round
            tracked.size = entry.size
            tracked.last_modified = entry.modified

        group.touch(entry)
        return None

    def _claim(self, group: FileGroup) -> Optional[FileGroup]:
        """
        Mark a stable group ready and move it to the claimed registry.

        Returns the group for dispatch unless its latest modification is not
        after launch. Groups only open on post-launch files, so that branch
        only guards against clock anomalies.
        """
        group.ready = True
        self._ready[group.id] = self._found.pop(group.id)
        logger.info(f"Group found {group.id}")

        if group.last_modified is not None and group.last_modified > self.launch_time:
            return group

        logger.info(
            f"Group {group.id} last modification time "
            f"{group.last_modified:%Y-%m-%dT%H:%M:%S} too old, skipping"
        )
        return None

    def is_claimed(self, group_id: str) -> bool:
        with self._lock:
            return group_id in self._ready

    def get_group(self, group_id: str) -> Optional[FileGroup]:
        """Return the open or claimed group for an id, if any."""
        with self._lock:
            return self._found.get(group_id) or self._ready.get(group_id)

    def open_groups(self) -> List[str]:
        """Ids of groups still collecting or settling, sorted."""
        with self._lock:
            return sorted(self._found)

    def claimed_groups(self) -> List[str]:
        """Ids of claimed groups, sorted."""
        with self._lock:
            return sorted(self._ready)
