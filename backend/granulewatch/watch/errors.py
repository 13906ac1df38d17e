"""
Watch error hierarchy.

All errors are non-fatal to the watcher. They indicate that one file, one
group or one scan round was skipped; polling continues.
"""


class WatchError(Exception):
    """Base exception for watch failures."""

    pass


class NameFormatError(WatchError):
    """Filename does not decompose into a group id."""

    pass


class ScanError(WatchError):
    """Watch root could not be enumerated this round."""

    pass


class GroupStatError(WatchError):
    """A tracked file could not be stat'ed during the stability check."""

    pass
