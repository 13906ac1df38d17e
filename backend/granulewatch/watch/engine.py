"""
Watch engine: orchestration for unattended group processing.

Coordinates:
1. Filesystem scanning (via FileScanner)
2. Completeness and stability detection (via GroupTracker)
3. Content qualification (via QualityGate)
4. Pipeline dispatch (via GroupProcessor on a worker pool)

Warn-and-continue semantics: a failed scan round, a failed stat or a failed
pipeline run is logged and never stops polling. A failed group is not
retried within the process.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, TYPE_CHECKING

from granulewatch.pipeline import CommandRunner, Pipeline, PipelineError

from .context import build_seed_context
from .errors import ScanError
from .models import FileGroup
from .quality import AlwaysQualifies, H5DumpQualityGate, QualityGate
from .scanner import FileScanner
from .tracker import GroupTracker

if TYPE_CHECKING:
    from granulewatch.config import WatcherConfig

logger = logging.getLogger(__name__)


class GroupOutcome(str, Enum):
    """Result of handling one claimed group."""

    PROCESSED = "processed"  # Pipeline completed
    FAILED = "failed"  # Pipeline raised; remaining steps skipped
    NOT_QUALIFIED = "not_qualified"  # Rejected by the quality gate


class GroupProcessor:
    """
    Runs the pipeline for a claimed group.

    Stateless apart from its collaborators, so it is safe to call from
    several worker threads.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        required: Sequence[str],
        version: str,
        output_dir: str,
        gate: Optional[QualityGate] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.pipeline = pipeline
        self.required = list(required)
        self.version = version
        self.output_dir = output_dir
        self.gate = gate or AlwaysQualifies()
        self.runner = runner

    def _qualifies(self, path: str) -> bool:
        try:
            return self.gate.qualifies(path)
        except Exception as e:
            # Fail open: an unusable check must not drop data
            logger.warning(f"Quality check failed for {path}, processing anyway: {e}")
            return True

    def process(self, group: FileGroup) -> GroupOutcome:
        """
        Qualify, seed and run the pipeline for one group.

        Pipeline errors are logged with their captured command output.
        """
        representative = group.representative(self.required)
        if representative is not None and not self._qualifies(representative.path):
            logger.info(f"No night data for {group.id}, ignoring")
            return GroupOutcome.NOT_QUALIFIED

        context = build_seed_context(group, self.version, self.output_dir)
        try:
            result = self.pipeline.execute(context, self.runner)
        except PipelineError as e:
            logger.error(
                f"Pipeline failed for {group.id} with the following error: {e}\n{e.output}"
            )
            return GroupOutcome.FAILED

        logger.info(f"Processing success {group.id} ({result.summary()})")
        return GroupOutcome.PROCESSED


class WatchEngine:
    """
    Polling loop over one watch root.

    Each round enumerates the whole tree synchronously and feeds every file
    to the tracker. Groups claimed during the round are submitted to a
    bounded worker pool so long pipelines do not delay the next scan.
    """

    def __init__(
        self,
        root: Path,
        tracker: GroupTracker,
        processor: GroupProcessor,
        period: float,
        scanner: Optional[FileScanner] = None,
        max_workers: int = 1,
    ):
        """
        Initialize watch engine.

        Args:
            root: Directory tree to watch
            tracker: Group registry (owned by this engine's polling thread)
            processor: Handles claimed groups
            period: Seconds between scan rounds
            scanner: Directory scanner (default: filter on tracker extension)
            max_workers: Concurrent pipeline runs
        """
        self.root = Path(root)
        self.tracker = tracker
        self.processor = processor
        self.period = period
        self.scanner = scanner or FileScanner(extensions=[tracker.extension])
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="granulewatch-pipeline"
        )

    @classmethod
    def from_config(
        cls,
        config: "WatcherConfig",
        launch_time: Optional[datetime] = None,
        gate: Optional[QualityGate] = None,
        runner: Optional[CommandRunner] = None,
    ) -> "WatchEngine":
        """Wire tracker, gate and processor from a loaded configuration."""
        tracker = GroupTracker(
            required=config.required,
            extension=config.extension,
            name_format=config.name_format,
            launch_time=launch_time,
        )
        if gate is None:
            if config.quality_gate.enabled:
                gate = H5DumpQualityGate(binary=config.quality_gate.binary)
            else:
                gate = AlwaysQualifies()
        processor = GroupProcessor(
            pipeline=config.pipeline,
            required=config.required,
            version=config.version,
            output_dir=config.output_dir,
            gate=gate,
            runner=runner,
        )
        return cls(
            root=Path(config.watch_dir),
            tracker=tracker,
            processor=processor,
            period=config.period,
            max_workers=config.max_workers,
        )

    def scan_once(self) -> List["Future[GroupOutcome]"]:
        """
        Run one scan round.

        Returns:
            Futures for groups dispatched this round (may be empty)
        """
        try:
            entries = self.scanner.scan(self.root)
        except ScanError as e:
            logger.warning(f"Scan of {self.root} failed, skipping round: {e}")
            return []

        round_number = self.tracker.begin_round()
        logger.debug(f"Round {round_number}: scanned {len(entries)} file(s) under {self.root}")

        dispatched = []
        for entry in entries:
            group = self.tracker.discover(entry)
            if group is not None:
                dispatched.append(self._dispatch(group))
        return dispatched

    def _dispatch(self, group: FileGroup) -> "Future[GroupOutcome]":
        # The tracker has already claimed the group at this point
        future = self._executor.submit(self.processor.process, group)
        future.add_done_callback(self._log_unexpected)
        return future

    @staticmethod
    def _log_unexpected(future: "Future[GroupOutcome]") -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Unexpected error processing group: {error!r}")

    def run_rounds(self, rounds: int) -> List[GroupOutcome]:
        """
        Run a fixed number of scan rounds, then wait for every dispatched group.

        A group needs at least two rounds: one to collect its files and one,
        a period later, to confirm they are stable.

        Returns:
            Outcomes of the groups dispatched during these rounds
        """
        futures: List["Future[GroupOutcome]"] = []
        for index in range(rounds):
            if index:
                time.sleep(self.period)
            futures.extend(self.scan_once())
        wait_for(futures)
        return [f.result() for f in futures if f.exception() is None]

    def run_forever(self, stop: Optional[threading.Event] = None) -> None:
        """
        Poll until stop is set (or forever).

        Sleeps one period between rounds.
        """
        stop = stop or threading.Event()
        while not stop.is_set():
            self.scan_once()
            stop.wait(self.period)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for in-flight runs."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "WatchEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown(wait=True)
