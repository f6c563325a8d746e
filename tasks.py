"""Background indexing task: single-flight start, two-tier cancellation."""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from config import CANCEL_GRACE_SECONDS
from log_utils import get_logger
from repository import ImageRepository
from scanner import IndexReport, walk_directory

logger = get_logger(__name__)

Scanner = Callable[..., Awaitable[IndexReport]]


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class IndexStartResult:
    already_running: bool
    last_indexed: Optional[int]


@dataclass
class IndexStatus:
    running: bool
    last_indexed: Optional[int]


class TaskManager:
    """Owns the one indexing task the application may run at a time.

    start/cancel/status are the only ways to change or observe it.
    Cancellation first sets an event the scan polls before every root and
    file; if the scan has not stopped after a short grace period the asyncio
    task is cancelled outright. Either way, files already written stay
    written.
    """

    def __init__(
        self,
        repository: ImageRepository,
        last_indexed: Optional[int] = None,
        on_complete: Optional[Callable[[int], None]] = None,
        grace_seconds: float = CANCEL_GRACE_SECONDS,
        scanner: Scanner = walk_directory,
    ):
        self.repository = repository
        self.last_indexed = last_indexed
        self._on_complete = on_complete
        self._grace_seconds = grace_seconds
        self._scan = scanner
        self._task: Optional[asyncio.Task] = None
        self._cancel = asyncio.Event()
        self._lock = asyncio.Lock()
        self.last_reports: list[IndexReport] = []

    @property
    def state(self) -> TaskState:
        if self._task is not None and not self._task.done():
            return TaskState.RUNNING
        return TaskState.IDLE

    @property
    def running(self) -> bool:
        return self.state is TaskState.RUNNING

    async def start(self, roots: Iterable[str], force: bool = False) -> IndexStartResult:
        async with self._lock:
            if self.running:
                logger.info("Indexation task is already running")
                return IndexStartResult(already_running=True, last_indexed=self.last_indexed)
            self._cancel.clear()
            # A forced run rehashes everything, so it ignores the mtime cutoff.
            cutoff = None if force else self.last_indexed
            self._task = asyncio.create_task(
                self._run(list(roots), force, cutoff), name="index-files"
            )
            logger.info("Started new indexation task (force=%s)", force)
            return IndexStartResult(already_running=False, last_indexed=self.last_indexed)

    async def cancel(self) -> bool:
        """Stop the running scan. Returns whether one was running."""
        async with self._lock:
            task = self._task
            if task is None or task.done():
                logger.info("No indexation task was running")
                return False
            self._cancel.set()

        await asyncio.sleep(self._grace_seconds)
        if not task.done():
            logger.info("Indexation task did not stop in %.2fs, aborting", self._grace_seconds)
            task.cancel()
        await asyncio.wait({task})
        logger.info("Indexation task has been canceled")
        return True

    def status(self) -> IndexStatus:
        return IndexStatus(running=self.running, last_indexed=self.last_indexed)

    async def wait(self) -> None:
        """Wait for the current task, if any, to finish."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _run(self, roots: list[str], force: bool, cutoff: Optional[int]) -> None:
        self.last_reports = []
        try:
            for root in roots:
                if self._cancel.is_set():
                    logger.info("Indexation cancelled before %s", root)
                    return
                report = await self._scan(root, self.repository, force, cutoff, self._cancel)
                self.last_reports.append(report)
                if report.cancelled:
                    return

            completed = int(time.time())
            async with self._lock:
                self.last_indexed = completed
            if self._on_complete is not None:
                try:
                    await asyncio.to_thread(self._on_complete, completed)
                except Exception:
                    logger.exception("Could not persist last indexed timestamp")
            logger.info("Indexation finished at %d", completed)
        except asyncio.CancelledError:
            logger.info("Indexation task aborted")
            raise
        except Exception:
            logger.exception("Indexation task failed")
