"""
Change-Aware Watcher
=====================

Re-assembles a snapshot whenever watched artifacts change, and periodically
so that purely time-based status transitions (working -> completed -> idle)
are noticed even when nothing is written.

Pipeline::

    watchdog thread --call_soon_threadsafe--> per-path stability timer (50 ms)
        --> debounce timer (100 ms, restarted by every settled path)
        --> queue.put(DEBOUNCE) ----------------\
                                                 +--> consumer task --> listeners
    periodic task (15 s) --> queue.put(PERIODIC)/

Debounce passes always publish. Periodic passes publish only when the set
of agents or any agent's status differs from the last published snapshot.

Example:
    watcher = SnapshotWatcher(assembler)
    watcher.add_listener(lambda snap: print(len(snap.agents)))
    initial = await watcher.get_initial_snapshot()
    watcher.start()
    ...
    await watcher.stop()
"""

import asyncio
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Pattern, Sequence

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from teamwatch.constants import (
    PERIODIC_REEVAL_SECONDS,
    WATCHER_DEBOUNCE_SECONDS,
    WRITE_STABILITY_SECONDS,
)
from teamwatch.exceptions import WatcherError
from teamwatch.models import Snapshot
from teamwatch.services.assembler import SnapshotAssembler

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]
ErrorListener = Callable[[WatcherError], None]

_GLOB_CHARS = set("*?[")
_CHANGE_EVENTS = (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED)


class Trigger(str, Enum):
    """Why an assembly pass was requested."""
    DEBOUNCE = "debounce"
    PERIODIC = "periodic"


def has_status_changed(previous: Optional[Snapshot], current: Snapshot) -> bool:
    """
    True when ``current`` differs from ``previous`` in agent count or in the
    status of any agent (looked up by id). No previous snapshot counts as a
    change.
    """
    if previous is None:
        return True
    if len(previous.agents) != len(current.agents):
        return True
    old_status = {agent.id: agent.status for agent in previous.agents}
    return any(old_status.get(agent.id) != agent.status for agent in current.agents)


# =============================================================================
# Watch Target Matching
# =============================================================================


def glob_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a path glob into a regex.

    ``**`` matches any number of path segments (including none), ``*`` and
    ``?`` never cross a ``/``.
    """
    pattern = os.path.normpath(pattern)
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


def static_prefix(pattern: str) -> Path:
    """Leading directory of ``pattern`` that contains no glob characters."""
    parts = Path(pattern).parts
    static: List[str] = []
    for part in parts:
        if _GLOB_CHARS & set(part):
            break
        static.append(part)
    if len(static) == len(parts):
        # a plain file path: watch its directory
        static = static[:-1]
    return Path(*static) if static else Path(os.sep)


def nearest_existing_dir(path: Path) -> Path:
    current = path
    while not current.is_dir():
        if current.parent == current:
            break
        current = current.parent
    return current


def plan_schedules(targets: Sequence[str]) -> Dict[Path, bool]:
    """
    Map each directory to observe onto whether it must be watched recursively.

    A target is watched from its nearest existing directory; recursion is
    needed for ``**`` patterns and whenever that directory sits above the
    target's own directory.
    """
    plan: Dict[Path, bool] = {}
    for target in targets:
        wanted = static_prefix(target)
        base = nearest_existing_dir(wanted)
        recursive = "**" in target or base != wanted
        plan[base] = plan.get(base, False) or recursive
    return plan


class ChangeHandler(FileSystemEventHandler):
    """Forwards create/modify/delete/move events whose path matches a target."""

    def __init__(self, patterns: Sequence[Pattern[str]], on_change: Callable[[str], None]):
        super().__init__()
        self._patterns = list(patterns)
        self._on_change = on_change

    def matches(self, path: str) -> bool:
        normalized = os.path.normpath(path)
        return any(p.match(normalized) for p in self._patterns)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        for path in (event.src_path, getattr(event, "dest_path", "")):
            if isinstance(path, bytes):
                path = os.fsdecode(path)
            if path and self.matches(path):
                self._on_change(path)


# =============================================================================
# Snapshot Watcher
# =============================================================================


class SnapshotWatcher:
    """
    Drives one assembler from file notifications and a periodic timer.

    States are ``stopped`` and ``running``. ``start()`` while running is a
    no-op. After ``stop()`` no further snapshot is published, including the
    result of a pass that was already in flight.

    Attributes:
        assembler: The assembler every pass calls.
        debounce_seconds: Quiet period after the last settled change.
        reevaluate_seconds: Interval of the periodic re-evaluation.
        stability_seconds: Quiet period per path before a change counts.
    """

    def __init__(
        self,
        assembler: SnapshotAssembler,
        debounce_seconds: float = WATCHER_DEBOUNCE_SECONDS,
        reevaluate_seconds: float = PERIODIC_REEVAL_SECONDS,
        stability_seconds: float = WRITE_STABILITY_SECONDS,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.assembler = assembler
        self.debounce_seconds = debounce_seconds
        self.reevaluate_seconds = reevaluate_seconds
        self.stability_seconds = stability_seconds
        self._observer_factory = observer_factory

        self._listeners: List[SnapshotListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._last_published: Optional[Snapshot] = None
        self._running = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[Trigger]"] = None
        self._observer = None
        self._settle_handles: Dict[str, asyncio.TimerHandle] = {}
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._periodic_task: Optional[asyncio.Task[None]] = None
        self._consumer_task: Optional[asyncio.Task[None]] = None

    @property
    def name(self) -> str:
        return self.assembler.name

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_snapshot(self) -> Optional[Snapshot]:
        """The most recently published (or initial) snapshot."""
        return self._last_published

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        try:
            self._error_listeners.remove(listener)
        except ValueError:
            pass

    def _publish(self, snapshot: Snapshot) -> None:
        self._last_published = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("Snapshot listener failed: %s", e, exc_info=True)

    def _report(self, error: WatcherError) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception as e:
                logger.warning("Error listener failed: %s", e, exc_info=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def get_initial_snapshot(self) -> Snapshot:
        """Assemble once, record the result as last published and return it."""
        snapshot = await self.assembler.read_state()
        self._last_published = snapshot
        return snapshot

    async def assemble(self) -> Snapshot:
        """Assemble once; ``last_snapshot`` (the periodic pass's baseline) is untouched."""
        return await self.assembler.read_state()

    def start(self) -> None:
        """
        Begin watching. Must be called from a running event loop.

        Idempotent while running.
        """
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._running = True

        self._observer = self._start_observer(self.assembler.watch_targets())
        self._consumer_task = asyncio.create_task(self._consume())
        self._periodic_task = asyncio.create_task(self._periodic_loop())
        logger.info(
            "Watcher started (%s assembler): debounce=%.2fs reevaluate=%.1fs",
            self.assembler.name, self.debounce_seconds, self.reevaluate_seconds,
        )

    async def stop(self) -> None:
        """Cancel timers and the consumer, then stop the observer."""
        if not self._running:
            return
        self._running = False

        if self._stop_event is not None:
            self._stop_event.set()
        for handle in self._settle_handles.values():
            handle.cancel()
        self._settle_handles.clear()
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

        for task in (self._periodic_task, self._consumer_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._periodic_task = None
        self._consumer_task = None

        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join, 1.0)
        logger.info("Watcher stopped")

    def _start_observer(self, targets: Sequence[str]):
        handler = ChangeHandler(
            [glob_to_regex(t) for t in targets],
            self._notify_from_thread,
        )
        observer = self._observer_factory()
        for directory, recursive in plan_schedules(targets).items():
            try:
                observer.schedule(handler, str(directory), recursive=recursive)
                logger.debug("Watching %s (recursive=%s)", directory, recursive)
            except OSError as e:
                logger.warning("Cannot watch %s: %s", directory, e)
        observer.start()
        return observer

    # -------------------------------------------------------------------------
    # Producers
    # -------------------------------------------------------------------------

    def _notify_from_thread(self, path: str) -> None:
        """Called on the observer thread; hops onto the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self.notify_change, path)
        except RuntimeError:
            # loop closed between the check and the call
            pass

    def notify_change(self, path: str) -> None:
        """Record a raw change to ``path``; it counts once the path has been quiet."""
        if not self._running or self._loop is None:
            return
        previous = self._settle_handles.pop(path, None)
        if previous is not None:
            previous.cancel()
        self._settle_handles[path] = self._loop.call_later(
            self.stability_seconds, self._on_path_settled, path
        )

    def _on_path_settled(self, path: str) -> None:
        self._settle_handles.pop(path, None)
        if not self._running or self._loop is None:
            return
        logger.debug("Change settled: %s", path)
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = self._loop.call_later(
            self.debounce_seconds, self._on_debounce_elapsed
        )

    def _on_debounce_elapsed(self) -> None:
        self._debounce_handle = None
        if self._running and self._queue is not None:
            self._queue.put_nowait(Trigger.DEBOUNCE)

    async def _periodic_loop(self) -> None:
        assert self._stop_event is not None and self._queue is not None
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.reevaluate_seconds)
                return
            except asyncio.TimeoutError:
                self._queue.put_nowait(Trigger.PERIODIC)

    # -------------------------------------------------------------------------
    # Consumer
    # -------------------------------------------------------------------------

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            trigger = await self._queue.get()
            await self.run_pass(trigger)

    async def run_pass(self, trigger: Trigger) -> None:
        """Assemble once for ``trigger`` and publish according to its rule."""
        try:
            snapshot = await self.assembler.read_state()
        except Exception as e:
            if trigger == Trigger.DEBOUNCE:
                error = WatcherError(trigger=trigger.value, original_error=e)
                logger.warning("%s: %s", error, e)
                self._report(error)
            else:
                logger.debug("Periodic re-evaluation failed: %s", e)
            return

        if not self._running:
            return
        if trigger == Trigger.PERIODIC and not has_status_changed(self._last_published, snapshot):
            logger.debug("Periodic pass: no status change")
            return
        self._publish(snapshot)
