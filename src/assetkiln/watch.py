"""Watch mode - re-run a stage when its source tree changes.

Each watched root gets its own consumer. A consumer pulls one batch of change
events, runs the root's stage to completion, then pulls the next batch, so two
runs of the same stage never overlap. Events that arrive during a run stay
buffered and are drained into a single batch afterwards: a burst of N saves
triggers one follow-up run, not N.

Filesystem notifications come from a watchdog observer thread and are handed
to the event loop with call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetkiln.core.errors import AbortError
from assetkiln.core.logging import get_logger
from assetkiln.core.results import StageResult

log = get_logger(__name__)

# Reading sources produces open/close notifications on inotify; only
# content and tree changes should trigger a rebuild.
RELEVANT_EVENTS = frozenset({"created", "deleted", "modified", "moved"})

EventSource = Callable[[Path, bool, asyncio.Event], AsyncIterator[set[str]]]


class WatchState(Enum):
    """Per-root consumer state."""

    IDLE = "idle"
    RUNNING = "running"


class _QueueingHandler(FileSystemEventHandler):
    """Forward relevant watchdog events into an asyncio queue."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str]) -> None:
        super().__init__()
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in RELEVANT_EVENTS:
            return
        path = event.src_path
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        with contextlib.suppress(RuntimeError):
            # Loop already closed during shutdown.
            self._loop.call_soon_threadsafe(self._queue.put_nowait, path)


async def _next_event(queue: asyncio.Queue[str], stop_event: asyncio.Event) -> str:
    """Wait for the next event path, or raise AbortError once stop_event is set."""
    getter = asyncio.ensure_future(queue.get())
    stopper = asyncio.ensure_future(stop_event.wait())
    try:
        done, _pending = await asyncio.wait(
            {getter, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for fut in (getter, stopper):
            if not fut.done():
                fut.cancel()

    if stopper in done:
        raise AbortError()
    return getter.result()


async def watch_changes(
    root: Path,
    recursive: bool,
    stop_event: asyncio.Event,
    debounce: float = 0.05,
) -> AsyncIterator[set[str]]:
    """Yield batches of changed paths under root.

    The sequence is lazy (the observer starts on first iteration) and
    restartable (call again for a fresh observer). It ends with AbortError
    when stop_event is set.

    Args:
        root: Directory to watch
        recursive: Watch sub-directories too
        stop_event: Abort signal
        debounce: Seconds to let a burst settle before yielding it
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[str] = asyncio.Queue()

    observer = Observer()
    observer.schedule(_QueueingHandler(loop, queue), str(root), recursive=recursive)
    observer.start()
    try:
        while True:
            batch = {await _next_event(queue, stop_event)}
            if debounce > 0:
                await asyncio.sleep(debounce)
            while not queue.empty():
                batch.add(queue.get_nowait())
            yield batch
    finally:
        observer.stop()
        await asyncio.to_thread(observer.join, 2)


@dataclass
class WatchSubscription:
    """One watched source root and the stage it drives."""

    name: str
    root: Path
    run_stage: Callable[[], Awaitable[StageResult]]
    recursive: bool = False
    state: WatchState = WatchState.IDLE
    runs: int = 0


class WatchCoordinator:
    """Run one sequential consumer per subscription, all concurrently."""

    def __init__(
        self,
        subscriptions: list[WatchSubscription],
        debounce: float = 0.05,
        source: EventSource | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            subscriptions: Roots to watch
            debounce: Settle window passed to the default event source
            source: Event sequence factory, watch_changes when omitted
        """
        self.subscriptions = subscriptions
        self.stop_event = asyncio.Event()
        self._source = source or functools.partial(watch_changes, debounce=debounce)

    def stop(self) -> None:
        """Ask every consumer to finish; they exit quietly."""
        self.stop_event.set()

    async def run(self) -> None:
        """Consume until stopped.

        Raises:
            Exception: Any non-abort error from a consumer; siblings are cancelled
        """
        tasks = [
            asyncio.create_task(self._consume(sub), name=f"watch-{sub.name}")
            for sub in self.subscriptions
        ]
        try:
            await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _consume(self, sub: WatchSubscription) -> None:
        log.verbose(f"Watching {sub.root} for {sub.name}")
        events = self._source(sub.root, sub.recursive, self.stop_event)
        try:
            async for changes in events:
                log.info(f"{sub.name}: {len(changes)} change(s), rebuilding")
                for path in sorted(changes):
                    log.debug(f"  changed: {path}")
                sub.state = WatchState.RUNNING
                try:
                    await sub.run_stage()
                finally:
                    sub.state = WatchState.IDLE
                sub.runs += 1
        except AbortError:
            log.verbose(f"Stopped watching {sub.root}")
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
