"""
Watch Orchestrator - continuous rebuilds

Every BuildStep gets its own StepWatcher: a thread that polls the
source tree (mtime + size snapshot, node_modules and outputs excluded)
and rebuilds the step when something changes.

Per watcher: IDLE -> BUILDING -> (END | ERROR) -> IDLE

A failed rebuild is logged and published as an ERROR event; the
watcher keeps watching. Watchers don't coordinate with each other.
"""
import logging
import os
import queue
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from bundler import config
from bundler.schemas import BuildPlan, BuildStep, WatchEvent, WatchEventCode
from bundler.tools.engine import Engine
from .executor import REPORT_TIMEOUT

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Tuple[int, int]]


class WatchState(str, Enum):
    """Watcher state"""
    IDLE = "IDLE"
    BUILDING = "BUILDING"


def snapshot(roots: Iterable[Path], exclude_dirs: Iterable[str] = (), exclude_paths: Iterable[Path] = ()) -> Snapshot:
    """
    (size, mtime) of every file under roots

    An excluded file also hides the ".<name>.*" temporaries written
    next to it while it is being replaced.
    """
    exclude_dirs = set(exclude_dirs)
    excluded = {str(Path(p)) for p in exclude_paths}
    temp_prefixes = {str(Path(p).parent / f".{Path(p).name}.") for p in exclude_paths}
    snap: Snapshot = {}
    for root in roots:
        root = Path(root)
        if not root.exists():
            continue
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [
                d for d in dirnames
                if d not in exclude_dirs and str(Path(dirpath) / d) not in excluded
            ]
            for filename in filenames:
                path = Path(dirpath) / filename
                if str(path) in excluded or any(str(path).startswith(prefix) for prefix in temp_prefixes):
                    continue
                try:
                    stat = path.stat()
                except OSError:
                    # deleted between listing and stat
                    continue
                snap[str(path)] = (stat.st_size, stat.st_mtime_ns)
    return snap


def diff_snapshot(before: Snapshot, after: Snapshot) -> Dict[str, List[str]]:
    added = [key for key in after if key not in before]
    changed = [key for key in after if key in before and before[key] != after[key]]
    removed = [key for key in before if key not in after]
    return {"added": added, "changed": changed, "removed": removed}


class StepWatcher:
    """
    Watches and rebuilds a single step

    start()/stop() bound the subscription; events go to the shared
    channel and, on success, to the optional on_build callback.
    """

    def __init__(
        self,
        step: BuildStep,
        engine: Engine,
        roots: List[Path],
        events: "queue.Queue[WatchEvent]",
        on_build: Optional[Callable[[WatchEvent], None]] = None,
        exclude_paths: Optional[List[Path]] = None,
        poll_seconds: Optional[float] = None,
        debounce_seconds: Optional[float] = None,
        output: Callable[[str], None] = print
    ):
        self.step = step
        self.engine = engine
        self.roots = roots
        self.events = events
        self.on_build = on_build
        self.exclude_paths = exclude_paths or []
        self.poll_seconds = poll_seconds if poll_seconds is not None else config.WATCH_POLL_SECONDS
        self.debounce_seconds = debounce_seconds if debounce_seconds is not None else config.WATCH_DEBOUNCE_SECONDS
        self.output = output

        self._state = WatchState.IDLE
        self._cache: Any = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> WatchState:
        return self._state

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"watch-{self.step.step_id}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _snapshot(self) -> Snapshot:
        return snapshot(self.roots, config.WATCH_EXCLUDE, self.exclude_paths)

    def _run(self) -> None:
        # taken before building so edits made during the first build are seen
        last = self._snapshot()
        self.rebuild()
        while not self._stop.wait(self.poll_seconds):
            current = self._snapshot()
            diff = diff_snapshot(last, current)
            if not any(diff.values()):
                continue

            # let a burst of writes settle
            if self._stop.wait(self.debounce_seconds):
                break
            last = self._snapshot()
            changed = sum(len(files) for files in diff.values())
            logger.info(f"[Watcher] {self.step.step_id}: {changed} files changed, rebuilding")
            self.rebuild()

    def rebuild(self) -> WatchEvent:
        """Run one build cycle and publish its outcome"""
        step = self.step
        self._state = WatchState.BUILDING
        started = time.monotonic()
        self._publish(WatchEvent(code=WatchEventCode.START, step_id=step.step_id, output_file=step.output_file))

        try:
            cache = self._cache if step.input_config.use_cache else None
            bundle = self.engine.bundle(step.input_config, cache)
            bundle.write(step.output_config)
            text = step.size_report.result(timeout=REPORT_TIMEOUT)
        except Exception as e:
            logger.error(f"[Watcher] {step.step_id} failed: {e}", exc_info=True)
            event = WatchEvent(
                code=WatchEventCode.ERROR,
                step_id=step.step_id,
                output_file=step.output_file,
                duration=time.monotonic() - started,
                error=e,
            )
            self._state = WatchState.IDLE
            self._publish(event)
            return event

        if step.input_config.use_cache:
            self._cache = bundle

        self.output(f"Wrote {text.strip()}")
        event = WatchEvent(
            code=WatchEventCode.END,
            step_id=step.step_id,
            output_file=step.output_file,
            duration=time.monotonic() - started,
            size_report=text,
        )
        self._state = WatchState.IDLE
        self._publish(event)

        if self.on_build is not None:
            try:
                self.on_build(event)
            except Exception as e:
                logger.error(f"[Watcher] on_build callback failed for {step.step_id}: {e}", exc_info=True)
        return event

    def _publish(self, event: WatchEvent) -> None:
        self.events.put(event)


class WatchSession:
    """All watchers of one plan plus the channel they publish to"""

    def __init__(self, watchers: List[StepWatcher], events: "queue.Queue[WatchEvent]"):
        self.watchers = watchers
        self.events = events

    def start(self) -> "WatchSession":
        for watcher in self.watchers:
            watcher.start()
        return self

    def stop(self) -> None:
        for watcher in self.watchers:
            watcher.stop()

    def join(self, timeout: Optional[float] = None) -> None:
        for watcher in self.watchers:
            watcher.join(timeout)

    def is_alive(self) -> bool:
        return any(watcher.is_alive() for watcher in self.watchers)

    def next_event(self, timeout: Optional[float] = None) -> WatchEvent:
        """
        Raises:
            queue.Empty: If no event arrives within timeout
        """
        return self.events.get(timeout=timeout)

    def wait_for(
        self,
        code: WatchEventCode,
        step_id: Optional[str] = None,
        timeout: float = 10.0
    ) -> WatchEvent:
        """
        Block until an event with the given code (and step) arrives

        Raises:
            queue.Empty: If none arrives within timeout
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise queue.Empty()
            event = self.events.get(timeout=remaining)
            if event.code == code and (step_id is None or event.step_id == step_id):
                return event

    def __enter__(self) -> "WatchSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        self.join()


def output_excludes(plan: BuildPlan) -> List[Path]:
    """
    Everything the plan writes, so its own output never triggers a rebuild

    Each step's file and sourcemap and the extracted stylesheet are
    excluded by path. An output directory is excluded as a whole only
    when it holds no sources (not the working directory, not above an
    entry).
    """
    excludes: List[Path] = []
    for step in plan.steps:
        excludes += [step.output_file, Path(f"{step.output_file}.map")]

    css = plan.primary_step.input_config.get_stage("postcss")
    if css is not None and css.options.get("extract"):
        css_file = Path(css.options["extract"])
        excludes += [css_file, Path(f"{css_file}.map")]

    cwd = Path(plan.cwd)
    for out_dir in sorted({step.output_file.parent for step in plan.steps}):
        holds_sources = out_dir == cwd or out_dir in cwd.parents or any(
            out_dir in step.entry.parents for step in plan.steps
        )
        if not holds_sources:
            excludes.append(out_dir)
    return excludes


class WatchOrchestrator:
    """Turns a BuildPlan into one watcher per step"""

    def __init__(
        self,
        engine: Engine,
        poll_seconds: Optional[float] = None,
        debounce_seconds: Optional[float] = None,
        output: Callable[[str], None] = print
    ):
        self.engine = engine
        self.poll_seconds = poll_seconds
        self.debounce_seconds = debounce_seconds
        self.output = output

    def watch(
        self,
        plan: BuildPlan,
        on_build: Optional[Callable[[WatchEvent], None]] = None,
        extra_excludes: Optional[List[Path]] = None,
        start: bool = True
    ) -> WatchSession:
        """
        Create (and by default start) a watcher for every step

        Args:
            plan: Build plan to watch
            on_build: Called with every END event
            extra_excludes: Additional paths not to observe (e.g. the name cache file)
            start: Start the watchers immediately
        """
        target_dir = os.path.relpath(plan.output.parent, plan.cwd)
        self.output(f"Watching source, compiling to {target_dir}:")

        excludes = output_excludes(plan) + list(extra_excludes or [])

        events: "queue.Queue[WatchEvent]" = queue.Queue()
        watchers = [
            StepWatcher(
                step,
                self.engine,
                roots=[plan.cwd],
                events=events,
                on_build=on_build,
                exclude_paths=excludes,
                poll_seconds=self.poll_seconds,
                debounce_seconds=self.debounce_seconds,
                output=self.output,
            )
            for step in plan.steps
        ]
        session = WatchSession(watchers, events)
        logger.info(f"[Watcher] Watching {len(watchers)} steps of \"{plan.name}\"")
        if start:
            session.start()
        return session


__all__ = [
    "WatchState",
    "snapshot",
    "diff_snapshot",
    "output_excludes",
    "StepWatcher",
    "WatchSession",
    "WatchOrchestrator",
]
