"""Export session -- the state machine a caller drives an export through.

States:

    IDLE --start()--> EXPORTING --success--> COMPLETED
                          |                      |
                          +------failure----> FAILED
    COMPLETED / FAILED --reset()--> IDLE

start() is only accepted from IDLE, so at most one export is in flight
per session and every retry is an explicit reset() + start(). Build
errors (empty project, unreadable song) and pipeline errors both end in
FAILED, with the classified error kept on the session.

The build and render run on the session's worker thread. Every state
change coming back from that thread goes through _dispatch, which holds
the session lock (so updates and observer callbacks never interleave)
and drops updates from an attempt that has since been reset or replaced.

save_externally() is a secondary action on a COMPLETED session: its
failure is recorded in save_error and never touches the export state.
"""

import logging
import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from .errors import ErrorKind, ExportError, SaveError, SessionStateError, SongreelError
from .export import ExportPipeline, export_path_for
from .models import Project
from .timeline import MediaProbe, build_timeline

logger = logging.getLogger(__name__)


class ExportState(Enum):
    IDLE = "idle"
    EXPORTING = "exporting"
    COMPLETED = "completed"
    FAILED = "failed"


# ── External media store ───────────────────────────────────────────


class MediaStore(Protocol):
    def save(self, video_path: Path) -> Path:
        """Persist video_path outside the exports folder. Raise SaveError on failure."""
        ...


class DirectoryMediaStore:
    """Copy finished exports into a media library folder."""

    def __init__(self, library_dir: str | Path):
        self.library_dir = Path(library_dir)

    def save(self, video_path: Path) -> Path:
        video_path = Path(video_path)
        if not video_path.exists():
            raise SaveError(ErrorKind.SAVE_FAILED, f"{video_path} does not exist")
        try:
            self.library_dir.mkdir(parents=True, exist_ok=True)
            destination = self.library_dir / video_path.name
            shutil.copy2(video_path, destination)
        except OSError as exc:
            raise SaveError(ErrorKind.SAVE_FAILED, str(exc)) from exc
        return destination


# ── Session ────────────────────────────────────────────────────────


class ExportSession:
    """Observable state for exporting one project at a time."""

    def __init__(
        self,
        pipeline: ExportPipeline | None = None,
        exports_dir: str | Path = "exports",
        probe: MediaProbe | None = None,
        media_store: MediaStore | None = None,
    ):
        self.pipeline = pipeline or ExportPipeline()
        self.exports_dir = Path(exports_dir)
        self.probe = probe
        self.media_store = media_store

        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="songreel-export")
        self._observers: list[Callable[["ExportSession"], None]] = []
        self._generation = 0
        self._cancel: threading.Event | None = None
        self._future: Future | None = None

        self._state = ExportState.IDLE
        self._progress = 0.0
        self._output_path: Path | None = None
        self._error: SongreelError | None = None
        self._save_error: SaveError | None = None
        self._saved_path: Path | None = None
        self._skipped = ()

    # ── Observable state ───────────────────────────────────────────

    @property
    def state(self) -> ExportState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def output_path(self) -> Path | None:
        with self._lock:
            return self._output_path

    @property
    def error(self) -> SongreelError | None:
        with self._lock:
            return self._error

    @property
    def error_message(self) -> str | None:
        with self._lock:
            return self._error.message if self._error else None

    @property
    def save_error(self) -> SaveError | None:
        with self._lock:
            return self._save_error

    @property
    def saved_path(self) -> Path | None:
        with self._lock:
            return self._saved_path

    @property
    def skipped(self) -> tuple:
        """Clips the last build left out (see timeline.build_timeline)."""
        with self._lock:
            return self._skipped

    def subscribe(self, callback: Callable[["ExportSession"], None]) -> Callable[[], None]:
        """Call callback(session) after every state change. Returns an unsubscribe function."""
        with self._lock:
            self._observers.append(callback)

        def _unsubscribe():
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)
        return _unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception:
                logger.exception("Export session observer %r failed", callback)

    # ── Transitions ────────────────────────────────────────────────

    def start(self, project: Project, output_path: str | Path | None = None) -> Future:
        """Begin exporting project. Only valid from IDLE.

        The returned future resolves to the output path, or raises the
        BuildError / ExportError that moved the session to FAILED.

        Raises:
            SessionStateError: An export is in flight, or the previous one
                has not been reset yet. Session state is left untouched.
        """
        with self._lock:
            if self._state is ExportState.EXPORTING:
                raise SessionStateError("an export is already in progress")
            if self._state is not ExportState.IDLE:
                raise SessionStateError(
                    f"session is {self._state.value}; call reset() before starting again"
                )

            if output_path is None:
                output_path = export_path_for(project.id, self.exports_dir)
            # The worker builds from a snapshot; later edits need a new export.
            snapshot = replace(project, clips=list(project.clips))

            self._generation += 1
            generation = self._generation
            self._cancel = threading.Event()
            self._state = ExportState.EXPORTING
            self._progress = 0.0
            self._output_path = None
            self._error = None
            self._save_error = None
            self._saved_path = None
            self._skipped = ()
            logger.info("[project=%s] Export started (attempt %d)", project.id, generation)
            self._notify()

            self._future = self._executor.submit(
                self._run, generation, snapshot, Path(output_path), self._cancel,
            )
            return self._future

    def cancel(self) -> bool:
        """Ask the in-flight export to stop. It ends in FAILED (cancelled)."""
        with self._lock:
            if self._state is not ExportState.EXPORTING or self._cancel is None:
                return False
            self._cancel.set()
            return True

    def reset(self) -> None:
        """Return to IDLE, clearing progress, error and output.

        Resetting during an export cancels it; nothing it reports afterwards
        reaches this session.
        """
        with self._lock:
            self._generation += 1
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = None
            self._state = ExportState.IDLE
            self._progress = 0.0
            self._output_path = None
            self._error = None
            self._save_error = None
            self._saved_path = None
            self._skipped = ()
            self._notify()

    def wait(self, timeout: float | None = None) -> ExportState:
        """Block until the current attempt finishes (or timeout). Returns the state."""
        with self._lock:
            future = self._future
        if future is not None:
            try:
                future.exception(timeout=timeout)
            except FutureTimeoutError:
                pass
        return self.state

    def save_externally(self, store: MediaStore | None = None) -> bool:
        """Copy the completed export into a media store.

        Returns True on success. On failure the SaveError is kept in
        save_error and the session stays COMPLETED.

        Raises:
            SessionStateError: No completed export, or no store configured.
        """
        with self._lock:
            if self._state is not ExportState.COMPLETED:
                raise SessionStateError("there is no completed export to save")
            store = store or self.media_store
            if store is None:
                raise SessionStateError("no media store configured")
            generation = self._generation
            video_path = self._output_path
            self._save_error = None

        try:
            saved = store.save(video_path)
        except Exception as exc:
            # Any store failure is recorded; the export itself stays COMPLETED.
            error = exc if isinstance(exc, SaveError) else SaveError(ErrorKind.SAVE_FAILED, str(exc))
            logger.warning("Saving %s externally failed: %s", video_path, error)
            self._dispatch(generation, self._record_save, None, error)
            return False

        self._dispatch(generation, self._record_save, saved, None)
        return True

    def close(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ── Worker side ────────────────────────────────────────────────

    def _dispatch(self, generation: int, apply: Callable, *args) -> bool:
        """Apply a state update if it belongs to the current attempt."""
        with self._lock:
            if generation != self._generation:
                return False
            apply(*args)
            self._notify()
            return True

    def _run(self, generation: int, project: Project, output: Path, cancel: threading.Event) -> Path:
        try:
            timeline = build_timeline(project, self.probe)
            self._dispatch(generation, self._record_skips, timeline.skipped)
            path = self.pipeline.run(
                timeline,
                output,
                on_progress=lambda p: self._dispatch(generation, self._record_progress, p),
                cancel=cancel,
            )
        except SongreelError as exc:
            logger.warning("[project=%s] Export failed: %s", project.id, exc)
            self._dispatch(generation, self._record_failure, exc)
            raise
        except Exception as exc:
            # Never leave the session stuck in EXPORTING.
            error = ExportError(ErrorKind.EXPORT_FAILED, str(exc))
            logger.exception("[project=%s] Export crashed", project.id)
            self._dispatch(generation, self._record_failure, error)
            raise error from exc

        self._dispatch(generation, self._record_success, path)
        return path

    def _record_skips(self, skipped) -> None:
        self._skipped = tuple(skipped)

    def _record_progress(self, fraction: float) -> None:
        if self._state is ExportState.EXPORTING and fraction > self._progress:
            self._progress = fraction

    def _record_success(self, path: Path) -> None:
        self._state = ExportState.COMPLETED
        self._output_path = path
        self._progress = 1.0
        logger.info("Export completed: %s", path)

    def _record_failure(self, error: SongreelError) -> None:
        self._state = ExportState.FAILED
        self._error = error

    def _record_save(self, saved: Path | None, error: SaveError | None) -> None:
        self._saved_path = saved
        self._save_error = error
