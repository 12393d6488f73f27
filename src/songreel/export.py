"""Export pipeline -- drives a render backend from a built timeline to a file.

Contract of ExportPipeline.run:
  - an empty timeline is rejected before the backend is invoked;
  - one in-flight export per output path (SINK_BUSY otherwise);
  - any artifact already at the output path is removed first;
  - the backend writes to a temp file in the same directory, which is
    renamed onto the output path only on success, so a failed or cancelled
    export never leaves a partial file behind;
  - progress is sampled every poll_interval seconds and reported as a
    non-decreasing sequence in [0, 1] that ends at exactly 1.0 on success.
"""

import logging
import os
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from contextlib import contextmanager
from pathlib import Path
from typing import Callable

from .errors import ErrorKind, ExportError
from .render import (
    CompositionError,
    ExportSettings,
    MoviepyBackend,
    RenderBackend,
    RenderCancelled,
    RenderProgress,
)
from .timeline import Timeline

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


def export_path_for(project_id: str, exports_dir: str | Path) -> Path:
    """Default output location for a project: <exports_dir>/<id>.mp4."""
    exports_dir = Path(exports_dir)
    exports_dir.mkdir(parents=True, exist_ok=True)
    return exports_dir / f"{project_id}.mp4"


# ── Sink exclusivity ───────────────────────────────────────────────

_active_sinks: set[Path] = set()
_active_sinks_lock = threading.Lock()


@contextmanager
def _claim_sink(path: Path):
    key = path.resolve()
    with _active_sinks_lock:
        if key in _active_sinks:
            raise ExportError(ErrorKind.SINK_BUSY, str(path))
        _active_sinks.add(key)
    try:
        yield
    finally:
        with _active_sinks_lock:
            _active_sinks.discard(key)


def _temp_path_for(output: Path) -> Path:
    token = uuid.uuid4().hex[:8]
    return output.with_name(f"{output.stem}.{token}.part{output.suffix}")


# ── Pipeline ───────────────────────────────────────────────────────


class ExportPipeline:
    """Render a timeline to an output file with progress and cancellation."""

    def __init__(
        self,
        backend: RenderBackend | None = None,
        settings: ExportSettings | None = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval!r}")
        self.backend = backend or MoviepyBackend()
        self.settings = settings or ExportSettings()
        self.poll_interval = poll_interval

    def run(
        self,
        timeline: Timeline,
        output_sink: str | Path,
        on_progress: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> Path:
        """Render timeline to output_sink.

        Args:
            timeline: Built timeline (see timeline.build_timeline).
            output_sink: Output file path. Created or overwritten.
            on_progress: Called on this thread with fractions in [0, 1].
            cancel: Set it (from any thread) to abort the render.

        Returns:
            The output path.

        Raises:
            ExportError: EMPTY_TIMELINE, SINK_BUSY, COMPOSITION_FAILED,
                EXPORT_FAILED or CANCELLED.
        """
        if timeline.is_empty:
            raise ExportError(ErrorKind.EMPTY_TIMELINE, f"project {timeline.project_id}")

        output = Path(output_sink)
        cancel = cancel or threading.Event()
        report = _MonotonicReporter(on_progress)

        with _claim_sink(output):
            try:
                output.parent.mkdir(parents=True, exist_ok=True)
                output.unlink(missing_ok=True)
            except OSError as exc:
                raise ExportError(ErrorKind.EXPORT_FAILED, f"cannot prepare {output}: {exc}") from exc
            temp = _temp_path_for(output)

            logger.info(
                "[project=%s] Exporting %d segments (%.2fs) to %s",
                timeline.project_id, len(timeline.segments), timeline.duration, output,
            )
            try:
                self._render(timeline, temp, report, cancel)
                if cancel.is_set():
                    raise ExportError(ErrorKind.CANCELLED, str(output))
                try:
                    os.replace(temp, output)
                except OSError as exc:
                    raise ExportError(ErrorKind.EXPORT_FAILED, f"cannot write {output}: {exc}") from exc
            finally:
                temp.unlink(missing_ok=True)

        report(1.0)
        logger.info("[project=%s] Export complete: %s", timeline.project_id, output)
        return output

    def _render(self, timeline, temp: Path, report, cancel: threading.Event) -> None:
        progress = RenderProgress()
        report(0.0)

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="songreel-render") as pool:
            future = pool.submit(
                self.backend.render, timeline, self.settings, temp, progress, cancel,
            )
            while True:
                done, _ = wait([future], timeout=self.poll_interval)
                if done:
                    break
                report(progress.value)

            try:
                future.result()
            except RenderCancelled as exc:
                raise ExportError(ErrorKind.CANCELLED, str(exc)) from exc
            except CompositionError as exc:
                if cancel.is_set():
                    raise ExportError(ErrorKind.CANCELLED, str(exc)) from exc
                raise ExportError(ErrorKind.COMPOSITION_FAILED, str(exc)) from exc
            except Exception as exc:
                # Anything else is an encode failure unless the caller asked to stop.
                kind = ErrorKind.CANCELLED if cancel.is_set() else ErrorKind.EXPORT_FAILED
                raise ExportError(kind, str(exc)) from exc

        if not temp.exists():
            raise ExportError(ErrorKind.EXPORT_FAILED, "backend produced no output")
        report(progress.value)


class _MonotonicReporter:
    """Forward progress to a callback, clamped to [0, 1] and never decreasing."""

    def __init__(self, callback: Callable[[float], None] | None):
        self.callback = callback
        self.last = 0.0

    def __call__(self, fraction: float) -> None:
        fraction = max(self.last, min(1.0, max(0.0, fraction)))
        self.last = fraction
        logger.debug("export progress %.3f", fraction)
        if self.callback is not None:
            self.callback(fraction)
