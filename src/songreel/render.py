"""Render backend -- turns a built timeline into an encoded video file.

The export pipeline treats the backend as an independent worker: it is
called on a separate thread, writes its fractional progress into a shared
RenderProgress, and checks a cancel event as it goes.

MoviepyBackend composes with moviepy:
  1. Each segment is cut from its source (source_start .. +duration),
     scaled to fit the render size and padded to full frame.
  2. The segment's color grade is applied per frame (grading.grade_frame).
  3. The transition shape picks the entry effect:
       cross_dissolve -> CrossFadeIn, fade -> FadeIn (from black),
       wipe -> SlideIn from the left, push -> SlideIn from the right.
  4. Segments are placed at their global start on one composite, the song
     is attached (trimmed to the video length) and the result encoded.

Progress comes from moviepy's proglog bars: audio chunks are the first
AUDIO_SHARE of the work, video frames the rest.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from moviepy import CompositeVideoClip, vfx
from proglog import ProgressBarLogger

from .common import fit_scale, load_audio, load_clip
from .grading import grade_frame
from .models import Transition
from .timeline import RenderInstruction, Timeline, VideoSegment

AUDIO_SHARE = 0.1


class RenderCancelled(Exception):
    """Raised inside the backend when the cancel event is observed."""


class CompositionError(Exception):
    """The composition could not be assembled (a source failed to open)."""


# ── Settings ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExportSettings:
    width: int = 1920
    height: int = 1080
    fps: int = 30
    codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "medium"
    crf: int = 20

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"ExportSettings: resolution must be positive, got {self.width}x{self.height}"
            )
        if self.fps <= 0:
            raise ValueError(f"ExportSettings: fps must be > 0, got {self.fps!r}")

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def ffmpeg_params(self) -> list[str]:
        """Quality flags for the chosen codec (NVENC uses -cq, x264 -crf)."""
        if self.codec == "h264_nvenc":
            return ["-cq", str(self.crf), "-pix_fmt", "yuv420p"]
        return ["-crf", str(self.crf), "-pix_fmt", "yuv420p"]


# ── Progress ───────────────────────────────────────────────────────


class RenderProgress:
    """Fraction of render work done, written by the backend thread.

    Only ever moves forward, and stays inside [0, 1].
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0.0

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def update(self, fraction: float) -> None:
        fraction = min(1.0, max(0.0, fraction))
        with self._lock:
            if fraction > self._value:
                self._value = fraction


class ProgressLogger(ProgressBarLogger):
    """proglog logger that feeds moviepy's progress bars into RenderProgress.

    Raises RenderCancelled from inside moviepy's write loop once the cancel
    event is set, which aborts the encode.
    """

    def __init__(self, progress: RenderProgress, cancel: threading.Event):
        super().__init__()
        self.progress = progress
        self.cancel = cancel

    def bars_callback(self, bar, attr, value, old_value=None):
        if self.cancel.is_set():
            raise RenderCancelled("Render cancelled")
        if attr != "index":
            return
        total = self.bars[bar].get("total") or 0
        if total <= 0:
            return
        fraction = min(1.0, value / total)
        if bar == "chunk":
            self.progress.update(AUDIO_SHARE * fraction)
        elif bar == "frame_index":
            self.progress.update(AUDIO_SHARE + (1.0 - AUDIO_SHARE) * fraction)


# ── Backends ───────────────────────────────────────────────────────


class RenderBackend(Protocol):
    def render(
        self,
        timeline: Timeline,
        settings: ExportSettings,
        output_path: Path,
        progress: RenderProgress,
        cancel: threading.Event,
    ) -> None:
        """Encode timeline to output_path. Raise on failure or cancellation."""
        ...


def _entry_effect(instruction: RenderInstruction):
    """moviepy effect for a segment's opacity ramp, or None for a hard cut."""
    ramp = instruction.opacity_ramp
    if ramp is None:
        return None
    if ramp.shape is Transition.FADE:
        return vfx.FadeIn(ramp.duration)
    if ramp.shape is Transition.WIPE:
        return vfx.SlideIn(ramp.duration, "left")
    if ramp.shape is Transition.PUSH:
        return vfx.SlideIn(ramp.duration, "right")
    return vfx.CrossFadeIn(ramp.duration)


class MoviepyBackend:
    """Compose and encode a timeline with moviepy + ffmpeg."""

    def render(self, timeline, settings, output_path, progress, cancel):
        output_path = Path(output_path)
        opened = []
        temp_audio = output_path.with_name(output_path.stem + ".audio.m4a")
        try:
            layers = []
            for segment, instruction in zip(timeline.segments, timeline.instructions):
                if cancel.is_set():
                    raise RenderCancelled("Render cancelled")
                layers.append(self._layer(segment, instruction, settings, opened))

            video = CompositeVideoClip(
                layers, size=settings.size, bg_color=(0, 0, 0),
            ).with_duration(timeline.duration)

            try:
                audio = load_audio(timeline.audio.source)
            except (OSError, KeyError, IndexError) as exc:
                raise CompositionError(f"Cannot open song {timeline.audio.source}: {exc}") from exc
            opened.append(audio)
            audio = audio.subclipped(0, min(audio.duration, timeline.duration))
            video = video.with_audio(audio)

            video.write_videofile(
                str(output_path),
                fps=settings.fps,
                codec=settings.codec,
                audio_codec=settings.audio_codec,
                temp_audiofile=str(temp_audio),
                preset=settings.preset,
                ffmpeg_params=settings.ffmpeg_params(),
                logger=ProgressLogger(progress, cancel),
            )
        finally:
            for clip in opened:
                clip.close()
            temp_audio.unlink(missing_ok=True)

    def _layer(
        self,
        segment: VideoSegment,
        instruction: RenderInstruction,
        settings: ExportSettings,
        opened: list,
    ):
        try:
            source = load_clip(segment.source, settings.fps)
        except (OSError, KeyError, IndexError) as exc:
            raise CompositionError(f"Cannot open clip {segment.source}: {exc}") from exc
        opened.append(source)

        clip = source.subclipped(segment.source_start, segment.source_start + segment.duration)
        scale = fit_scale(clip.size, settings.size)
        if scale != 1.0:
            clip = clip.resized(scale)
        if clip.size != settings.size:
            clip = clip.with_background_color(size=settings.size, color=(0, 0, 0), pos="center")

        grade = instruction.color_grade
        if grade is not None:
            def _apply_grade(get_frame, t):
                return grade_frame(get_frame(t), grade)
            clip = clip.transform(_apply_grade)

        effect = _entry_effect(instruction)
        if effect is not None:
            clip = clip.with_effects([effect])

        return clip.with_start(segment.start).with_duration(segment.duration)
