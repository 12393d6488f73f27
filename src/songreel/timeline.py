"""Timeline builder -- maps a project's clip sequence onto global time.

The timeline is a derived artifact, rebuilt from a project snapshot
whenever it is needed and never mutated:

  - audio: the song's full source, placed at global time 0 for its full
    (probed) duration.
  - segments: included clips back-to-back, no gaps. Segment i starts at
    the sum of the durations of the included clips before it.
  - instructions: one render instruction per segment, covering
    [start, start + duration), carrying an identity transform, an opacity
    ramp for non-"none" transitions, and the clip's color grade.

Unusable clips are skipped, not fatal (see build_timeline). The builder
only probes media; it never decodes frames.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos

from .errors import BuildError, ErrorKind
from .models import ColorGrade, Project, Transition

logger = logging.getLogger(__name__)

# Length of the soft entry for any transition other than NONE. Clips
# shorter than this ramp over their whole duration.
TRANSITION_WINDOW = 0.5

# 2x3 affine matrix (a, b, c, d, tx, ty). Placeholder for spatial effects.
IDENTITY_TRANSFORM = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


# ── Media probing ──────────────────────────────────────────────────


class MediaProbeError(OSError):
    """A media source could not be opened or parsed."""


@dataclass(frozen=True)
class MediaInfo:
    duration: float | None
    has_video: bool
    has_audio: bool


class MediaProbe(Protocol):
    def probe(self, source: str) -> MediaInfo:
        """Return stream info for source or raise MediaProbeError."""
        ...


class MoviepyProbe:
    """Probe media through moviepy's ffmpeg info parser (no decoding)."""

    def probe(self, source: str) -> MediaInfo:
        try:
            infos = ffmpeg_parse_infos(str(source))
        except (OSError, ValueError, KeyError, IndexError) as exc:
            raise MediaProbeError(f"Cannot read {source}: {exc}") from exc
        duration = infos.get("duration")
        return MediaInfo(
            duration=float(duration) if duration else None,
            has_video=bool(infos.get("video_found")),
            has_audio=bool(infos.get("audio_found")),
        )


# ── Timeline types ─────────────────────────────────────────────────


@dataclass(frozen=True)
class AudioTrack:
    source: str
    duration: float
    start: float = 0.0


@dataclass(frozen=True)
class VideoSegment:
    clip_id: str
    source: str
    source_start: float
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class OpacityRamp:
    """Opacity goes from start_opacity to end_opacity over [start, start+duration).

    shape names the transition kind so the backend can choose the visual
    treatment; every shape is at minimum a soft entry.
    """

    start: float
    duration: float
    shape: Transition
    start_opacity: float = 0.0
    end_opacity: float = 1.0

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class RenderInstruction:
    start: float
    duration: float
    transition: Transition
    transform: tuple[float, ...] = IDENTITY_TRANSFORM
    opacity_ramp: OpacityRamp | None = None
    color_grade: ColorGrade | None = None

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class SkippedClip:
    index: int
    clip_id: str
    source: str
    reason: str


@dataclass(frozen=True)
class Timeline:
    project_id: str
    audio: AudioTrack
    segments: tuple[VideoSegment, ...]
    instructions: tuple[RenderInstruction, ...]
    skipped: tuple[SkippedClip, ...] = ()

    @property
    def duration(self) -> float:
        """Video track length: the sum of included clip durations."""
        return sum(s.duration for s in self.segments)

    @property
    def offsets(self) -> list[float]:
        return [s.start for s in self.segments]

    @property
    def is_empty(self) -> bool:
        return not self.segments


# ── Builder ────────────────────────────────────────────────────────


def _instruction_for(segment: VideoSegment, transition: Transition, grade) -> RenderInstruction:
    ramp = None
    if transition is not Transition.NONE:
        ramp = OpacityRamp(
            start=segment.start,
            duration=min(TRANSITION_WINDOW, segment.duration),
            shape=transition,
        )
    if grade is not None and grade.is_identity:
        grade = None
    return RenderInstruction(
        start=segment.start,
        duration=segment.duration,
        transition=transition,
        opacity_ramp=ramp,
        color_grade=grade,
    )


def _probe_song(project: Project, probe: MediaProbe) -> AudioTrack:
    song = project.song
    try:
        info = probe.probe(song.source)
    except MediaProbeError as exc:
        raise BuildError(ErrorKind.SONG_UNREADABLE, str(exc)) from exc
    if not info.has_audio:
        raise BuildError(ErrorKind.SONG_UNREADABLE, f"No audio stream in {song.source}")
    if not info.duration or info.duration <= 0:
        raise BuildError(ErrorKind.SONG_UNREADABLE, f"Unknown duration for {song.source}")
    return AudioTrack(source=song.source, duration=info.duration)


def _skip_reason(clip, probe: MediaProbe) -> str | None:
    """Why a clip cannot be placed on the timeline, or None if it can."""
    try:
        info = probe.probe(clip.source)
    except MediaProbeError as exc:
        return str(exc)
    if not info.has_video:
        return "no video stream"
    # Unknown length: trust the clip's own range.
    if info.duration is not None and clip.source_end > info.duration + 1e-6:
        return (
            f"range {clip.start_time:.3f}-{clip.source_end:.3f}s exceeds "
            f"source length {info.duration:.3f}s"
        )
    return None


def build_timeline(project: Project, probe: MediaProbe | None = None) -> Timeline:
    """Build the global timeline for a project snapshot.

    Skip-and-continue policy: a clip whose source cannot be probed, has no
    video stream, or is shorter than the clip's range is left out. The
    remaining clips close the gap, so offsets and the total duration cover
    included clips only. Every skip is logged and listed in
    Timeline.skipped so callers can tell the user the render is shorter
    than the project looks.

    Args:
        project: Project to build. Read, never modified.
        probe: Media probe; defaults to MoviepyProbe.

    Returns:
        Timeline. May have zero segments if every clip was skipped; the
        export pipeline rejects that case.

    Raises:
        BuildError: EMPTY_PROJECT if the project has no clips,
            SONG_UNREADABLE if the song cannot be probed.
    """
    if not project.clips:
        raise BuildError(ErrorKind.EMPTY_PROJECT, f"project {project.id}")

    probe = probe or MoviepyProbe()
    audio = _probe_song(project, probe)

    segments = []
    instructions = []
    skipped = []
    cursor = 0.0

    for i, clip in enumerate(project.clips):
        reason = _skip_reason(clip, probe)
        if reason is not None:
            logger.warning(
                "[project=%s] Skipping clip %d (%s): %s", project.id, i, clip.source, reason,
            )
            skipped.append(SkippedClip(index=i, clip_id=clip.id, source=clip.source, reason=reason))
            continue

        segment = VideoSegment(
            clip_id=clip.id,
            source=clip.source,
            source_start=clip.start_time,
            start=cursor,
            duration=clip.duration,
        )
        segments.append(segment)
        instructions.append(_instruction_for(segment, clip.transition, clip.color_grade))
        cursor += clip.duration

    logger.info(
        "[project=%s] Built timeline: %d segments, %.2fs video, %d skipped",
        project.id, len(segments), cursor, len(skipped),
    )
    return Timeline(
        project_id=project.id,
        audio=audio,
        segments=tuple(segments),
        instructions=tuple(instructions),
        skipped=tuple(skipped),
    )
