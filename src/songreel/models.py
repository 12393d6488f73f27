"""Song, clip and project value types.

Songs and clips are frozen dataclasses: changing a clip's transition or
grade produces a replacement that the project stores back in place.
A project owns its ordered clip list (list order = playback order) and
refreshes modified_at on every successful structural mutation.

Index-based mutations follow one bounds policy: an index outside
[0, len(clips)) makes the call a no-op that returns False. The model
never raises for bad indices; callers are expected to validate.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Enumerations ───────────────────────────────────────────────────


class Transition(Enum):
    """Visual treatment at a clip segment's entry point."""

    NONE = "none"
    CROSS_DISSOLVE = "cross_dissolve"
    FADE = "fade"
    WIPE = "wipe"
    PUSH = "push"


class Mood(Enum):
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    DRAMATIC = "dramatic"
    ROMANTIC = "romantic"
    MYSTERIOUS = "mysterious"
    AGGRESSIVE = "aggressive"


# ── Color grade ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ColorGrade:
    """Four normalized adjustments in [-1, 1]. All zero = identity."""

    brightness: float = 0.0
    contrast: float = 0.0
    saturation: float = 0.0
    temperature: float = 0.0

    def __post_init__(self):
        for name in ("brightness", "contrast", "saturation", "temperature"):
            value = getattr(self, name)
            if not -1.0 <= value <= 1.0:
                raise ValueError(f"ColorGrade.{name} must be in [-1, 1], got {value!r}")

    @classmethod
    def identity(cls) -> "ColorGrade":
        return cls()

    @property
    def is_identity(self) -> bool:
        return self == ColorGrade()


# ── Song and analysis ──────────────────────────────────────────────


@dataclass(frozen=True)
class KeyMoment:
    timestamp: float
    intensity: float
    description: str
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if self.timestamp < 0:
            raise ValueError(f"KeyMoment.timestamp must be >= 0, got {self.timestamp!r}")
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"KeyMoment.intensity must be in [0, 1], got {self.intensity!r}")


@dataclass(frozen=True)
class AudioAnalysis:
    """Output contract of the audio analysis collaborator."""

    tempo: float
    energy: float
    mood: Mood
    key_moments: tuple[KeyMoment, ...] = ()
    themes: frozenset[str] = frozenset()

    def __post_init__(self):
        if self.tempo <= 0:
            raise ValueError(f"AudioAnalysis.tempo must be > 0, got {self.tempo!r}")
        if not 0.0 <= self.energy <= 1.0:
            raise ValueError(f"AudioAnalysis.energy must be in [0, 1], got {self.energy!r}")
        # Normalize list/set inputs so equality and hashing behave.
        object.__setattr__(self, "key_moments", tuple(self.key_moments))
        object.__setattr__(self, "themes", frozenset(self.themes))

    def with_themes(self, themes) -> "AudioAnalysis":
        return replace(self, themes=frozenset(themes))


@dataclass(frozen=True)
class Song:
    """The audio track a project is anchored to.

    source and duration never change. analysis and lyrics are filled in at
    most once each by external collaborators.
    """

    source: str
    title: str
    duration: float
    id: str = field(default_factory=_new_id)
    analysis: AudioAnalysis | None = None
    lyrics: str | None = None

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Song.duration must be > 0, got {self.duration!r}")

    def with_analysis(self, analysis: AudioAnalysis) -> "Song":
        if self.analysis is not None:
            raise ValueError(f"Song {self.id}: analysis is already set")
        late = [m for m in analysis.key_moments if m.timestamp > self.duration]
        if late:
            raise ValueError(
                f"Song {self.id}: key moment at {late[0].timestamp}s is past "
                f"the song's end ({self.duration}s)"
            )
        return replace(self, analysis=analysis)

    def with_lyrics(self, lyrics: str) -> "Song":
        if self.lyrics is not None:
            raise ValueError(f"Song {self.id}: lyrics are already set")
        return replace(self, lyrics=lyrics)


# ── Clip ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Clip:
    """A time range of a source video plus presentation metadata.

    start_time is an offset into the source media. Whether start_time +
    duration fits inside the source is checked when the timeline is built,
    not here.
    """

    source: str
    start_time: float
    duration: float
    transition: Transition = Transition.CROSS_DISSOLVE
    color_grade: ColorGrade | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if self.start_time < 0:
            raise ValueError(f"Clip.start_time must be >= 0, got {self.start_time!r}")
        if self.duration <= 0:
            raise ValueError(f"Clip.duration must be > 0, got {self.duration!r}")

    @property
    def source_end(self) -> float:
        return self.start_time + self.duration

    def with_transition(self, transition: Transition) -> "Clip":
        return replace(self, transition=transition)

    def with_color_grade(self, color_grade: ColorGrade | None) -> "Clip":
        return replace(self, color_grade=color_grade)


# ── Project ────────────────────────────────────────────────────────


@dataclass
class Project:
    song: Song
    clips: list[Clip] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    modified_at: datetime | None = None

    def __post_init__(self):
        self.clips = list(self.clips)
        if self.modified_at is None:
            self.modified_at = self.created_at
        if self.modified_at < self.created_at:
            raise ValueError(
                f"Project {self.id}: modified_at ({self.modified_at}) is "
                f"before created_at ({self.created_at})"
            )

    def _touch(self) -> None:
        self.modified_at = max(_now(), self.created_at)

    def _in_bounds(self, index: int) -> bool:
        return 0 <= index < len(self.clips)

    @property
    def total_clip_duration(self) -> float:
        return sum(c.duration for c in self.clips)

    def add_clip(self, clip: Clip) -> None:
        """Append a clip to the end of the sequence."""
        self.clips.append(clip)
        self._touch()

    def update_clip(self, index: int, clip: Clip) -> bool:
        if not self._in_bounds(index):
            return False
        self.clips[index] = clip
        self._touch()
        return True

    def remove_clip(self, index: int) -> bool:
        if not self._in_bounds(index):
            return False
        del self.clips[index]
        self._touch()
        return True

    def move_clips(self, from_indices, to_index: int) -> bool:
        """Move a (possibly non-contiguous) set of clips to to_index.

        Equivalent to removing the clips at from_indices and reinserting
        them, in their original relative order, starting at to_index in the
        list *after* removal. to_index is clamped to that list's bounds.
        No-op if from_indices is empty or any index is out of range.
        """
        indices = sorted(set(from_indices))
        if not indices or not all(self._in_bounds(i) for i in indices):
            return False

        selected = set(indices)
        moved = [self.clips[i] for i in indices]
        remaining = [c for i, c in enumerate(self.clips) if i not in selected]
        to_index = max(0, min(to_index, len(remaining)))

        self.clips = remaining[:to_index] + moved + remaining[to_index:]
        self._touch()
        return True

    def set_transition(self, index: int, transition: Transition) -> bool:
        if not self._in_bounds(index):
            return False
        return self.update_clip(index, self.clips[index].with_transition(transition))

    def set_color_grade(self, index: int, color_grade: ColorGrade | None) -> bool:
        if not self._in_bounds(index):
            return False
        return self.update_clip(index, self.clips[index].with_color_grade(color_grade))


class Editor:
    """Editing context around a project: current selection + dirty flag.

    Removing the selected clip clears the selection. Other removals shift
    the selection so it keeps pointing at the same clip.
    """

    def __init__(self, project: Project):
        self.project = project
        self.selected_index: int | None = None
        self.is_modified = False

    @property
    def selected_clip(self) -> Clip | None:
        index = self.selected_index
        if index is None or not 0 <= index < len(self.project.clips):
            return None
        return self.project.clips[index]

    def select(self, index: int | None) -> None:
        if index is not None and not 0 <= index < len(self.project.clips):
            index = None
        self.selected_index = index

    def _mark(self, changed: bool) -> bool:
        if changed:
            self.is_modified = True
        return changed

    def add_clip(self, clip: Clip) -> None:
        self.project.add_clip(clip)
        self.is_modified = True

    def update_clip(self, index: int, clip: Clip) -> bool:
        return self._mark(self.project.update_clip(index, clip))

    def remove_clip(self, index: int) -> bool:
        if not self.project.remove_clip(index):
            return False
        if self.selected_index == index:
            self.selected_index = None
        elif self.selected_index is not None and self.selected_index > index:
            self.selected_index -= 1
        return self._mark(True)

    def move_clips(self, from_indices, to_index: int) -> bool:
        selected = self.selected_clip
        if not self.project.move_clips(from_indices, to_index):
            return False
        if selected is not None:
            # Clip ids are unique within a project, so follow the id.
            self.selected_index = next(
                i for i, c in enumerate(self.project.clips) if c.id == selected.id
            )
        return self._mark(True)

    def set_transition(self, index: int, transition: Transition) -> bool:
        return self._mark(self.project.set_transition(index, transition))

    def set_color_grade(self, index: int, color_grade: ColorGrade | None) -> bool:
        return self._mark(self.project.set_color_grade(index, color_grade))
