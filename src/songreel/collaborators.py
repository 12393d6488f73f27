"""Collaborators that produce a project's inputs.

The timeline and export core never call these; they only consume the
Song / Clip / AudioAnalysis contracts. This module holds:

  - the protocols an analyzer, transcriber and clip source implement,
  - the rule-based helpers that turn tempo/energy into a mood and a mood
    (or lyrics) into search themes,
  - plan_clips + DirectoryClipSource, which seed a project with ~5 second
    clips cut from local footage,
  - create_project, which wires them together when a song is ingested.

Transcription is optional: its failure is logged and the project is
created without lyrics. Analysis failure is also non-fatal: the song keeps
no analysis and clips are seeded without themes.
"""

import logging
from itertools import cycle
from pathlib import Path
from typing import Protocol

from .common import list_videos
from .errors import BuildError, ErrorKind
from .models import AudioAnalysis, Clip, Mood, Project, Song, Transition
from .timeline import MediaProbe, MediaProbeError, MoviepyProbe

logger = logging.getLogger(__name__)

DEFAULT_CLIP_LENGTH = 5.0

MOOD_THEMES = {
    Mood.HAPPY: ["sunshine", "celebration", "joy", "dance", "smiles"],
    Mood.SAD: ["rain", "melancholy", "solitude", "reflection", "memories"],
    Mood.ENERGETIC: ["action", "movement", "excitement", "party", "sports"],
    Mood.CALM: ["nature", "peace", "meditation", "serenity", "ocean"],
    Mood.DRAMATIC: ["storm", "intensity", "conflict", "power", "cinema"],
    Mood.ROMANTIC: ["love", "sunset", "couple", "heart", "intimacy"],
    Mood.MYSTERIOUS: ["fog", "shadows", "mystery", "night", "unknown"],
    Mood.AGGRESSIVE: ["fire", "energy", "rebellion", "strength", "urban"],
}

LYRIC_KEYWORDS = [
    "love", "heart", "night", "day", "sky", "star", "moon",
    "dream", "hope", "pain", "joy", "dance", "sing", "light",
    "dark", "fire", "water", "wind", "rain", "sun", "time",
]


# ── Protocols ──────────────────────────────────────────────────────


class AudioAnalyzer(Protocol):
    def analyze(self, audio_path: str) -> AudioAnalysis:
        ...


class Transcriber(Protocol):
    def transcribe(self, audio_path: str) -> str:
        ...


class ClipSource(Protocol):
    def clips_for(self, themes: list[str], duration: float) -> list[Clip]:
        """Ordered candidate clips covering roughly duration seconds."""
        ...


# ── Mood and themes ────────────────────────────────────────────────


def determine_mood(tempo: float, energy: float) -> Mood:
    """Map tempo (bpm) and energy [0, 1] onto a mood."""
    if tempo >= 120:
        if energy >= 0.7:
            return Mood.ENERGETIC
        if energy >= 0.5:
            return Mood.HAPPY
        return Mood.DRAMATIC
    if tempo >= 90:
        if energy >= 0.7:
            return Mood.AGGRESSIVE
        if energy >= 0.4:
            return Mood.ROMANTIC
        return Mood.MYSTERIOUS
    if energy >= 0.5:
        return Mood.CALM
    return Mood.SAD


def themes_for_mood(mood: Mood) -> list[str]:
    return list(MOOD_THEMES[mood])


def extract_lyric_themes(lyrics: str) -> list[str]:
    """Keywords from LYRIC_KEYWORDS that appear in the lyrics, in keyword order."""
    text = lyrics.lower()
    return [k for k in LYRIC_KEYWORDS if k in text]


def merge_themes(analysis: AudioAnalysis, extra) -> AudioAnalysis:
    return analysis.with_themes(set(analysis.themes) | set(extra))


# ── Clip seeding ───────────────────────────────────────────────────


def plan_clips(
    sources: list[tuple[str, float]],
    duration: float,
    clip_length: float = DEFAULT_CLIP_LENGTH,
    transition: Transition = Transition.CROSS_DISSOLVE,
) -> list[Clip]:
    """Cover duration seconds with clips of about clip_length each.

    Sources are (path, source_duration) pairs used round-robin. Each clip
    starts at 0 in its source and is shortened to what the source holds;
    the last clip is shortened to what is left of the song. Sources shorter
    than a frame are ignored.

    Returns:
        Clips in playback order. Empty if there are no usable sources.
    """
    if clip_length <= 0:
        raise ValueError(f"clip_length must be > 0, got {clip_length!r}")
    usable = [(path, length) for path, length in sources if length and length > 0.04]
    if not usable or duration <= 0:
        return []

    clips = []
    covered = 0.0
    for path, length in cycle(usable):
        remaining = duration - covered
        if remaining <= 1e-6:
            break
        clip_duration = min(clip_length, length, remaining)
        clips.append(Clip(
            source=str(path), start_time=0.0, duration=clip_duration, transition=transition,
        ))
        covered += clip_duration
    return clips


class DirectoryClipSource:
    """Seed clips from the videos in a local folder.

    Files whose name contains one of the themes are used first, in theme
    order; the rest follow alphabetically. Unreadable files are skipped.
    """

    def __init__(
        self,
        directory: str | Path,
        probe: MediaProbe | None = None,
        clip_length: float = DEFAULT_CLIP_LENGTH,
    ):
        self.directory = Path(directory)
        self.probe = probe or MoviepyProbe()
        self.clip_length = clip_length

    def _ordered(self, themes: list[str]) -> list[Path]:
        files = list_videos(self.directory)

        def _rank(path: Path):
            name = path.stem.lower()
            for i, theme in enumerate(themes):
                if theme.lower() in name:
                    return (0, i, path.name)
            return (1, 0, path.name)
        return sorted(files, key=_rank)

    def clips_for(self, themes: list[str], duration: float) -> list[Clip]:
        sources = []
        for path in self._ordered(themes):
            try:
                info = self.probe.probe(str(path))
            except MediaProbeError as exc:
                logger.warning("Ignoring unreadable clip source %s: %s", path, exc)
                continue
            if info.has_video and info.duration:
                sources.append((str(path), info.duration))
        return plan_clips(sources, duration, clip_length=self.clip_length)


# ── Ingestion ──────────────────────────────────────────────────────


def create_project(
    audio_path: str | Path,
    clip_source: ClipSource,
    analyzer: AudioAnalyzer | None = None,
    transcriber: Transcriber | None = None,
    probe: MediaProbe | None = None,
    title: str | None = None,
) -> Project:
    """Create a project for a song: probe, analyze, transcribe, seed clips.

    Raises:
        BuildError: SONG_UNREADABLE if the song has no readable duration.
    """
    audio_path = str(audio_path)
    probe = probe or MoviepyProbe()
    try:
        info = probe.probe(audio_path)
    except MediaProbeError as exc:
        raise BuildError(ErrorKind.SONG_UNREADABLE, str(exc)) from exc
    if not info.has_audio or not info.duration:
        raise BuildError(ErrorKind.SONG_UNREADABLE, f"No usable audio in {audio_path}")

    song = Song(
        source=audio_path,
        title=title or Path(audio_path).stem,
        duration=info.duration,
    )

    analysis = None
    if analyzer is not None:
        try:
            analysis = analyzer.analyze(audio_path)
        except Exception as exc:
            # Any analyzer failure leaves the song without analysis.
            logger.warning("Audio analysis failed for %s: %s", audio_path, exc)

    if transcriber is not None:
        try:
            lyrics = transcriber.transcribe(audio_path)
        except Exception as exc:
            logger.warning("Lyrics transcription failed for %s: %s", audio_path, exc)
        else:
            song = song.with_lyrics(lyrics)
            if analysis is not None:
                analysis = merge_themes(analysis, extract_lyric_themes(lyrics))

    if analysis is not None:
        try:
            song = song.with_analysis(analysis)
        except ValueError as exc:
            logger.warning("Discarding analysis for %s: %s", audio_path, exc)
            analysis = None

    themes = sorted(analysis.themes) if analysis is not None else []
    clips = clip_source.clips_for(themes, song.duration)
    logger.info(
        "Created project for %s: %.1fs song, %d clips, themes=%s",
        song.title, song.duration, len(clips), themes,
    )
    return Project(song=song, clips=clips)


class ManualAnalyzer:
    """Analyzer for a tempo and energy the user already knows.

    Mood and themes follow from determine_mood / themes_for_mood; there are
    no key moments.
    """

    def __init__(self, tempo: float, energy: float):
        self.tempo = tempo
        self.energy = energy

    def analyze(self, audio_path: str) -> AudioAnalysis:
        mood = determine_mood(self.tempo, self.energy)
        return AudioAnalysis(
            tempo=self.tempo,
            energy=self.energy,
            mood=mood,
            themes=frozenset(themes_for_mood(mood)),
        )
