"""Project documents — save and load a project as YAML.

Project document schema:
  project:
    id: "5b0c..."
    created_at: "2026-10-19T09:30:00+00:00"
    modified_at: "2026-10-19T09:41:12.118000+00:00"
  video:                          # optional export settings
    resolution: [1920, 1080]
    fps: 30
    codec: libx264
  paths:                          # optional ${var} substitution on load
    clips: "/data/clips"
  song:
    id: "..."
    source: "/music/track.mp3"
    title: "track"
    duration: 183.4
    lyrics: "..."                 # optional
    analysis:                     # optional
      tempo: 122.0
      energy: 0.8
      mood: energetic
      themes: [action, party]
      key_moments:
        - {id: "...", timestamp: 12.5, intensity: 0.9, description: "Intense moment"}
  clips:
    - id: "..."
      source: "${clips}/beach.mp4"
      start_time: 0.0
      duration: 5.0
      transition: cross_dissolve  # none | cross_dissolve | fade | wipe | push
      color_grade: {brightness: 0.1, contrast: 0.0, saturation: 0.2, temperature: -0.1}

Saving writes resolved paths, so save -> load gives back an equal Project.
"""

from datetime import datetime
from pathlib import Path

import yaml

from .common import resolve_path_vars
from .errors import ManifestError
from .models import (
    AudioAnalysis,
    Clip,
    ColorGrade,
    KeyMoment,
    Mood,
    Project,
    Song,
    Transition,
)
from .render import ExportSettings


# ── Serialization ──────────────────────────────────────────────────


def _grade_to_dict(grade: ColorGrade) -> dict:
    return {
        "brightness": grade.brightness,
        "contrast": grade.contrast,
        "saturation": grade.saturation,
        "temperature": grade.temperature,
    }


def _analysis_to_dict(analysis: AudioAnalysis) -> dict:
    return {
        "tempo": analysis.tempo,
        "energy": analysis.energy,
        "mood": analysis.mood.value,
        "themes": sorted(analysis.themes),
        "key_moments": [
            {
                "id": m.id,
                "timestamp": m.timestamp,
                "intensity": m.intensity,
                "description": m.description,
            }
            for m in analysis.key_moments
        ],
    }


def _song_to_dict(song: Song) -> dict:
    d = {
        "id": song.id,
        "source": song.source,
        "title": song.title,
        "duration": song.duration,
    }
    if song.lyrics is not None:
        d["lyrics"] = song.lyrics
    if song.analysis is not None:
        d["analysis"] = _analysis_to_dict(song.analysis)
    return d


def _clip_to_dict(clip: Clip) -> dict:
    d = {
        "id": clip.id,
        "source": clip.source,
        "start_time": clip.start_time,
        "duration": clip.duration,
        "transition": clip.transition.value,
    }
    if clip.color_grade is not None:
        d["color_grade"] = _grade_to_dict(clip.color_grade)
    return d


def project_to_dict(project: Project, settings: ExportSettings | None = None) -> dict:
    d = {
        "project": {
            "id": project.id,
            "created_at": project.created_at.isoformat(),
            "modified_at": project.modified_at.isoformat(),
        },
    }
    if settings is not None:
        d["video"] = {
            "resolution": [settings.width, settings.height],
            "fps": settings.fps,
            "codec": settings.codec,
        }
    d["song"] = _song_to_dict(project.song)
    d["clips"] = [_clip_to_dict(c) for c in project.clips]
    return d


# ── Parsing ────────────────────────────────────────────────────────


def _require(d: dict, key: str, where: str):
    if not isinstance(d, dict) or key not in d:
        raise ManifestError(f"{where}: missing required field '{key}'")
    return d[key]


def _number(value, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ManifestError(f"{where}: expected a number, got {value!r}")
    return float(value)


def _timestamp(value, where: str) -> datetime:
    # Hand-written files may contain unquoted timestamps that YAML already parsed.
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ManifestError(f"{where}: invalid timestamp {value!r}") from exc


def _enum(enum_cls, value, where: str):
    try:
        return enum_cls(value)
    except ValueError:
        valid = sorted(e.value for e in enum_cls)
        raise ManifestError(f"{where}: invalid value '{value}'. Valid: {valid}") from None


def _parse_grade(raw: dict, where: str) -> ColorGrade:
    if not isinstance(raw, dict):
        raise ManifestError(f"{where}: expected a mapping, got {raw!r}")
    values = {
        k: _number(raw.get(k, 0.0), f"{where}.{k}")
        for k in ("brightness", "contrast", "saturation", "temperature")
    }
    try:
        return ColorGrade(**values)
    except ValueError as exc:
        raise ManifestError(f"{where}: {exc}") from exc


def _parse_analysis(raw: dict, where: str) -> AudioAnalysis:
    if not isinstance(raw, dict):
        raise ManifestError(f"{where}: expected a mapping, got {raw!r}")
    try:
        moments = []
        for i, m in enumerate(raw.get("key_moments") or []):
            mw = f"{where}.key_moments[{i}]"
            if not isinstance(m, dict):
                raise ManifestError(f"{mw}: expected a mapping, got {m!r}")
            kwargs = {
                "timestamp": _number(_require(m, "timestamp", mw), f"{mw}.timestamp"),
                "intensity": _number(_require(m, "intensity", mw), f"{mw}.intensity"),
                "description": str(m.get("description", "")),
            }
            if "id" in m:
                kwargs["id"] = str(m["id"])
            moments.append(KeyMoment(**kwargs))
        return AudioAnalysis(
            tempo=_number(_require(raw, "tempo", where), f"{where}.tempo"),
            energy=_number(_require(raw, "energy", where), f"{where}.energy"),
            mood=_enum(Mood, _require(raw, "mood", where), f"{where}.mood"),
            key_moments=tuple(moments),
            themes=frozenset(str(t) for t in raw.get("themes") or []),
        )
    except ValueError as exc:
        if isinstance(exc, ManifestError):
            raise
        raise ManifestError(f"{where}: {exc}") from exc


def _parse_song(raw: dict, paths: dict) -> Song:
    where = "song"
    kwargs = {
        "source": resolve_path_vars(str(_require(raw, "source", where)), paths),
        "title": str(raw.get("title") or ""),
        "duration": _number(_require(raw, "duration", where), "song.duration"),
    }
    if "id" in raw:
        kwargs["id"] = str(raw["id"])
    try:
        song = Song(**kwargs)
        if raw.get("analysis") is not None:
            song = song.with_analysis(_parse_analysis(raw["analysis"], "song.analysis"))
        if raw.get("lyrics") is not None:
            song = song.with_lyrics(str(raw["lyrics"]))
    except ValueError as exc:
        if isinstance(exc, ManifestError):
            raise
        raise ManifestError(f"song: {exc}") from exc
    return song


def _parse_clip(raw: dict, index: int, paths: dict) -> Clip:
    where = f"Clip {index}"
    kwargs = {
        "source": resolve_path_vars(str(_require(raw, "source", where)), paths),
        "start_time": _number(raw.get("start_time", 0.0), f"{where}.start_time"),
        "duration": _number(_require(raw, "duration", where), f"{where}.duration"),
        "transition": _enum(
            Transition, raw.get("transition", Transition.CROSS_DISSOLVE.value),
            f"{where}.transition",
        ),
    }
    if raw.get("color_grade") is not None:
        kwargs["color_grade"] = _parse_grade(raw["color_grade"], f"{where}.color_grade")
    if "id" in raw:
        kwargs["id"] = str(raw["id"])
    try:
        return Clip(**kwargs)
    except ValueError as exc:
        raise ManifestError(f"{where}: {exc}") from exc


def project_from_dict(raw: dict) -> Project:
    """Build a Project from a parsed document.

    Raises:
        ManifestError: Missing or invalid fields.
    """
    if not isinstance(raw, dict):
        raise ManifestError("Project document: expected a mapping at the top level")

    paths = raw.get("paths") or {}
    meta = raw.get("project") or {}
    if not isinstance(meta, dict):
        raise ManifestError(f"project: expected a mapping, got {meta!r}")
    song = _parse_song(_require(raw, "song", "Project document"), paths)

    clips = [_parse_clip(c, i, paths) for i, c in enumerate(raw.get("clips") or [])]
    ids = [c.id for c in clips]
    if len(set(ids)) != len(ids):
        dup = next(i for i in ids if ids.count(i) > 1)
        raise ManifestError(f"Duplicate clip id: '{dup}'")

    kwargs = {"song": song, "clips": clips}
    if "id" in meta:
        kwargs["id"] = str(meta["id"])
    if "created_at" in meta:
        kwargs["created_at"] = _timestamp(meta["created_at"], "project.created_at")
    if "modified_at" in meta:
        kwargs["modified_at"] = _timestamp(meta["modified_at"], "project.modified_at")
    try:
        return Project(**kwargs)
    except (ValueError, TypeError) as exc:
        raise ManifestError(f"project: {exc}") from exc


def settings_from_dict(raw: dict) -> ExportSettings:
    """Export settings from a document's optional video section."""
    video = (raw or {}).get("video") or {}
    kwargs = {}
    if "resolution" in video:
        res = video["resolution"]
        if not isinstance(res, (list, tuple)) or len(res) != 2:
            raise ManifestError(f"video.resolution must be [width, height], got {res!r}")
        kwargs["width"], kwargs["height"] = int(res[0]), int(res[1])
    if "fps" in video:
        kwargs["fps"] = int(video["fps"])
    for key in ("codec", "audio_codec", "preset"):
        if key in video:
            kwargs[key] = str(video[key])
    if "crf" in video:
        kwargs["crf"] = int(video["crf"])
    try:
        return ExportSettings(**kwargs)
    except ValueError as exc:
        raise ManifestError(str(exc)) from exc


# ── Files ──────────────────────────────────────────────────────────


def _read(path: str | Path) -> dict:
    with open(path) as f:
        raw = yaml.safe_load(f)
    return raw or {}


def save_project(
    project: Project, path: str | Path, settings: ExportSettings | None = None,
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(project_to_dict(project, settings), f, sort_keys=False, allow_unicode=True)
    return path


def load_project(path: str | Path) -> Project:
    """Load and validate a project document.

    Raises:
        ManifestError: Missing/invalid fields.
        FileNotFoundError: Missing document.
    """
    return project_from_dict(_read(path))


def load_export_settings(path: str | Path) -> ExportSettings:
    return settings_from_dict(_read(path))


def validate_media_paths(project: Project) -> None:
    """Check that the song and every clip source exist on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = []
    if not Path(project.song.source).exists():
        missing.append(project.song.source)
    for clip in project.clips:
        if not Path(clip.source).exists() and clip.source not in missing:
            missing.append(clip.source)

    if missing:
        msg = f"Missing {len(missing)} media file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
