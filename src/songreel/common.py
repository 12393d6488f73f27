"""songreel.common — shared utilities for media loading and documents.

Contains: path variable resolution, clip loading, and frame fitting.
"""

import logging
import re
from pathlib import Path

from moviepy import AudioFileClip, VideoFileClip


VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".mkv", ".webm", ".avi"}


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


def list_videos(directory: str | Path) -> list[Path]:
    """Video files directly inside directory, sorted by name."""
    return sorted(
        p for p in Path(directory).iterdir()
        if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS
    )


# ── Clip loading ───────────────────────────────────────────────────

def load_clip(path: str | Path, target_fps: int) -> VideoFileClip:
    """Load a single video (without its audio) and resample to target fps.

    Source clips come from anywhere (stock footage, phone recordings) and
    rarely share a frame rate. The song is the only audio in the output,
    so the clip's own audio stream is never decoded.
    """
    clip = VideoFileClip(str(path), audio=False)
    if clip.fps != target_fps:
        clip = clip.with_fps(target_fps)
    return clip


def load_audio(path: str | Path) -> AudioFileClip:
    return AudioFileClip(str(path))


# ── Geometry ───────────────────────────────────────────────────────

def fit_scale(
    size: tuple[int, int], target: tuple[int, int],
) -> float:
    """Scale factor that fits size inside target, preserving aspect ratio.

    The scaled frame touches target on one axis and is letterboxed
    (or pillarboxed) on the other.
    """
    w, h = size
    tw, th = target
    return min(tw / w, th / h)


# ── CLI helpers ────────────────────────────────────────────────────

def configure_logging(verbose: bool) -> None:
    """Show library log messages on stderr when --verbose is given."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def parse_resolution(text: str) -> tuple[int, int]:
    """Parse 'WIDTHxHEIGHT' (e.g. '1280x720')."""
    match = re.fullmatch(r"(\d+)[xX](\d+)", text.strip())
    if not match:
        raise ValueError(f"Invalid resolution '{text}'. Expected WIDTHxHEIGHT, e.g. 1920x1080")
    return int(match.group(1)), int(match.group(2))
