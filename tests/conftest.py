"""Shared test fixtures for songreel tests."""

import subprocess

import pytest
import imageio_ffmpeg

from songreel.models import Clip, Project, Song, Transition
from songreel.timeline import MediaInfo, MediaProbeError

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


@pytest.fixture
def source_video(tmp_path):
    """Create a 3-second test video (160x120, 10fps) with audio using ffmpeg.

    Shared across the render, common and transcribe tests.
    """
    out = tmp_path / "source.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "testsrc=s=160x120:d=3:r=10",
            "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def song_audio(tmp_path):
    """Create a 4-second 440 Hz tone as an m4a file."""
    out = tmp_path / "song.m4a"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=4",
            "-c:a", "aac", "-b:a", "64k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


class FakeProbe:
    """In-memory MediaProbe. Unknown sources are unreadable."""

    def __init__(self, media: dict[str, MediaInfo]):
        self.media = media
        self.calls = []

    def probe(self, source):
        self.calls.append(source)
        if source not in self.media:
            raise MediaProbeError(f"Cannot read {source}")
        return self.media[source]


@pytest.fixture
def make_probe():
    """Build a FakeProbe from {video_path: duration} plus one song."""
    def _make(videos=None, song="song.mp3", song_duration=60.0):
        media = {song: MediaInfo(duration=song_duration, has_video=False, has_audio=True)}
        for path, duration in (videos or {}).items():
            media[path] = MediaInfo(duration=duration, has_video=True, has_audio=False)
        return FakeProbe(media)
    return _make


@pytest.fixture
def make_project():
    """Build a project over song.mp3 with clips of the given durations.

    Clip i reads from clip{i}.mp4 at offset 0 with no transition, unless
    transitions overrides it.
    """
    def _make(durations, transitions=None):
        transitions = transitions or {}
        clips = [
            Clip(
                source=f"clip{i}.mp4",
                start_time=0.0,
                duration=d,
                transition=transitions.get(i, Transition.NONE),
            )
            for i, d in enumerate(durations)
        ]
        return Project(song=Song(source="song.mp3", title="song", duration=60.0), clips=clips)
    return _make
