"""CLI for creating a project — song + folder of clips -> project YAML.

Usage:
    songreel new song.mp3 --clips footage/ --output project.yaml
    songreel new song.mp3 --clips footage/ --output project.yaml \
        --tempo 128 --energy 0.8 --transcribe --clip-length 4
"""

import argparse

from .collaborators import DirectoryClipSource, ManualAnalyzer, create_project
from .common import configure_logging, parse_resolution
from .project_manifest import save_project
from .render import ExportSettings


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="Create a music video project from a song and a folder of clips.",
    )
    parser.add_argument("song", help="Path to the song (audio file)")
    parser.add_argument(
        "--clips", required=True,
        help="Folder of video files to seed the clip sequence from",
    )
    parser.add_argument(
        "--output", required=True,
        help="Project YAML to write",
    )
    parser.add_argument("--title", default=None, help="Song title (default: file name)")
    parser.add_argument(
        "--clip-length", type=float, default=5.0,
        help="Target seconds per clip (default: 5)",
    )
    parser.add_argument(
        "--tempo", type=float, default=None,
        help="Song tempo in bpm; with --energy, sets mood and themes",
    )
    parser.add_argument(
        "--energy", type=float, default=None,
        help="Song energy in [0, 1]; with --tempo, sets mood and themes",
    )
    parser.add_argument(
        "--transcribe", action="store_true",
        help="Transcribe lyrics (needs songreel[transcribe])",
    )
    parser.add_argument(
        "--model", default="small",
        help="Whisper model size for --transcribe (default: small)",
    )
    parser.add_argument(
        "--resolution", default="1920x1080",
        help="Export resolution stored in the project (default: 1920x1080)",
    )
    parser.add_argument("--fps", type=int, default=30, help="Export fps (default: 30)")
    parser.add_argument("--verbose", action="store_true", help="Show log messages")
    return parser, parser.parse_args(args)


def main(args=None):
    parser, parsed = _parse_args(args)
    configure_logging(parsed.verbose)

    if (parsed.tempo is None) != (parsed.energy is None):
        parser.error("--tempo and --energy must be given together")
    try:
        width, height = parse_resolution(parsed.resolution)
        settings = ExportSettings(width=width, height=height, fps=parsed.fps)
    except ValueError as exc:
        parser.error(str(exc))

    analyzer = None
    if parsed.tempo is not None:
        analyzer = ManualAnalyzer(parsed.tempo, parsed.energy)

    transcriber = None
    if parsed.transcribe:
        from .transcribe import WhisperTranscriber
        transcriber = WhisperTranscriber(model=parsed.model)

    print(f"Creating project for {parsed.song}")
    project = create_project(
        parsed.song,
        DirectoryClipSource(parsed.clips, clip_length=parsed.clip_length),
        analyzer=analyzer,
        transcriber=transcriber,
        title=parsed.title,
    )

    song = project.song
    print(f"  Song: {song.title} ({song.duration:.1f}s)")
    if song.analysis is not None:
        print(f"  Mood: {song.analysis.mood.value}, themes: {', '.join(sorted(song.analysis.themes))}")
    print(f"  Lyrics: {'yes' if song.lyrics else 'no'}")
    print(f"  Clips: {len(project.clips)} ({project.total_clip_duration:.1f}s)")
    if not project.clips:
        print(f"  Warning: no usable videos in {parsed.clips}")

    save_project(project, parsed.output, settings)
    print(f"Done: {parsed.output}")


if __name__ == "__main__":
    main()
