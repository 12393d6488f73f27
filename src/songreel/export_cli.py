"""CLI for export — build a project's timeline and render it to mp4.

Two modes:
  1. --validate: build the timeline only, print segment offsets and any
     clips that will be skipped. No rendering.
  2. Default: render through an export session, printing progress.
     Ctrl-C cancels the render and leaves no partial file behind.

Usage:
    songreel export --project project.yaml --validate
    songreel export --project project.yaml --output video.mp4
    songreel export --project project.yaml --resolution 1280x720 --fps 24 \
        --library ~/Videos/songreel
"""

import argparse
import sys

from .common import configure_logging, parse_resolution
from .errors import BuildError
from .export import ExportPipeline
from .project_manifest import load_export_settings, load_project
from .render import ExportSettings
from .session import DirectoryMediaStore, ExportSession, ExportState
from .timeline import build_timeline


def _settings_from_args(parsed, base: ExportSettings) -> ExportSettings:
    kwargs = {
        "width": base.width,
        "height": base.height,
        "fps": base.fps,
        "codec": base.codec,
        "audio_codec": base.audio_codec,
        "preset": base.preset,
        "crf": base.crf,
    }
    if parsed.resolution:
        kwargs["width"], kwargs["height"] = parse_resolution(parsed.resolution)
    if parsed.fps:
        kwargs["fps"] = parsed.fps
    if parsed.gpu:
        kwargs["codec"] = "h264_nvenc"
    return ExportSettings(**kwargs)


def _print_skips(skipped) -> None:
    for skip in skipped:
        print(f"  SKIP   clip {skip.index} ({skip.source}): {skip.reason}")


def validate(project_path: str) -> int:
    """Build the timeline and describe it. Returns a process exit code."""
    project = load_project(project_path)
    try:
        timeline = build_timeline(project)
    except BuildError as exc:
        print(f"Build failed: {exc}")
        return 1

    print(f"Song: {project.song.title} ({timeline.audio.duration:.1f}s)")
    for segment, instruction in zip(timeline.segments, timeline.instructions):
        extras = [instruction.transition.value]
        if instruction.color_grade is not None:
            extras.append("graded")
        print(
            f"  {segment.start:7.2f}s  +{segment.duration:5.2f}s  "
            f"{segment.source}  ({', '.join(extras)})"
        )
    _print_skips(timeline.skipped)
    print(
        f"Timeline valid: {len(timeline.segments)} of {len(project.clips)} clips, "
        f"{timeline.duration:.1f}s video"
    )
    return 0 if timeline.segments else 1


def _progress_printer():
    last = {"pct": -1}

    def _on_change(session):
        pct = int(session.progress * 100)
        if session.state is ExportState.EXPORTING and pct != last["pct"]:
            last["pct"] = pct
            print(f"\r  Rendering... {pct:3d}%", end="", flush=True)
    return _on_change


def export(project_path: str, output_path: str | None, settings: ExportSettings,
           exports_dir: str, library: str | None) -> int:
    """Render a project through an export session. Returns a process exit code."""
    project = load_project(project_path)
    store = DirectoryMediaStore(library) if library else None

    with ExportSession(
        pipeline=ExportPipeline(settings=settings),
        exports_dir=exports_dir,
        media_store=store,
    ) as session:
        session.subscribe(_progress_printer())
        print(
            f"Exporting {len(project.clips)} clips at "
            f"{settings.width}x{settings.height}@{settings.fps}fps"
        )
        session.start(project, output_path)
        try:
            while session.wait(timeout=0.5) is ExportState.EXPORTING:
                pass
        except KeyboardInterrupt:
            print("\nCancelling...")
            session.cancel()
            session.wait()
        print()

        _print_skips(session.skipped)
        if session.state is ExportState.FAILED:
            print(f"Export failed: {session.error_message} ({session.error})")
            return 1

        print(f"Done: {session.output_path}")
        if store is not None:
            if session.save_externally():
                print(f"Saved to library: {session.saved_path}")
            else:
                print(f"Library save failed: {session.save_error}")
    return 0


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export CLI — render a songreel project to mp4.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to the project YAML",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output mp4 path (default: <exports-dir>/<project id>.mp4)",
    )
    parser.add_argument(
        "--exports-dir", default="exports",
        help="Folder for default output paths (default: ./exports)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Build the timeline only — print offsets and skips, don't render",
    )
    parser.add_argument(
        "--resolution", default=None,
        help="Override the project's resolution, e.g. 1280x720",
    )
    parser.add_argument("--fps", type=int, default=None, help="Override the project's fps")
    parser.add_argument(
        "--gpu", action="store_true",
        help="Use GPU encoding (h264_nvenc). Default is CPU (libx264).",
    )
    parser.add_argument(
        "--library", default=None,
        help="Also copy the finished video into this media library folder",
    )
    parser.add_argument("--verbose", action="store_true", help="Show log messages")
    parsed = parser.parse_args(args)
    configure_logging(parsed.verbose)

    if parsed.validate:
        sys.exit(validate(parsed.project))

    try:
        settings = _settings_from_args(parsed, load_export_settings(parsed.project))
    except ValueError as exc:
        parser.error(str(exc))

    sys.exit(export(parsed.project, parsed.output, settings, parsed.exports_dir, parsed.library))


if __name__ == "__main__":
    main()
