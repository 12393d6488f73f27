"""Subcommand dispatcher for songreel.

Usage:
    songreel new        song.mp3 --clips footage/ --output project.yaml
    songreel export     --project project.yaml --output video.mp4
    songreel transcribe song.mp3 --output lyrics.json
"""

import argparse
import sys


COMMANDS = {
    "new": "Create a project from a song and a folder of clips",
    "export": "Build the timeline and render a project to mp4",
    "transcribe": "Transcribe a song's lyrics",
}


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="songreel",
        description="Assemble a song and video clips into a music video.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    for name, help_text in COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # No subcommand given at all: show help and exit with error.
        parser.print_help()
        sys.exit(1)

    if parsed.command == "new":
        from .new_cli import main as new_main
        new_main(remaining)
    elif parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "transcribe":
        from .transcribe_cli import main as transcribe_main
        transcribe_main(remaining)


if __name__ == "__main__":
    main()
