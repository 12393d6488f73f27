"""CLI for lyrics transcription.

Usage:
    songreel transcribe song.mp3
    songreel transcribe song.mp3 --model large-v3 --language en --output lyrics.json
"""

import argparse
from pathlib import Path

from .transcribe import transcribe


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="Transcribe a song's lyrics with timed lines.",
    )
    parser.add_argument(
        "source",
        help="Path to audio or video file",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output JSON path (default: <source>.lyrics.json)",
    )
    parser.add_argument(
        "--model", default="small",
        help="Whisper model size (default: small)",
    )
    parser.add_argument(
        "--language", default=None,
        help="Source language code (default: auto-detect)",
    )
    return parser.parse_args(args)


def main(args=None):
    parsed = _parse_args(args)
    output = parsed.output or str(Path(parsed.source).with_suffix(".lyrics.json"))

    print(f"Transcribing: {parsed.source}")
    print(f"Model: {parsed.model}")

    result = transcribe(
        source=parsed.source,
        model=parsed.model,
        language=parsed.language,
        output=output,
    )

    print(f"\nDone: {len(result['lines'])} lines, language={result['language']}")
    print(f"Output: {output}")


if __name__ == "__main__":
    main()
