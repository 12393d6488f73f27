"""Lyrics transcription — faster-whisper over the song's vocals.

Requires optional dependencies: pip install songreel[transcribe]
Import-guarded so the rest of songreel works without it.

WhisperTranscriber implements collaborators.Transcriber; the CLI's
transcribe subcommand writes the full result (text + timed lines) as JSON.
"""

import json
import subprocess
import tempfile
from pathlib import Path

import imageio_ffmpeg

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

# Import-guarded heavy dependency.
try:
    from faster_whisper import WhisperModel
    _WHISPER_AVAILABLE = True
except ImportError:
    WhisperModel = None
    _WHISPER_AVAILABLE = False


def _extract_audio(source: str, work_dir: Path) -> str:
    """Extract audio to a mono 16 kHz WAV using ffmpeg.

    Returns path to the extracted WAV file.
    """
    wav_path = str(work_dir / "audio.wav")
    cmd = [
        _FFMPEG, "-y",
        "-i", source,
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", "16000",
        "-ac", "1",
        wav_path,
    ]
    subprocess.run(cmd, check=True, capture_output=True)
    return wav_path


def _collect_lines(segments) -> list[dict]:
    """Whisper segments -> [{start, end, text}], dropping empty ones."""
    lines = []
    for segment in segments:
        text = segment.text.strip()
        if text:
            lines.append({
                "start": round(segment.start, 3),
                "end": round(segment.end, 3),
                "text": text,
            })
    return lines


def _build_output(
    source: str,
    duration_s: float,
    model: str,
    language: str,
    lines: list[dict],
) -> dict:
    """Build the output dict matching the transcript JSON schema."""
    return {
        "source": source,
        "duration_s": duration_s,
        "model": model,
        "language": language,
        "text": "\n".join(line["text"] for line in lines),
        "lines": lines,
    }


def transcribe(
    source: str,
    model: str = "small",
    language: str | None = None,
    output: str | None = None,
) -> dict:
    """Transcribe the lyrics of a song (or any audio/video file).

    Args:
        source: Path to the audio or video file.
        model: Whisper model size (tiny, base, small, medium, large-v3).
        language: Language code or None for auto-detection.
        output: Optional JSON path to write the result to.

    Returns:
        Transcript dict with the joined text and timed lines.

    Raises:
        RuntimeError: If songreel[transcribe] is not installed.
    """
    if not _WHISPER_AVAILABLE:
        raise RuntimeError(
            "Transcription requires extra dependencies.\n"
            "Run: pip install songreel[transcribe]"
        )

    with tempfile.TemporaryDirectory() as work_dir:
        wav_path = _extract_audio(source, Path(work_dir))
        whisper_model = WhisperModel(model)
        segments, info = whisper_model.transcribe(wav_path, language=language)
        # segments is a lazy generator; consume it while the WAV still exists.
        lines = _collect_lines(segments)

    result = _build_output(
        source=Path(source).name,
        duration_s=round(info.duration, 1),
        model=model,
        language=language or info.language,
        lines=lines,
    )

    if output is not None:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w") as f:
            json.dump(result, f, indent=2)

    return result


class WhisperTranscriber:
    """Transcriber backed by faster-whisper."""

    def __init__(self, model: str = "small", language: str | None = None):
        self.model = model
        self.language = language

    def transcribe(self, audio_path: str) -> str:
        result = transcribe(audio_path, model=self.model, language=self.language)
        if not result["text"]:
            raise RuntimeError(f"No lyrics recognized in {audio_path}")
        return result["text"]
