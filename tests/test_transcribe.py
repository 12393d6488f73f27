"""Tests for transcribe module.

Uses the shared source_video fixture from conftest.py.
Mocks faster-whisper since it is an optional heavy dep.
"""

import json
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest


def _segment(start, end, text):
    segment = MagicMock()
    segment.start = start
    segment.end = end
    segment.text = text
    return segment


def _mock_whisper(segments, language="en", duration=3.0):
    mock_info = MagicMock()
    mock_info.language = language
    mock_info.duration = duration

    mock_whisper_cls = MagicMock()
    mock_whisper_instance = MagicMock()
    mock_whisper_instance.transcribe.return_value = (iter(segments), mock_info)
    mock_whisper_cls.return_value = mock_whisper_instance
    return mock_whisper_cls


class TestImportGuard:
    def test_missing_deps_gives_clear_error(self):
        from songreel.transcribe import transcribe

        with patch("songreel.transcribe._WHISPER_AVAILABLE", False):
            with pytest.raises(RuntimeError, match="songreel\\[transcribe\\]"):
                transcribe("/fake/song.mp3")


class TestExtractAudio:
    def test_extracts_wav_from_video(self, source_video, tmp_path):
        """Uses ffmpeg to extract audio from shared fixture video."""
        from songreel.transcribe import _extract_audio

        wav_path = _extract_audio(str(source_video), tmp_path)
        assert Path(wav_path).exists()
        assert Path(wav_path).suffix == ".wav"


class TestCollectLines:
    def test_strips_and_drops_empty(self):
        from songreel.transcribe import _collect_lines

        lines = _collect_lines([
            _segment(0.0, 1.23456, "  Under the moon "),
            _segment(1.3, 1.5, "   "),
            _segment(2.0, 3.0, "we dance"),
        ])
        assert lines == [
            {"start": 0.0, "end": 1.235, "text": "Under the moon"},
            {"start": 2.0, "end": 3.0, "text": "we dance"},
        ]


class TestTranscribeOutput:
    def test_output_schema(self):
        """Verify output dict has all required fields."""
        from songreel.transcribe import _build_output

        lines = [
            {"start": 0.0, "end": 0.5, "text": "Hello"},
            {"start": 0.6, "end": 1.0, "text": "again"},
        ]
        result = _build_output(
            source="song.mp3",
            duration_s=10.0,
            model="small",
            language="en",
            lines=lines,
        )
        assert result["source"] == "song.mp3"
        assert result["duration_s"] == 10.0
        assert result["model"] == "small"
        assert result["language"] == "en"
        assert result["text"] == "Hello\nagain"
        assert len(result["lines"]) == 2
        # Verify it's JSON-serializable
        json.dumps(result)


class TestTranscribeIntegration:
    """Integration test: mocks whisper but runs the full pipeline."""

    def test_full_pipeline_with_mocked_model(self, source_video, tmp_path):
        """Verify transcribe() wires audio extraction -> whisper -> JSON."""
        from songreel.transcribe import transcribe

        mock_whisper_cls = _mock_whisper([
            _segment(0.0, 1.0, " Stars in the sky"),
            _segment(1.2, 2.5, " light the night"),
        ])
        output_path = str(tmp_path / "out" / "lyrics.json")

        with patch("songreel.transcribe._WHISPER_AVAILABLE", True), \
             patch("songreel.transcribe.WhisperModel", mock_whisper_cls):
            result = transcribe(str(source_video), model="tiny", output=output_path)

        mock_whisper_cls.assert_called_once_with("tiny")
        assert result["source"] == source_video.name
        assert result["duration_s"] == 3.0
        assert result["language"] == "en"
        assert result["text"] == "Stars in the sky\nlight the night"
        assert len(result["lines"]) == 2

        with open(output_path) as f:
            written = json.load(f)
        assert written == result

    def test_explicit_language_is_passed_through(self, source_video):
        from songreel.transcribe import transcribe

        mock_whisper_cls = _mock_whisper([_segment(0.0, 1.0, "hola")], language="es")
        with patch("songreel.transcribe._WHISPER_AVAILABLE", True), \
             patch("songreel.transcribe.WhisperModel", mock_whisper_cls):
            result = transcribe(str(source_video), language="es")

        _, kwargs = mock_whisper_cls.return_value.transcribe.call_args
        assert kwargs["language"] == "es"
        assert result["language"] == "es"


class TestWhisperTranscriber:
    def test_returns_text(self, source_video):
        from songreel.transcribe import WhisperTranscriber

        mock_whisper_cls = _mock_whisper([_segment(0.0, 1.0, "love and fire")])
        with patch("songreel.transcribe._WHISPER_AVAILABLE", True), \
             patch("songreel.transcribe.WhisperModel", mock_whisper_cls):
            text = WhisperTranscriber(model="base").transcribe(str(source_video))
        assert text == "love and fire"

    def test_no_lyrics_is_an_error(self, source_video):
        from songreel.transcribe import WhisperTranscriber

        mock_whisper_cls = _mock_whisper([])
        with patch("songreel.transcribe._WHISPER_AVAILABLE", True), \
             patch("songreel.transcribe.WhisperModel", mock_whisper_cls):
            with pytest.raises(RuntimeError, match="No lyrics"):
                WhisperTranscriber().transcribe(str(source_video))
