"""Tests for the timeline builder.

Media is described with an in-memory probe, so these tests never touch
ffmpeg. MoviepyProbe itself is covered in test_render.py against real
files.
"""

import pytest

from songreel.errors import BuildError, ErrorKind
from songreel.models import Clip, ColorGrade, Project, Song, Transition
from songreel.timeline import (
    IDENTITY_TRANSFORM,
    TRANSITION_WINDOW,
    MediaInfo,
    build_timeline,
)


def _videos(project, length=30.0):
    return {clip.source: length for clip in project.clips}


class TestOffsets:
    def test_three_clips_back_to_back(self, make_project, make_probe):
        project = make_project([4.0, 5.0, 3.0], transitions={1: Transition.CROSS_DISSOLVE})
        timeline = build_timeline(project, make_probe(_videos(project)))

        assert timeline.offsets == [0.0, 4.0, 9.0]
        assert timeline.duration == pytest.approx(12.0)
        assert [i.start for i in timeline.instructions] == [0.0, 4.0, 9.0]

        ramps = [i.opacity_ramp for i in timeline.instructions if i.opacity_ramp]
        assert len(ramps) == 1
        assert ramps[0].start == pytest.approx(4.0)
        assert ramps[0].end == pytest.approx(4.5)
        assert ramps[0].shape is Transition.CROSS_DISSOLVE
        assert (ramps[0].start_opacity, ramps[0].end_opacity) == (0.0, 1.0)

    @pytest.mark.parametrize("durations", [
        [1.0], [2.5, 2.5], [0.2, 7.0, 1.3], [3.0, 3.0, 3.0, 3.0], [0.1, 0.2, 0.3, 0.4, 0.5],
    ])
    def test_offsets_are_prefix_sums(self, make_project, make_probe, durations):
        project = make_project(durations)
        timeline = build_timeline(project, make_probe(_videos(project)))

        assert len(timeline.segments) == len(durations)
        expected = 0.0
        for segment, duration in zip(timeline.segments, durations):
            assert segment.start == pytest.approx(expected)
            assert segment.duration == duration
            expected += duration
        assert timeline.duration == pytest.approx(sum(durations))

    def test_segments_carry_clip_source_range(self, make_probe):
        song = Song(source="song.mp3", title="song", duration=60.0)
        clip = Clip(source="a.mp4", start_time=2.0, duration=3.0, transition=Transition.NONE)
        timeline = build_timeline(
            Project(song=song, clips=[clip]), make_probe({"a.mp4": 10.0}),
        )
        segment = timeline.segments[0]
        assert segment.clip_id == clip.id
        assert segment.source_start == 2.0
        assert segment.start == 0.0

    def test_audio_spans_probed_song(self, make_project, make_probe):
        project = make_project([1.0])
        timeline = build_timeline(project, make_probe(_videos(project), song_duration=42.0))
        assert timeline.audio.source == "song.mp3"
        assert timeline.audio.start == 0.0
        assert timeline.audio.duration == 42.0

    def test_build_is_deterministic(self, make_project, make_probe):
        project = make_project([1.0, 2.0], transitions={0: Transition.FADE})
        probe = make_probe(_videos(project))
        assert build_timeline(project, probe) == build_timeline(project, probe)

    def test_project_not_modified(self, make_project, make_probe):
        project = make_project([1.0, 2.0])
        before = (list(project.clips), project.modified_at)
        build_timeline(project, make_probe(_videos(project)))
        assert (project.clips, project.modified_at) == before


class TestInstructions:
    def test_one_instruction_per_segment(self, make_project, make_probe):
        project = make_project([1.0, 2.0, 3.0])
        timeline = build_timeline(project, make_probe(_videos(project)))
        assert len(timeline.instructions) == len(timeline.segments)
        for instruction, segment in zip(timeline.instructions, timeline.segments):
            assert instruction.start == segment.start
            assert instruction.end == pytest.approx(segment.end)
            assert instruction.transform == IDENTITY_TRANSFORM

    def test_none_transition_has_no_ramp(self, make_project, make_probe):
        project = make_project([2.0])
        timeline = build_timeline(project, make_probe(_videos(project)))
        assert timeline.instructions[0].opacity_ramp is None

    @pytest.mark.parametrize("transition", [
        Transition.CROSS_DISSOLVE, Transition.FADE, Transition.WIPE, Transition.PUSH,
    ])
    def test_every_soft_transition_ramps(self, make_project, make_probe, transition):
        project = make_project([2.0], transitions={0: transition})
        ramp = build_timeline(project, make_probe(_videos(project))).instructions[0].opacity_ramp
        assert ramp.shape is transition
        assert ramp.duration == TRANSITION_WINDOW

    def test_short_clip_ramps_over_whole_duration(self, make_project, make_probe):
        project = make_project([0.2], transitions={0: Transition.FADE})
        ramp = build_timeline(project, make_probe(_videos(project))).instructions[0].opacity_ramp
        assert ramp.duration == pytest.approx(0.2)

    def test_color_grade_carried(self, make_project, make_probe):
        project = make_project([1.0, 1.0])
        grade = ColorGrade(brightness=0.3)
        project.set_color_grade(0, grade)
        project.set_color_grade(1, ColorGrade.identity())
        timeline = build_timeline(project, make_probe(_videos(project)))
        assert timeline.instructions[0].color_grade == grade
        assert timeline.instructions[1].color_grade is None


class TestSkipPolicy:
    def test_unreadable_clip_skipped(self, make_project, make_probe):
        project = make_project([4.0, 5.0, 3.0])
        videos = _videos(project)
        del videos["clip1.mp4"]
        timeline = build_timeline(project, make_probe(videos))

        assert [s.source for s in timeline.segments] == ["clip0.mp4", "clip2.mp4"]
        assert timeline.offsets == [0.0, 4.0]
        assert timeline.duration == pytest.approx(7.0)
        assert len(timeline.skipped) == 1
        skipped = timeline.skipped[0]
        assert skipped.index == 1
        assert skipped.clip_id == project.clips[1].id
        assert "Cannot read" in skipped.reason

    def test_clip_past_source_end_skipped(self, make_project, make_probe):
        project = make_project([4.0, 5.0])
        timeline = build_timeline(project, make_probe({"clip0.mp4": 10.0, "clip1.mp4": 4.0}))
        assert [s.source for s in timeline.segments] == ["clip0.mp4"]
        assert "exceeds source length" in timeline.skipped[0].reason

    def test_audio_only_clip_skipped(self, make_project, make_probe):
        project = make_project([1.0, 1.0])
        probe = make_probe(_videos(project))
        probe.media["clip0.mp4"] = MediaInfo(duration=10.0, has_video=False, has_audio=True)
        timeline = build_timeline(project, probe)
        assert timeline.skipped[0].reason == "no video stream"
        assert timeline.offsets == [0.0]

    def test_unknown_source_length_trusts_clip(self, make_project, make_probe):
        project = make_project([3.0])
        probe = make_probe()
        probe.media["clip0.mp4"] = MediaInfo(duration=None, has_video=True, has_audio=False)
        assert len(build_timeline(project, probe).segments) == 1

    def test_all_clips_skipped_gives_empty_timeline(self, make_project, make_probe):
        project = make_project([1.0, 2.0])
        timeline = build_timeline(project, make_probe())
        assert timeline.is_empty
        assert timeline.duration == 0
        assert len(timeline.skipped) == 2


class TestBuildErrors:
    def test_empty_project(self, make_project, make_probe):
        probe = make_probe()
        with pytest.raises(BuildError) as exc_info:
            build_timeline(make_project([]), probe)
        assert exc_info.value.kind is ErrorKind.EMPTY_PROJECT
        assert probe.calls == []

    def test_unreadable_song(self, make_project, make_probe):
        project = make_project([1.0])
        probe = make_probe(_videos(project), song="other.mp3")
        with pytest.raises(BuildError) as exc_info:
            build_timeline(project, probe)
        assert exc_info.value.kind is ErrorKind.SONG_UNREADABLE

    def test_song_without_audio(self, make_project, make_probe):
        project = make_project([1.0])
        probe = make_probe(_videos(project))
        probe.media["song.mp3"] = MediaInfo(duration=60.0, has_video=True, has_audio=False)
        with pytest.raises(BuildError) as exc_info:
            build_timeline(project, probe)
        assert exc_info.value.kind is ErrorKind.SONG_UNREADABLE

    def test_song_without_duration(self, make_project, make_probe):
        project = make_project([1.0])
        probe = make_probe(_videos(project))
        probe.media["song.mp3"] = MediaInfo(duration=None, has_video=False, has_audio=True)
        with pytest.raises(BuildError, match="Unknown duration"):
            build_timeline(project, probe)
