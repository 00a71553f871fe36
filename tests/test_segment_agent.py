"""
Unit tests for script segmentation.

Tests cover:
1. Segment count and half-up timestamp rounding
2. Contiguity of timestamps for arbitrary durations
3. Rejection of malformed LLM output (nothing written)
4. Preconditions checked before the LLM is called
"""
import json

import pytest

from agents import SegmentAgent
from agents.segment_agent import compute_timestamps, round_half_up, segment_count
from utils.errors import AdapterContractViolation, ValidationError

from conftest import FakeChat, segments_handler


def _segments(numbers, text="text", scene="scene"):
    return json.dumps({
        "segments": [
            {"segment_number": n, "text": f"{text} {n}", "scene_description": f"{scene} {n}"}
            for n in numbers
        ]
    })


@pytest.fixture
def narrated(store):
    created = store.create("The lighthouse keeper counted ships every night.")
    return store.update(created.id, audio_duration=33.0)


class TestTimestamps:

    def test_round_half_up(self):
        assert round_half_up(5.5) == 6
        assert round_half_up(16.5) == 17
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    def test_thirty_three_seconds(self):
        assert segment_count(33.0, 6) == 6
        assert compute_timestamps(33.0, 6) == [
            "0-6s", "6-11s", "11-17s", "17-22s", "22-28s", "28-33s",
        ]

    @pytest.mark.parametrize("duration", [0.4, 5.0, 6.0, 6.01, 17.3, 59.99, 120.45, 301.0])
    def test_timestamps_are_contiguous(self, duration):
        count = segment_count(duration, 6)
        stamps = compute_timestamps(duration, count)
        assert len(stamps) == count
        bounds = [tuple(int(x) for x in s[:-1].split("-")) for s in stamps]
        assert bounds[0][0] == 0
        for (_, end), (start, _) in zip(bounds, bounds[1:]):
            assert end == start
        assert bounds[-1][1] == round_half_up(duration)


class TestSegment:

    def test_segment_33_seconds(self, store, narrated, settings):
        chat = FakeChat(handler=segments_handler)
        project = SegmentAgent(chat, store, settings).segment(narrated.id)

        slots = project.ordered_slots()
        assert [s.index for s in slots] == [0, 1, 2, 3, 4, 5]
        assert [s.timestamp for s in slots] == [
            "0-6s", "6-11s", "11-17s", "17-22s", "22-28s", "28-33s",
        ]
        assert slots[0].text_segment == "Segment text 1"
        assert "exactly 6 segments" in chat.calls[0]["messages"][1]["content"]

    @pytest.mark.parametrize("duration", [3.0, 12.0, 47.5, 95.2])
    def test_count_matches_duration(self, store, settings, duration):
        created = store.create("Script")
        store.update(created.id, audio_duration=duration)
        project = SegmentAgent(FakeChat(handler=segments_handler), store, settings).segment(created.id)
        assert len(project.slots) == segment_count(duration, 6)
        assert sorted(s.index for s in project.slots) == list(range(len(project.slots)))

    def test_out_of_order_segments_are_sorted(self, store, settings):
        created = store.create("Script")
        store.update(created.id, audio_duration=18.0)
        chat = FakeChat(responses=[_segments([3, 1, 2])])
        slots = SegmentAgent(chat, store, settings).segment(created.id).ordered_slots()
        assert [s.text_segment for s in slots] == ["text 1", "text 2", "text 3"]
        assert [s.timestamp for s in slots] == ["0-6s", "6-12s", "12-18s"]

    def test_explicit_duration_overrides_project(self, store, narrated, settings):
        project = SegmentAgent(FakeChat(handler=segments_handler), store, settings).segment(
            narrated.id, audio_duration=12.0
        )
        assert len(project.slots) == 2

    def test_resegmentation_replaces_slots(self, store, narrated, settings):
        agent = SegmentAgent(FakeChat(handler=segments_handler), store, settings)
        first = agent.segment(narrated.id)
        store.update_slot(first.slots[0].id, image_url="https://img.example/x.png")
        second = agent.segment(narrated.id)
        assert {s.id for s in first.slots}.isdisjoint({s.id for s in second.slots})
        assert all(s.image_url is None for s in second.slots)


class TestSegmentRejections:

    @pytest.mark.parametrize("raw", [
        "not json at all",
        json.dumps([1, 2, 3]),
        json.dumps({"segments": "nope"}),
        _segments([1, 2, 3, 4, 5]),
        _segments([1, 2, 3, 4, 5, 5]),
        _segments([0, 1, 2, 3, 4, 5]),
        _segments([1, 2, 3, 4, 5, 7]),
        json.dumps({"segments": [
            {"segment_number": n, "text": "" if n == 2 else "t", "scene_description": "s"}
            for n in range(1, 7)
        ]}),
    ])
    def test_invalid_output_writes_nothing(self, store, narrated, settings, raw):
        agent = SegmentAgent(FakeChat(responses=[raw]), store, settings)
        with pytest.raises(AdapterContractViolation):
            agent.segment(narrated.id)
        assert store.get(narrated.id).slots == []

    def test_fenced_json_is_accepted(self, store, narrated, settings):
        raw = "```json\n" + _segments(range(1, 7)) + "\n```"
        project = SegmentAgent(FakeChat(responses=[raw]), store, settings).segment(narrated.id)
        assert len(project.slots) == 6

    @pytest.mark.parametrize("duration", [None, 0, -3.0])
    def test_missing_duration(self, store, settings, duration):
        created = store.create("Script")
        if duration is not None:
            store.update(created.id, audio_duration=duration)
        chat = FakeChat(handler=segments_handler)
        with pytest.raises(ValidationError):
            SegmentAgent(chat, store, settings).segment(created.id)
        assert chat.calls == []

    def test_empty_script(self, store, narrated, settings):
        chat = FakeChat(handler=segments_handler)
        with pytest.raises(ValidationError):
            SegmentAgent(chat, store, settings).segment(narrated.id, script="  ")
        assert chat.calls == []
