"""Tests for the position tracker.

WHY: The renderer highlights whatever the tracker reports. A missed
change leaves a stale highlight; a spurious one makes the text flicker.
A seek must leave the tracker exactly where forward playback to the
same time would have.
"""

from __future__ import annotations

from readalong_studio.core.alignment import AlignmentIndex
from readalong_studio.core.ir import TimeInterval
from readalong_studio.core.smil import parse_smil
from readalong_studio.core.tracker import PositionTracker


def _tracker(index):
    tracker = PositionTracker(index)
    events = []
    tracker.on_word_changed(events.append)
    return tracker, events


class TestForwardPlayback:

    def test_emits_on_each_word_change(self, index):
        tracker, events = _tracker(index)
        for t in (0.0, 0.5, 1.2, 1.3, 3.0):
            tracker.feed_position(t)
        assert events == ["w1", "w2", "w3"]
        assert tracker.current == "w3"

    def test_large_step_emits_every_passed_word(self, index):
        tracker, events = _tracker(index)
        tracker.feed_position(2.0)
        assert events == ["w1", "w2", "w3"]
        assert len(tracker.remaining) == 0

    def test_no_event_before_first_word(self):
        tracker, events = _tracker(AlignmentIndex([("a", TimeInterval(500, 100))]))
        tracker.feed_position(0.2)
        assert events == []
        assert tracker.current is None


class TestSeek:

    def test_seek_sets_current_and_emits_once(self, index):
        tracker, events = _tracker(index)
        tracker.feed_seek(1.2)
        assert events == ["w2"]
        assert [word_id for word_id, _ in tracker.remaining] == ["w3"]

    def test_seek_then_continue(self, index):
        tracker, events = _tracker(index)
        tracker.feed_seek(1.2)
        tracker.feed_position(1.4)
        tracker.feed_position(1.6)
        assert events == ["w2", "w3"]

    def test_backward_seek(self, index):
        tracker, events = _tracker(index)
        tracker.feed_position(3.0)
        tracker.feed_seek(0.5)
        assert tracker.current == "w1"
        assert events[-1] == "w1"
        assert len(tracker.remaining) == 2

    def test_seek_within_same_word_is_silent(self, index):
        tracker, events = _tracker(index)
        tracker.feed_seek(1.1)
        tracker.feed_seek(1.3)
        assert events == ["w2"]

    def test_seek_equals_forward_playback(self, index):
        played, _ = _tracker(index)
        for t in (0.0, 0.4, 0.9, 1.2):
            played.feed_position(t)
        sought, _ = _tracker(index)
        sought.feed_seek(1.2)
        assert sought.current == played.current
        assert list(sought.remaining) == list(played.remaining)


class TestInexactStarts:

    def test_position_at_start_reaches_word(self, fractional_smil):
        tracker, events = _tracker(AlignmentIndex(parse_smil(fractional_smil).entries))
        assert tracker.feed_position(1.005) == "w2"
        assert events == ["w1", "w2"]

    def test_seek_to_start_reaches_word(self, fractional_smil):
        tracker, _ = _tracker(AlignmentIndex(parse_smil(fractional_smil).entries))
        assert tracker.feed_seek(1.005) == "w2"
        assert [word_id for word_id, _ in tracker.remaining] == ["w3"]


class TestStopAndHandlers:

    def test_stop_resets_and_emits_none(self, index):
        tracker, events = _tracker(index)
        tracker.feed_position(1.2)
        tracker.stop()
        assert events[-1] is None
        assert tracker.current is None
        assert len(tracker.remaining) == 3

    def test_stop_when_idle_is_silent(self, index):
        tracker, events = _tracker(index)
        tracker.stop()
        assert events == []

    def test_unsubscribe(self, index):
        tracker = PositionTracker(index)
        events = []
        unsubscribe = tracker.on_word_changed(events.append)
        unsubscribe()
        tracker.feed_position(1.0)
        assert events == []
        unsubscribe()
