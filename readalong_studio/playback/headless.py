"""Headless audio backend: a simulated clock and marker list.

WHY: The CLI, the HTTP server and the tests need an audio engine to drive
a session, but none of them can (or should) decode audio. This backend
implements the full capability surface with a virtual playhead that
only moves when advance() is called.

HOW: play() / pause() / stop() / seek() update the virtual position and
fire the same events a real engine would. advance(dt) moves the
playhead forward while playing and emits position_update, honoring a
play(start, end) range and firing finish at the end of the track.
drag_marker() stands in for the operator dragging a marker.

RULES:
- Nothing happens between calls; the clock is entirely caller-driven
- seek() clamps into [0, duration] and emits seek(fraction)
- Reaching the end of a play(start, end) range pauses playback
- Reaching the end of the track emits finish and stops playing
"""

from __future__ import annotations

import logging
from typing import List, Optional

from readalong_studio.playback.base import BaseAudioBackend, Marker

logger = logging.getLogger(__name__)


class HeadlessAudioBackend(BaseAudioBackend):
    """Audio engine stand-in with a caller-driven clock."""

    def __init__(self, duration: Optional[float] = None) -> None:
        super().__init__()
        self._duration = duration
        self._position = 0.0
        self._playing = False
        self._range_end: Optional[float] = None
        self._markers: List[Marker] = []

    # -- loading ------------------------------------------------------------

    def load(self, duration: float) -> None:
        """Pretend the audio finished loading with the given duration."""
        self._duration = float(duration)
        logger.debug("Headless audio ready (%.3fs)", self._duration)
        self.emit("ready")

    def fail(self, message: str = "audio failed to load") -> None:
        logger.debug("Headless audio error: %s", message)
        self.emit("error", message)

    # -- transport ----------------------------------------------------------

    def play(self, start: Optional[float] = None, end: Optional[float] = None) -> None:
        if start is not None:
            self._position = self._clamp(start)
        self._range_end = end
        self._playing = True

    def pause(self) -> None:
        self._playing = False
        self._range_end = None
        self.emit("pause")

    def stop(self) -> None:
        self._playing = False
        self._range_end = None
        self._position = 0.0

    def seek(self, time: float) -> None:
        self._position = self._clamp(time)
        duration = self.get_duration()
        fraction = self._position / duration if duration else 0.0
        self.emit("seek", fraction)

    def get_duration(self) -> float:
        return self._duration or 0.0

    def get_current_time(self) -> float:
        return self._position

    def is_playing(self) -> bool:
        return self._playing

    def advance(self, seconds: float) -> None:
        """Move the playhead forward by seconds while playing."""
        if not self._playing:
            return
        target = self._position + seconds
        if self._range_end is not None and target >= self._range_end:
            self._position = self._clamp(self._range_end)
            self.emit("position_update", self._position)
            self.pause()
            return
        duration = self.get_duration()
        if duration and target >= duration:
            self._position = duration
            self.emit("position_update", self._position)
            self._playing = False
            self.emit("finish")
            return
        self._position = target
        self.emit("position_update", self._position)

    def _clamp(self, time: float) -> float:
        duration = self.get_duration()
        if duration:
            return min(max(0.0, time), duration)
        return max(0.0, time)

    # -- markers ------------------------------------------------------------

    def add_marker(
        self,
        time: float,
        label: str = "",
        color: str = "",
        draggable: bool = True,
    ) -> Marker:
        marker = Marker(time=time, label=label, color=color, draggable=draggable)
        self._markers.append(marker)
        return marker

    def remove_marker(self, marker: Marker) -> None:
        self._markers = [m for m in self._markers if m is not marker]

    def list_markers(self) -> List[Marker]:
        return list(self._markers)

    def drag_marker(self, marker: Marker, time: float) -> None:
        """Simulate the operator dropping a marker at a new time."""
        marker.time = self._clamp(time)
        self.emit("marker_dropped", marker)
