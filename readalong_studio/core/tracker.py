"""Position tracker: playback samples in, "word changed" events out.

WHY: The audio engine reports the playhead many times per second. The
renderer only cares when the word being read changes. Walking a queue
of upcoming word starts turns the sample stream into change events
with O(1) amortized work per sample during normal forward playback.

HOW: remaining holds (word_id, start_ms) pairs not yet reached. Each
forward sample pops every entry whose start has been passed and emits
a change for each. A seek cannot be handled by popping (it may go
backwards), so it rebuilds the queue from the alignment index with a
binary search and emits once.

RULES:
- feed_position(t) assumes forward playback; feed_seek(t) is for jumps
- After feed_seek(t) the state equals that of playing from 0 up to t
- stop() rewinds to the start and clears the current word
- Handlers are called synchronously; the tracker never advances on its own
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from readalong_studio.core.alignment import AlignmentIndex
from readalong_studio.core.ir import seconds_to_ms

logger = logging.getLogger(__name__)

WordChangedHandler = Callable[[Optional[str]], None]


class PositionTracker:
    """Turns playback positions into word-change events."""

    def __init__(self, index: AlignmentIndex) -> None:
        self._sequence: List[Tuple[str, float]] = index.entries()
        self._starts: List[float] = [start for _, start in self._sequence]
        self.remaining: Deque[Tuple[str, float]] = deque(self._sequence)
        self.current: Optional[str] = None
        self._handlers: List[WordChangedHandler] = []

    def on_word_changed(self, handler: WordChangedHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _emit(self) -> None:
        logger.debug("Word changed: %s", self.current)
        for handler in list(self._handlers):
            handler(self.current)

    def feed_position(self, t_s: float) -> Optional[str]:
        """Consume a forward playback sample (seconds)."""
        t_ms = seconds_to_ms(t_s)
        while self.remaining and t_ms >= self.remaining[0][1]:
            word_id, _ = self.remaining.popleft()
            self.current = word_id
            self._emit()
        return self.current

    def feed_seek(self, t_s: float) -> Optional[str]:
        """Recompute state for a jump to t_s (seconds), forward or backward."""
        consumed = bisect_right(self._starts, seconds_to_ms(t_s))
        previous = self.current
        self.remaining = deque(self._sequence[consumed:])
        self.current = self._sequence[consumed - 1][0] if consumed else None
        if self.current != previous:
            self._emit()
        return self.current

    def stop(self) -> None:
        previous = self.current
        self.remaining = deque(self._sequence)
        self.current = None
        if previous is not None:
            self._emit()
