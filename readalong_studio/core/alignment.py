"""Alignment index and time-to-word locator.

WHY: During playback the host asks "which word is being read at t?"
dozens of times per second. A linear scan over thousands of words per
frame is wasteful, and the answer must be stable: the same t always
gives the same word, and later times never give earlier words.

HOW: AlignmentIndex keeps the parsed (word_id, TimeInterval) entries in
document order plus a parallel list of start times. Because the
constructor enforces non-decreasing starts, that list is sorted and
bisect answers locate() in O(log n). Successive playback queries land
on the same or the next word, so locate() first checks the previous
answer and its successor before falling back to the binary search.

RULES:
- Construction rejects start times that decrease in document order
- The synthetic "all" entry is kept out of the word sequence, appears
  last in as_dict(), and spans [0, duration] once duration is known
- locate(t): greatest word with start <= t; the last word extends to the
  end of the track; t before the first word clamps to the first word
- Ties (equal starts) resolve to the earliest word in document order
- locate() of an index without words returns None
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from readalong_studio.config import ALL_SPRITE_ID
from readalong_studio.core.ir import TimeInterval, seconds_to_ms
from readalong_studio.errors import MalformedAlignment, NonMonotonicAlignment

logger = logging.getLogger(__name__)


class AlignmentIndex:
    """Ordered word → TimeInterval mapping with a fast locator."""

    def __init__(
        self,
        entries: Iterable[Tuple[str, TimeInterval]],
        duration_ms: Optional[float] = None,
    ) -> None:
        self._ids: List[str] = []
        self._starts: List[float] = []
        self._intervals: Dict[str, TimeInterval] = {}
        self._positions: Dict[str, int] = {}
        self._duration_ms: Optional[float] = None
        self._hint: Optional[int] = None

        for word_id, interval in entries:
            if word_id == ALL_SPRITE_ID:
                continue
            if word_id in self._intervals:
                raise MalformedAlignment("Duplicate word id in alignment: {}".format(word_id))
            if interval.start_ms < 0 or interval.duration_ms < 0:
                raise MalformedAlignment(
                    "Negative timing for '{}': {}".format(word_id, interval.as_list())
                )
            if self._starts and interval.start_ms < self._starts[-1]:
                raise NonMonotonicAlignment(word_id, self._ids[-1])
            self._positions[word_id] = len(self._ids)
            self._ids.append(word_id)
            self._starts.append(interval.start_ms)
            self._intervals[word_id] = interval

        if duration_ms is not None:
            self.set_duration(duration_ms)

    # -- mapping-like access ------------------------------------------------

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, word_id: object) -> bool:
        return word_id in self._intervals

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def word_ids(self) -> List[str]:
        return list(self._ids)

    def entries(self) -> List[Tuple[str, float]]:
        """(word_id, start_ms) pairs in document order, "all" excluded."""
        return list(zip(self._ids, self._starts))

    def interval(self, word_id: str) -> TimeInterval:
        if word_id == ALL_SPRITE_ID and self._duration_ms is not None:
            return TimeInterval(0.0, self._duration_ms)
        return self._intervals[word_id]

    def position(self, word_id: str) -> Optional[int]:
        return self._positions.get(word_id)

    @property
    def duration_ms(self) -> Optional[float]:
        return self._duration_ms

    @property
    def track_end_ms(self) -> float:
        """Known track duration, else the end of the last word."""
        if self._duration_ms is not None:
            return self._duration_ms
        if not self._ids:
            return 0.0
        return self._intervals[self._ids[-1]].end_ms

    def set_duration(self, duration_ms: float) -> None:
        """Record the track duration, creating/updating the "all" entry."""
        if duration_ms < 0:
            raise ValueError("Track duration must be >= 0, got {}".format(duration_ms))
        self._duration_ms = float(duration_ms)

    def as_dict(self) -> Dict[str, List[float]]:
        """The {word_id: [start_ms, duration_ms]} mapping, "all" last."""
        result = {word_id: self._intervals[word_id].as_list() for word_id in self._ids}
        if self._duration_ms is not None:
            result[ALL_SPRITE_ID] = [0.0, self._duration_ms]
        return result

    # -- locator ------------------------------------------------------------

    def _earliest_tie(self, index: int) -> int:
        start = self._starts[index]
        if index > 0 and self._starts[index - 1] == start:
            return bisect_left(self._starts, start, 0, index)
        return index

    def _covers(self, index: int, t_ms: float) -> bool:
        """True if word at index is the answer for t_ms."""
        if self._starts[index] > t_ms and index != 0:
            return False
        following = bisect_right(self._starts, self._starts[index], index + 1)
        return following >= len(self._starts) or t_ms < self._starts[following]

    def locate_index(self, t_ms: float) -> Optional[int]:
        """Position of the word being read at t_ms (see locate)."""
        if not self._starts:
            return None

        hint = self._hint
        if hint is not None:
            for candidate in (hint, hint + 1):
                if candidate < len(self._starts) and self._covers(candidate, t_ms):
                    result = self._earliest_tie(candidate)
                    self._hint = result
                    return result

        index = bisect_right(self._starts, t_ms) - 1
        if index < 0:
            index = 0
        result = self._earliest_tie(index)
        self._hint = result
        return result

    def locate(self, t_ms: float) -> Optional[str]:
        """Id of the word being read at t_ms.

        Greatest word with start <= t_ms; clamps to the first word before
        the first start; the last word covers everything after its start.
        """
        index = self.locate_index(t_ms)
        if index is None:
            return None
        return self._ids[index]

    def locate_seconds(self, t_s: float) -> Optional[str]:
        return self.locate(seconds_to_ms(t_s))

    def __repr__(self) -> str:
        return "AlignmentIndex({} words, duration_ms={})".format(len(self), self._duration_ms)
