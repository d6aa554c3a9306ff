"""Anchor editor: transactional anchor edits across text and markers.

WHY: An anchor lives in two places at once: an <anchor id="w5-anc"/>
element in the TEI text (what gets exported to the re-aligner) and a
draggable marker on the audio timeline (what the operator sees and
moves). If either side changes without the other, the exported text no
longer matches what the operator set up. Every edit therefore goes
through this editor, which changes both sides or neither.

HOW: insert/delete splice the XML element, add/remove the marker, then
re-derive the whole DocumentTree from the XML. Failures before the
commit point undo whatever was already done. After a commit the
editor writes every marker's live time back onto its anchor element and
hands the exported text to the injected on_update callback.

RULES:
- Anchor element id = word id + "-anc"; marker id = word id
- The anchor element goes immediately before the word element
- One anchor per word: a second insert is DuplicateAnchor
- Deleting a missing anchor is AnchorNotFound; unknown words are UnknownWord
- Ordering: markers sorted by the number formed from the digits in their
  id (document order breaks ties); times must never decrease
- No markers at all is NoAnchors, not success
- Anchor time attributes are written as "<seconds with 2 decimals>s"
- Colors come from a ColorAllocator; by default they are never recycled
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from readalong_studio.config import ANCHOR_PALETTE, FALLBACK_ANCHOR_COLOR, RECYCLE_ANCHOR_COLORS
from readalong_studio.core.alignment import AlignmentIndex
from readalong_studio.core.ir import Anchor, anchor_id_for
from readalong_studio.core.tei import TeiDocument, format_anchor_time
from readalong_studio.errors import (
    AnchorError,
    AnchorNotFound,
    AnchorOutOfOrder,
    DuplicateAnchor,
    NoAnchors,
    UnknownWord,
)
from readalong_studio.playback.base import BaseAudioBackend, Marker

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"\d+")


class ColorAllocator:
    """Finite pool of distinct anchor colors.

    allocate() hands out the last color of the palette first. release()
    only puts a color back when recycle is enabled; otherwise deleted
    anchors keep their color out of the pool for the whole session.
    restore() undoes an allocation whose edit never committed.
    """

    def __init__(
        self,
        palette: Optional[Sequence[str]] = None,
        recycle: Optional[bool] = None,
        fallback: str = FALLBACK_ANCHOR_COLOR,
    ) -> None:
        self._pool: List[str] = list(ANCHOR_PALETTE if palette is None else palette)
        self.recycle = RECYCLE_ANCHOR_COLORS if recycle is None else recycle
        self.fallback = fallback

    @property
    def remaining(self) -> int:
        return len(self._pool)

    def allocate(self) -> str:
        if self._pool:
            return self._pool.pop()
        logger.warning("Anchor color palette exhausted, using %s", self.fallback)
        return self.fallback

    def release(self, color: str) -> None:
        if self.recycle:
            self.restore(color)

    def restore(self, color: str) -> None:
        if color and color != self.fallback and color not in self._pool:
            self._pool.append(color)


def _sequence_key(marker_id: str) -> int:
    digits = _DIGITS_RE.findall(marker_id)
    return int("".join(digits)) if digits else -1


class AnchorEditor:
    """Inserts, deletes, validates and publishes anchors.

    Args:
        document: The live TEI document (XML + derived tree).
        audio: The audio backend holding the markers.
        index: Alignment index, used for default anchor times.
        colors: Color pool for new anchors.
        on_update: Host callback receiving the exported text after
            every committed edit.
    """

    def __init__(
        self,
        document: TeiDocument,
        audio: BaseAudioBackend,
        index: Optional[AlignmentIndex] = None,
        colors: Optional[ColorAllocator] = None,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.document = document
        self.audio = audio
        self.index = index
        self.colors = colors if colors is not None else ColorAllocator()
        self.on_update = on_update

    # -- queries ------------------------------------------------------------

    def markers(self) -> List[Marker]:
        """Markers paired with anchors (those carrying a word id)."""
        return [m for m in self.audio.list_markers() if m.id]

    def has_anchor(self, word_id: str) -> bool:
        return (
            self.document.tree.anchor(word_id) is not None
            or self.audio.find_marker(word_id) is not None
        )

    def _word_start_seconds(self, word_id: str) -> float:
        if self.index is None or word_id not in self.index:
            raise AnchorError(
                "Word '{}' has no alignment; an explicit anchor time is required".format(word_id)
            )
        return self.index.interval(word_id).start_ms / 1000.0

    # -- edits --------------------------------------------------------------

    def insert_anchor(
        self,
        word_id: str,
        time: Optional[float] = None,
        label: str = "",
        color: Optional[str] = None,
    ) -> Marker:
        """Insert an anchor before word_id and its paired marker.

        Args:
            word_id: Id of the word the anchor precedes.
            time: Marker time in seconds; defaults to the word's aligned start.
            label: Marker label.
            color: Marker color; defaults to the next pool color.

        Returns:
            The new marker.

        Raises:
            UnknownWord: No such word in the text.
            DuplicateAnchor: The word already has an anchor.
        """
        word = self.document.tree.word(word_id)
        word_element = self.document.element(word_id)
        if word is None or word_element is None:
            raise UnknownWord(word_id)
        if self.has_anchor(word_id):
            raise DuplicateAnchor(word_id)
        if time is None:
            time = self._word_start_seconds(word_id)

        anchor_element = self.document.make_element("anchor", like=word_element)
        anchor_element.set("id", anchor_id_for(word_id))

        allocated: Optional[str] = None
        if color is None:
            allocated = self.colors.allocate()
            color = allocated

        marker: Optional[Marker] = None
        self.document.insert_before(anchor_element, word_element)
        try:
            marker = self.audio.add_marker(time=time, label=label, color=color, draggable=True)
            marker.id = word_id
            marker.text = word.text
            self.document.refresh()
        except Exception:
            if marker is not None:
                self.audio.remove_marker(marker)
            self.document.remove(anchor_element)
            if allocated is not None:
                self.colors.restore(allocated)
            raise

        logger.info("Inserted anchor before %s at %.2fs", word_id, time)
        self.publish()
        return marker

    def delete_anchor(self, word_id: str) -> None:
        """Remove the anchor before word_id and its paired marker.

        Raises:
            AnchorNotFound: Neither an anchor element nor a marker exists.
        """
        element = self.document.element(anchor_id_for(word_id))
        marker = self.audio.find_marker(word_id)
        if element is None and marker is None:
            raise AnchorNotFound(word_id)

        if element is not None:
            self.document.remove(element)
            self.document.refresh()
        if marker is not None:
            self.audio.remove_marker(marker)
            self.colors.release(marker.color)

        logger.info("Deleted anchor before %s", word_id)
        self.publish()

    def move_marker(self, word_id: str, time: float) -> Marker:
        """Move an anchor's marker to a new time, keeping ordering valid.

        Raises:
            AnchorNotFound: No marker for word_id.
            AnchorOutOfOrder: The move would break ordering (time is restored).
        """
        marker = self.audio.find_marker(word_id)
        if marker is None:
            raise AnchorNotFound(word_id)
        previous_time = marker.time
        marker.time = time
        try:
            self.validate_ordering()
        except AnchorOutOfOrder:
            marker.time = previous_time
            raise
        logger.info("Moved anchor %s from %.2fs to %.2fs", word_id, previous_time, time)
        self.publish()
        return marker

    def handle_marker_drop(self, marker: Marker) -> None:
        """React to the engine reporting a dragged marker.

        The engine already moved the marker; an ordering violation is
        raised to the caller and nothing is published.
        """
        self.validate_ordering()
        self.publish()

    def attach_existing_anchors(self) -> List[Marker]:
        """Create markers for anchors already present in the loaded text.

        Time comes from the anchor's time attribute, else the word's
        aligned start. The anchors' time attributes are then rewritten
        from their markers, so later edits only change what they touch.
        Returns the markers created.
        """
        created: List[Marker] = []
        for anchor in self.document.tree.anchors():
            word_id = anchor.word_id
            if self.audio.find_marker(word_id) is not None:
                continue
            word = self.document.tree.word(word_id)
            time = anchor.time
            if time is None:
                try:
                    time = self._word_start_seconds(word_id)
                except AnchorError:
                    logger.warning("Anchor %s has no time and no aligned word", anchor.id)
                    time = 0.0
            marker = self.audio.add_marker(
                time=time, label="", color=self.colors.allocate(), draggable=True,
            )
            marker.id = word_id
            marker.text = word.text if word is not None else ""
            created.append(marker)
        if created:
            self.sync_anchor_times()
            logger.info("Attached %d existing anchors", len(created))
        return created

    # -- validation and export ---------------------------------------------

    def _document_position(self, marker_id: str) -> int:
        position = self.document.tree.position(marker_id)
        return position if position is not None else len(self.document.tree.nodes)

    def validate_ordering(self) -> List[Marker]:
        """Check anchor times never decrease in word order.

        Returns:
            The markers in word order.

        Raises:
            NoAnchors: There are no anchors at all.
            AnchorOutOfOrder: Names the first offending anchor and the
                one before it.
        """
        markers = self.markers()
        if not markers:
            raise NoAnchors()

        ordered = sorted(
            markers,
            key=lambda m: (_sequence_key(m.id), self._document_position(m.id)),
        )
        previous: Optional[Marker] = None
        for marker in ordered:
            if previous is not None and previous.time > marker.time:
                raise AnchorOutOfOrder(
                    offending_id=marker.id,
                    previous_id=previous.id,
                    offending_text=marker.text,
                    previous_text=previous.text,
                )
            previous = marker
        return ordered

    def sync_anchor_times(self) -> None:
        """Write every marker's live time onto its anchor element."""
        for marker in self.markers():
            element = self.document.element(anchor_id_for(marker.id))
            if element is None:
                logger.warning("Marker %s has no anchor element", marker.id)
                continue
            element.set("time", format_anchor_time(marker.time))
        self.document.refresh()

    def export_text(self) -> str:
        self.sync_anchor_times()
        return self.document.export()

    def publish(self) -> str:
        """Export the text and hand it to the host update callback."""
        text = self.export_text()
        if self.on_update is not None:
            self.on_update(text)
        return text

    def anchor_pairs(self) -> List[Tuple[Anchor, Optional[Marker]]]:
        """Each anchor node with its marker (None if unpaired)."""
        return [
            (anchor, self.audio.find_marker(anchor.word_id))
            for anchor in self.document.tree.anchors()
        ]
