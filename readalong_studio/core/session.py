"""Read-along session: assets, audio events, tracker and editor wired together.

WHY: The parsers, locator, tracker and editor are independent pieces;
a host (web view, CLI, HTTP server) needs one object that loads the
three assets, reports per-asset load status without throwing, routes
the audio engine's events to the right component, and exposes the
operator actions. Host callbacks are injected here once instead of
being looked up by name at call time.

HOW: Each load_* method parses its asset and records an AssetStatus
(loading / loaded / error) plus an error message. When both text and
alignment are loaded, the session builds the PositionTracker and the
AnchorEditor, attaches markers for anchors already in the text, and in
ANCHOR mode publishes the text once. Audio events are subscribed in
the constructor and forwarded to tracker and editor.

RULES:
- load_text / load_alignment never raise on bad input; they return ERROR
- Anchor edits are only allowed in ANCHOR mode
- export() refuses to run unless anchor ordering validates (READ-ONLY
  sessions export as loaded, without validation)
- on_update is read at publish time, so a host may set it after loading
- A dropped marker that breaks ordering is recorded in last_error,
  not published
- Everything runs on the caller's thread; no locking here
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, List, Optional

from readalong_studio.config import SKIP_BACK_SECONDS
from readalong_studio.core.alignment import AlignmentIndex
from readalong_studio.core.anchors import AnchorEditor, ColorAllocator
from readalong_studio.core.ir import DocumentTree, Word, seconds_to_ms
from readalong_studio.core.smil import parse_smil
from readalong_studio.core.tei import TeiDocument
from readalong_studio.core.tracker import PositionTracker
from readalong_studio.errors import (
    AnchorError,
    MalformedAlignment,
    MalformedText,
    ReadAlongError,
    UnknownWord,
)
from readalong_studio.playback.base import BaseAudioBackend, Marker

logger = logging.getLogger(__name__)


class Asset(str, enum.Enum):
    AUDIO = "AUDIO"
    XML = "XML"
    SMIL = "SMIL"


class AssetStatus(str, enum.Enum):
    """Load state of one asset. Inherits from str for clean JSON output."""

    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class ReadingMode(str, enum.Enum):
    READ_ONLY = "READ-ONLY"
    ANCHOR = "ANCHOR"
    PREVIEW = "PREVIEW"


class SessionNotReady(ReadAlongError):
    """Text and alignment must both be loaded first."""


class ReadAlongSession:
    """One text + alignment + audio engine, with its tracker and editor."""

    def __init__(
        self,
        audio: BaseAudioBackend,
        mode: ReadingMode = ReadingMode.READ_ONLY,
        on_update: Optional[Callable[[str], None]] = None,
        on_export: Optional[Callable[[str], None]] = None,
        colors: Optional[ColorAllocator] = None,
    ) -> None:
        self.audio = audio
        self.mode = ReadingMode(mode)
        self.on_update = on_update
        self.on_export = on_export
        self.colors = colors if colors is not None else ColorAllocator()

        self.status: Dict[Asset, AssetStatus] = {asset: AssetStatus.LOADING for asset in Asset}
        self.errors: Dict[Asset, str] = {}
        self.diagnostics: List[str] = []
        self.last_error: Optional[ReadAlongError] = None

        self.document: Optional[TeiDocument] = None
        self.index: Optional[AlignmentIndex] = None
        self.tracker: Optional[PositionTracker] = None
        self.editor: Optional[AnchorEditor] = None
        self._word_handlers: List[Callable[[Optional[str]], None]] = []

        audio.on("ready", self._on_ready)
        audio.on("error", self._on_error)
        audio.on("position_update", self._on_position)
        audio.on("seek", self._on_seek)
        audio.on("marker_dropped", self._on_marker_dropped)
        audio.on("finish", self._on_finish)

    # -- loading ------------------------------------------------------------

    def _fail(self, asset: Asset, exc: Exception) -> AssetStatus:
        self.status[asset] = AssetStatus.ERROR
        self.errors[asset] = str(exc)
        logger.warning("Failed to load %s: %s", asset.value, exc)
        return AssetStatus.ERROR

    def load_text(self, xml_text: str | bytes) -> AssetStatus:
        """Load the TEI text. Returns the resulting status, never raises on bad input."""
        self.status[Asset.XML] = AssetStatus.LOADING
        self.errors.pop(Asset.XML, None)
        try:
            self.document = TeiDocument.from_string(xml_text)
        except MalformedText as exc:
            self.document = None
            self.editor = None
            return self._fail(Asset.XML, exc)
        self.status[Asset.XML] = AssetStatus.LOADED
        logger.info("Loaded text: %d pages, %d words",
                    len(self.document.tree.pages), len(self.document.tree.words()))
        self._assemble()
        return AssetStatus.LOADED

    def load_alignment(self, smil_text: str | bytes) -> AssetStatus:
        """Load the SMIL alignment. Returns the resulting status, never raises on bad input."""
        self.status[Asset.SMIL] = AssetStatus.LOADING
        self.errors.pop(Asset.SMIL, None)
        try:
            parsed = parse_smil(smil_text)
            duration_ms = None
            if self.status[Asset.AUDIO] == AssetStatus.LOADED:
                duration_ms = seconds_to_ms(self.audio.get_duration())
            self.index = AlignmentIndex(parsed.entries, duration_ms=duration_ms)
        except MalformedAlignment as exc:
            self.index = None
            self.tracker = None
            self.editor = None
            return self._fail(Asset.SMIL, exc)
        self.diagnostics.extend(parsed.diagnostics)
        self.status[Asset.SMIL] = AssetStatus.LOADED
        self.tracker = PositionTracker(self.index)
        self.tracker.on_word_changed(self._forward_word_changed)
        logger.info("Loaded alignment: %d words", len(self.index))
        self._assemble()
        return AssetStatus.LOADED

    def _assemble(self) -> None:
        if self.document is None or self.index is None:
            return
        text_ids = set(self.document.word_ids())
        missing = [word_id for word_id in self.index if word_id not in text_ids]
        if missing:
            message = "{} aligned ids have no word in the text (first: {})".format(
                len(missing), missing[0]
            )
            self.diagnostics.append(message)
            logger.warning(message)

        self.editor = AnchorEditor(
            self.document,
            self.audio,
            index=self.index,
            colors=self.colors,
            on_update=self._publish,
        )
        self.editor.attach_existing_anchors()
        if self.mode == ReadingMode.ANCHOR:
            self.editor.publish()

    def _publish(self, text: str) -> None:
        if self.on_update is not None:
            self.on_update(text)

    @property
    def is_ready(self) -> bool:
        return all(status == AssetStatus.LOADED for status in self.status.values())

    @property
    def tree(self) -> DocumentTree:
        if self.document is None:
            raise SessionNotReady("Text is not loaded")
        return self.document.tree

    def _require_editor(self) -> AnchorEditor:
        if self.editor is None:
            raise SessionNotReady("Text and alignment must both be loaded")
        return self.editor

    def _require_index(self) -> AlignmentIndex:
        if self.index is None:
            raise SessionNotReady("Alignment is not loaded")
        return self.index

    # -- audio events -------------------------------------------------------

    def _on_ready(self) -> None:
        self.status[Asset.AUDIO] = AssetStatus.LOADED
        self.errors.pop(Asset.AUDIO, None)
        if self.index is not None:
            self.index.set_duration(seconds_to_ms(self.audio.get_duration()))

    def _on_error(self, message: str = "") -> None:
        self.status[Asset.AUDIO] = AssetStatus.ERROR
        self.errors[Asset.AUDIO] = message or "audio failed to load"
        logger.warning("Audio failed to load: %s", self.errors[Asset.AUDIO])

    def _on_position(self, time: float) -> None:
        if self.tracker is not None:
            self.tracker.feed_position(time)

    def _on_seek(self, fraction: float) -> None:
        if self.tracker is not None:
            # fraction * duration can land just short of a word start
            self.tracker.feed_seek(round(fraction * self.audio.get_duration(), 6))

    def _on_marker_dropped(self, marker: Marker) -> None:
        if self.editor is None:
            return
        try:
            self.editor.handle_marker_drop(marker)
            self.last_error = None
        except AnchorError as exc:
            self.last_error = exc
            logger.warning("Marker drop rejected: %s", exc)

    def _on_finish(self) -> None:
        self.stop()

    # -- reading ------------------------------------------------------------

    def on_word_changed(self, handler: Callable[[Optional[str]], None]) -> Callable[[], None]:
        self._word_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._word_handlers:
                self._word_handlers.remove(handler)

        return unsubscribe

    def _forward_word_changed(self, word_id: Optional[str]) -> None:
        for handler in list(self._word_handlers):
            handler(word_id)

    @property
    def current_word(self) -> Optional[str]:
        return self.tracker.current if self.tracker is not None else None

    def word_at(self, t_s: float) -> Optional[str]:
        """Id of the word being read at t_s seconds."""
        return self._require_index().locate_seconds(t_s)

    def play_pause(self) -> None:
        if self.audio.is_playing():
            self.audio.pause()
        else:
            self.audio.play()

    def play_word(self, word_id: str) -> None:
        """Seek to a word and play just that word."""
        index = self._require_index()
        if word_id not in index:
            raise UnknownWord(word_id)
        interval = index.interval(word_id)
        start = interval.start_ms / 1000.0
        self.audio.seek(start)
        self.audio.play(start, start + interval.duration_ms / 1000.0)

    def go_to(self, t_ms: float) -> None:
        self.audio.seek(t_ms / 1000.0)

    def skip_back(self, seconds: float = SKIP_BACK_SECONDS) -> None:
        self.audio.seek(max(0.0, self.audio.get_current_time() - seconds))

    def stop(self) -> None:
        if self.audio.is_playing():
            self.audio.pause()
        self.audio.stop()
        if self.tracker is not None:
            self.tracker.stop()

    # -- anchor editing -----------------------------------------------------

    def _require_anchor_mode(self) -> AnchorEditor:
        if self.mode != ReadingMode.ANCHOR:
            raise AnchorError("Anchor editing requires ANCHOR mode (session is {})".format(
                self.mode.value
            ))
        return self._require_editor()

    def insert_anchor(
        self,
        word_id: str,
        time: Optional[float] = None,
        label: str = "",
        color: Optional[str] = None,
    ) -> Marker:
        return self._require_anchor_mode().insert_anchor(word_id, time=time, label=label, color=color)

    def delete_anchor(self, word_id: str) -> None:
        self._require_anchor_mode().delete_anchor(word_id)

    def move_anchor(self, word_id: str, time: float) -> Marker:
        return self._require_anchor_mode().move_marker(word_id, time)

    def validate_anchors(self) -> List[Marker]:
        return self._require_editor().validate_ordering()

    def export(self) -> str:
        """Validate anchors, export the text, and hand it to on_export."""
        editor = self._require_editor()
        if self.mode != ReadingMode.READ_ONLY:
            editor.validate_ordering()
        text = editor.export_text()
        if self.on_export is not None:
            self.on_export(text)
        return text

    def words(self) -> List[Word]:
        return self.tree.words()
