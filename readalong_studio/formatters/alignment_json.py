"""Alignment JSON formatter: word timings, anchors and the sprite map.

WHY: Web players and QA scripts want the alignment as plain JSON rather
than SMIL: one record per word with its text and timing, the operator's
anchors with their live times, and the classic sprite map
({id: [start_ms, duration_ms], "all": [0, total]}).

HOW: Walks the words of the loaded text in document order, joins them
with the alignment index, reads anchors from the editor's markers, and
validates the result against alignment_schema.json before returning.

RULES:
- Only words present in both text and alignment are listed
- Anchor times are the markers' live times in seconds
- Output suffix: "-alignment.json"
- Validate output against the schema before returning; raise on failure
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

from readalong_studio.core.ir import Page
from readalong_studio.core.session import ReadAlongSession, SessionNotReady
from readalong_studio.formatters.base import BaseFormatter, FormatterOutput

_SCHEMA_PATH = Path(__file__).resolve().parent / "alignment_schema.json"

_CACHED_SCHEMA: dict[str, Any] | None = None


def _get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


def build_alignment_document(session: ReadAlongSession) -> dict[str, Any]:
    """Assemble the alignment export dict (unvalidated)."""
    if session.index is None or session.document is None:
        raise SessionNotReady("Text and alignment must both be loaded")
    index = session.index
    tree = session.document.tree

    words: list[dict[str, Any]] = []
    for word in tree.words():
        if word.id not in index:
            continue
        interval = index.interval(word.id)
        page = tree.ancestor(word.handle, Page)
        words.append({
            "id": word.id,
            "start_ms": interval.start_ms,
            "duration_ms": interval.duration_ms,
            "text": word.text,
            "page": page.id if page is not None else None,
        })

    anchors: list[dict[str, Any]] = []
    if session.editor is not None:
        for anchor, marker in session.editor.anchor_pairs():
            if marker is None:
                continue
            anchors.append({
                "id": anchor.id,
                "word_id": anchor.word_id,
                "time": round(marker.time, 3),
                "color": marker.color,
            })

    return {
        "version": "1.0.0",
        "duration_ms": index.duration_ms,
        "words": words,
        "anchors": anchors,
        "sprite": index.as_dict(),
    }


class AlignmentJsonFormatter(BaseFormatter):
    """Formatter producing the alignment as validated JSON."""

    suffix = "-alignment.json"

    @property
    def name(self) -> str:
        return "Alignment JSON"

    def format(self, session: ReadAlongSession) -> list[FormatterOutput]:
        """Raises jsonschema.ValidationError if the output breaks the schema."""
        output = build_alignment_document(session)
        jsonschema.validate(instance=output, schema=_get_schema())
        return [
            FormatterOutput(
                suffix=self.suffix,
                content=json.dumps(output, indent=2, ensure_ascii=False),
                media_type="application/json",
            )
        ]
