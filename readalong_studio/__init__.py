"""Read-along studio: keep a TEI text and its audio alignment in sync.

WHY: A read-along pairs a structured text with a narration. The text
(TEI) and the timing (SMIL) arrive as separate documents, and operators
need to nudge the alignment by dropping time anchors on words without
ever leaving the two out of step. This package is the data layer under
that workflow: parsing, time-to-word lookup, and transactional anchor
editing.

HOW: Parsers build a document tree and an alignment index. The locator
and position tracker serve the read path during playback; the anchor
editor serves the write path and re-derives the tree after every edit.
A session wires both paths to an audio backend and to host callbacks.

RULES:
- The core never renders, decodes audio, or persists anything
- Tree and marker store are only ever changed together
- Anchor times are non-decreasing in word order before any export
"""

__version__ = "0.1.0"
