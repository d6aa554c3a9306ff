"""Plain text formatter: the reading text, page by page.

WHY: Reviewers checking a read-along want to proofread the words without
XML noise. Pages and paragraphs are kept visible so problems can be
located in the source.

HOW: For every page, each paragraph's sentences are rebuilt from their
Word and NonWordText children (anchors contribute nothing), runs of
whitespace are collapsed, and paragraphs are written one per line
block under a "[page <id>]" header.

RULES:
- Header format: "[page <id>]" on its own line
- One paragraph per line, sentences joined with a single space
- Blank line between paragraphs and between pages
- Output suffix: "-text.txt"
"""

from __future__ import annotations

import re
from typing import List

from readalong_studio.core.ir import DocumentTree, NonWordText, Word
from readalong_studio.core.session import ReadAlongSession
from readalong_studio.formatters.base import BaseFormatter, FormatterOutput

_WHITESPACE_RE = re.compile(r"\s+")


def _sentence_text(tree: DocumentTree, handle: int) -> str:
    parts: List[str] = []
    for child in tree.children(handle):
        if isinstance(child, (Word, NonWordText)):
            parts.append(child.text)
    return _WHITESPACE_RE.sub(" ", "".join(parts)).strip()


def render_plain_text(tree: DocumentTree) -> str:
    blocks: List[str] = []
    for page in tree.page_nodes():
        lines = ["[page {}]".format(page.id)]
        for paragraph in tree.children(page.handle):
            sentences = [_sentence_text(tree, s.handle) for s in tree.children(paragraph.handle)]
            text = " ".join(s for s in sentences if s)
            if text:
                lines.append(text)
        blocks.append("\n\n".join(lines))
    return "\n\n".join(blocks) + "\n"


class PlainTextFormatter(BaseFormatter):

    suffix = "-text.txt"

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, session: ReadAlongSession) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix=self.suffix,
                content=render_plain_text(session.tree),
                media_type="text/plain",
            )
        ]
