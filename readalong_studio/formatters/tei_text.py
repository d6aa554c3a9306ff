"""Exported TEI formatter: the anchor-updated text for re-alignment.

WHY: The operator's anchors only matter once the re-aligner sees them.
This formatter produces exactly the text the host export callback
receives: word wrappers stripped, anchor times refreshed from markers.

HOW: Delegates to ReadAlongSession.export(), which validates anchor
ordering first (outside READ-ONLY mode) and notifies the host.

RULES:
- Output suffix: "-readalong.xml"
- Out-of-order or missing anchors abort the export (the error propagates)
"""

from __future__ import annotations

from readalong_studio.core.session import ReadAlongSession
from readalong_studio.formatters.base import BaseFormatter, FormatterOutput


class TeiTextFormatter(BaseFormatter):

    suffix = "-readalong.xml"

    @property
    def name(self) -> str:
        return "Read-along TEI"

    def format(self, session: ReadAlongSession) -> list[FormatterOutput]:
        return [
            FormatterOutput(
                suffix=self.suffix,
                content=session.export(),
                media_type="application/xml",
            )
        ]
