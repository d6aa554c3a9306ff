"""Output formatter registry.

WHY: The CLI and the HTTP API need a single lookup to find a formatter
by name.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["tei"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and URLs)
- Values are BaseFormatter subclasses (not instances)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from readalong_studio.formatters.alignment_json import AlignmentJsonFormatter
from readalong_studio.formatters.plain_text import PlainTextFormatter
from readalong_studio.formatters.tei_text import TeiTextFormatter

if TYPE_CHECKING:
    from readalong_studio.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "tei": TeiTextFormatter,
    "alignment_json": AlignmentJsonFormatter,
    "plain_text": PlainTextFormatter,
}
