"""Abstract base formatter and output container.

WHY: A loaded session can be exported in more than one shape (the
anchor-updated TEI text for the re-aligner, the alignment as JSON for
web players, plain text for review). A common interface lets the CLI
and the HTTP API treat them uniformly.

HOW: BaseFormatter is an ABC with a ``name`` property and a ``format()``
method taking a ReadAlongSession. FormatterOutput bundles a file suffix
with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` and ``format()``
- ``suffix`` starts with a hyphen, e.g. ``"-alignment.json"``
- The caller is responsible for prepending the source filename stem
- Formatters read the session; they never edit anchors
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from readalong_studio.core.session import ReadAlongSession


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the source stem,
                e.g. ``"-readalong.xml"`` → ``"story-readalong.xml"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"application/xml"``.
    """

    suffix: str
    content: str | bytes
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all session formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Set ``suffix`` to the file suffix it produces
    5. Register in FORMATTERS dict in formatters/__init__.py
    """

    suffix: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Alignment JSON'."""

    @abstractmethod
    def format(self, session: ReadAlongSession) -> list[FormatterOutput]:
        """Convert the session state into one or more output files."""
