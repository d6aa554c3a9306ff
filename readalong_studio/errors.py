"""Exception hierarchy for parsing and anchor editing.

WHY: Callers need to tell a broken asset (retry the load) apart from a
rejected edit (fix the operation) without string matching. Each failure
mode gets its own class carrying the ids involved.

HOW: Everything derives from ReadAlongError. Parse failures derive from
MalformedAlignment / MalformedText; edit failures from AnchorError.

RULES:
- Parsers raise; the session turns parse errors into asset load status
- Anchor edits raise synchronously and leave prior state untouched
- Nothing here is fatal to the process
"""

from __future__ import annotations


class ReadAlongError(Exception):
    """Base class for all read-along data-layer errors."""


# ---------------------------------------------------------------------------
# Asset load errors
# ---------------------------------------------------------------------------


class MalformedAlignment(ReadAlongError):
    """The alignment (SMIL) document is structurally unusable."""


class NonMonotonicAlignment(MalformedAlignment):
    """Word start times go backwards in document order."""

    def __init__(self, word_id: str, previous_id: str) -> None:
        self.word_id = word_id
        self.previous_id = previous_id
        super().__init__(
            "Word '{}' starts before the preceding word '{}'".format(word_id, previous_id)
        )


class MalformedText(ReadAlongError):
    """The text (TEI) document is unparsable or has no pages."""


# ---------------------------------------------------------------------------
# Anchor edit errors
# ---------------------------------------------------------------------------


class AnchorError(ReadAlongError):
    """Base class for rejected anchor edits."""


class UnknownWord(AnchorError, KeyError):
    """No word with the given id exists in the document."""

    def __init__(self, word_id: str) -> None:
        self.word_id = word_id
        super().__init__("Unknown word: {}".format(word_id))

    def __str__(self) -> str:
        return self.args[0]


class DuplicateAnchor(AnchorError):
    def __init__(self, word_id: str) -> None:
        self.word_id = word_id
        super().__init__("An anchor already exists before word '{}'".format(word_id))


class AnchorNotFound(AnchorError):
    def __init__(self, word_id: str) -> None:
        self.word_id = word_id
        super().__init__("No anchor exists before word '{}'".format(word_id))


class AnchorOutOfOrder(AnchorError):
    """An anchor is timed earlier than the anchor preceding it in the text.

    offending_id and previous_id are marker ids (word ids, no suffix);
    offending_text and previous_text carry the word texts for messages.
    """

    def __init__(
        self,
        offending_id: str,
        previous_id: str,
        offending_text: str = "",
        previous_text: str = "",
    ) -> None:
        self.offending_id = offending_id
        self.previous_id = previous_id
        self.offending_text = offending_text
        self.previous_text = previous_text
        super().__init__(
            'The text "{}" ({}) is earlier than the previous text "{}" ({})'.format(
                offending_text, offending_id, previous_text, previous_id
            )
        )


class NoAnchors(AnchorError):
    def __init__(self) -> None:
        super().__init__("There is no anchor setup currently.")
