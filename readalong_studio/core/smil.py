"""SMIL alignment parser: text references + audio clips → word timings.

WHY: The aligner describes timing as a SMIL document: one <par> per word,
pairing a <text src="doc.xml#wordId"/> reference with an
<audio clipBegin="..." clipEnd="..."/> clip in seconds. Everything
downstream (locator, tracker, anchor defaults) wants a flat, ordered
word → (start_ms, duration_ms) list instead.

HOW: Parse with xml.etree.ElementTree, match elements by local name so
namespaced and un-namespaced documents both work, collect the three
attribute columns (text@src, audio@clipBegin, audio@clipEnd) separately,
check they line up, then zip them into TimeIntervals.

RULES:
- Column counts must agree, otherwise MalformedAlignment (never truncate)
- Word id = part of src after the last "#"
- Clock values are seconds, optionally suffixed with "s"
- Values are converted to milliseconds, rounded to 3 decimals
- duration = end - begin; end < begin is MalformedAlignment
- Duplicate word ids and empty documents are MalformedAlignment
- A missing SMIL namespace is only a diagnostic (logged, not raised)
- Output keeps input order; monotonicity is the index's job
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from readalong_studio.config import SMIL_NAMESPACE
from readalong_studio.core.ir import TimeInterval, seconds_to_ms
from readalong_studio.errors import MalformedAlignment

logger = logging.getLogger(__name__)


@dataclass
class AlignmentParse:
    """Result of parsing one SMIL document.

    entries: (word_id, TimeInterval) pairs in document order.
    diagnostics: non-fatal problems noticed while parsing.
    """

    entries: List[Tuple[str, TimeInterval]] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {word_id: interval.as_list() for word_id, interval in self.entries}


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _namespace(tag: str) -> Optional[str]:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return None


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def parse_clock_value(value: str) -> float:
    """Convert a SMIL clock value in seconds ("1.5" or "1.5s") to milliseconds."""
    text = value.strip()
    if text.endswith("s") and not text.endswith("ms"):
        text = text[:-1]
    try:
        seconds = float(text)
    except ValueError:
        raise MalformedAlignment("Invalid clock value: {!r}".format(value)) from None
    if seconds < 0:
        raise MalformedAlignment("Negative clock value: {!r}".format(value))
    return seconds_to_ms(seconds)


def parse_smil(xml_text: str | bytes) -> AlignmentParse:
    """Parse a SMIL alignment document into ordered word timings.

    Args:
        xml_text: The SMIL document as a string or bytes.

    Returns:
        AlignmentParse with entries in document order and any diagnostics.

    Raises:
        MalformedAlignment: On unparsable XML, mismatched column counts,
            invalid clock values, duplicate ids, or no aligned units.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise MalformedAlignment("Alignment is not well-formed XML: {}".format(exc)) from exc

    result = AlignmentParse()

    namespace = _namespace(root.tag)
    if namespace is None:
        message = "Alignment document is missing an XML namespace (expected {})".format(
            SMIL_NAMESPACE
        )
        result.diagnostics.append(message)
        logger.warning(message)
    elif namespace != SMIL_NAMESPACE:
        message = "Unexpected alignment namespace: {}".format(namespace)
        result.diagnostics.append(message)
        logger.warning(message)

    if _local_name(root.tag) != "smil":
        raise MalformedAlignment(
            "Root element is <{}>, expected <smil>".format(_local_name(root.tag))
        )

    word_ids: List[str] = []
    begins: List[float] = []
    ends: List[float] = []

    for body in _children(root, "body"):
        for par in body.iter():
            if _local_name(par.tag) != "par":
                continue
            for text in _children(par, "text"):
                src = text.get("src")
                if src is not None:
                    word_ids.append(src.split("#")[-1])
            for audio in _children(par, "audio"):
                begin = audio.get("clipBegin")
                if begin is not None:
                    begins.append(parse_clock_value(begin))
                end = audio.get("clipEnd")
                if end is not None:
                    ends.append(parse_clock_value(end))

    if not (len(word_ids) == len(begins) == len(ends)):
        raise MalformedAlignment(
            "Mismatched alignment: {} text references, {} clipBegin, {} clipEnd".format(
                len(word_ids), len(begins), len(ends)
            )
        )
    if not word_ids:
        raise MalformedAlignment("Alignment contains no aligned units")

    seen = set()
    for word_id, begin, end in zip(word_ids, begins, ends):
        if word_id in seen:
            raise MalformedAlignment("Duplicate word id in alignment: {}".format(word_id))
        if end < begin:
            raise MalformedAlignment(
                "Clip for '{}' ends before it begins ({} < {})".format(word_id, end, begin)
            )
        seen.add(word_id)
        result.entries.append((word_id, TimeInterval(begin, round(end - begin, 3))))

    logger.debug("Parsed %d aligned units", len(result.entries))
    return result


def load_smil(path: str | Path) -> AlignmentParse:
    """Read and parse a SMIL file from disk."""
    return parse_smil(Path(path).read_bytes())
