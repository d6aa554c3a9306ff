"""Shared test fixtures for the readalong_studio test suite.

WHY: Most test modules need the same small read-along: three aligned
words, "Hello there, friend.", on one page. Centralizing the documents
here keeps every module working from the same verified timings.

HOW: Module-level constants hold the raw SMIL and TEI documents;
fixtures build the parsed and wired objects on top of them.

RULES:
- Timings: w1 [0 s, 1 s), w2 [1 s, 1.5 s), w3 [1.5 s, 3.5 s)
- Audio duration for wired fixtures is 3.5 s
- Every fixture returns fresh objects (no shared mutable state)
"""

from typing import List
from unittest.mock import MagicMock

import pytest

from readalong_studio.core.alignment import AlignmentIndex
from readalong_studio.core.anchors import AnchorEditor, ColorAllocator
from readalong_studio.core.session import ReadAlongSession, ReadingMode
from readalong_studio.core.smil import parse_smil
from readalong_studio.core.tei import TeiDocument
from readalong_studio.playback import HeadlessAudioBackend


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

SAMPLE_SMIL = """<smil xmlns="http://www.w3.org/ns/SMIL" version="3.0">
  <body>
    <par id="par-w1">
      <text src="story.xml#w1"/>
      <audio src="story.mp3" clipBegin="0.0" clipEnd="1.0"/>
    </par>
    <par id="par-w2">
      <text src="story.xml#w2"/>
      <audio src="story.mp3" clipBegin="1.0" clipEnd="1.5"/>
    </par>
    <par id="par-w3">
      <text src="story.xml#w3"/>
      <audio src="story.mp3" clipBegin="1.5" clipEnd="3.5"/>
    </par>
  </body>
</smil>"""

SAMPLE_TEI = """<TEI>
  <text xml:lang="eng">
    <body>
      <div type="page" id="p1">
        <graphic url="page1.png"/>
        <p id="p1p1">
          <s id="s1"><w id="w1">Hello</w> <w id="w2">there</w>, <w id="w3">friend</w>.</s>
        </p>
      </div>
    </body>
  </text>
</TEI>"""

SAMPLE_TEI_WITH_ANCHOR = """<TEI>
  <text xml:lang="eng">
    <body>
      <div type="page" id="p1">
        <p id="p1p1">
          <s id="s1"><w id="w1">Hello</w> <w id="w2">there</w>, <anchor id="w3-anc" time="2.50s"/><w id="w3">friend</w>.</s>
        </p>
      </div>
    </body>
  </text>
</TEI>"""

# w2 starts at 1.005 s, which is not exact in binary floating point
FRACTIONAL_SMIL = SAMPLE_SMIL.replace(
    'clipBegin="0.0" clipEnd="1.0"', 'clipBegin="0.0" clipEnd="1.005"'
).replace('clipBegin="1.0" clipEnd="1.5"', 'clipBegin="1.005" clipEnd="1.5"')

DURATION_S = 3.5

PALETTE: List[str] = ["#111111", "#222222", "#333333"]


@pytest.fixture
def sample_smil() -> str:
    return SAMPLE_SMIL


@pytest.fixture
def fractional_smil() -> str:
    return FRACTIONAL_SMIL


@pytest.fixture
def sample_tei() -> str:
    return SAMPLE_TEI


@pytest.fixture
def sample_tei_with_anchor() -> str:
    return SAMPLE_TEI_WITH_ANCHOR


@pytest.fixture
def index() -> AlignmentIndex:
    """Alignment index of the sample with the track duration known."""
    return AlignmentIndex(parse_smil(SAMPLE_SMIL).entries, duration_ms=DURATION_S * 1000)


@pytest.fixture
def document() -> TeiDocument:
    return TeiDocument.from_string(SAMPLE_TEI)


@pytest.fixture
def audio() -> HeadlessAudioBackend:
    return HeadlessAudioBackend(duration=DURATION_S)


@pytest.fixture
def colors() -> ColorAllocator:
    return ColorAllocator(palette=PALETTE, recycle=False)


@pytest.fixture
def on_update() -> MagicMock:
    return MagicMock()


@pytest.fixture
def editor(document, audio, index, colors, on_update) -> AnchorEditor:
    return AnchorEditor(document, audio, index=index, colors=colors, on_update=on_update)


def _make_session(
    mode: ReadingMode = ReadingMode.ANCHOR,
    text: str = SAMPLE_TEI,
    on_update=None,
    on_export=None,
    alignment: str = SAMPLE_SMIL,
) -> ReadAlongSession:
    """Fully loaded session (audio, text, alignment) over a headless engine."""
    audio = HeadlessAudioBackend()
    session = ReadAlongSession(
        audio,
        mode=mode,
        on_update=on_update,
        on_export=on_export,
        colors=ColorAllocator(palette=PALETTE, recycle=False),
    )
    audio.load(DURATION_S)
    session.load_text(text)
    session.load_alignment(alignment)
    return session


@pytest.fixture
def session_factory():
    """Factory building loaded sessions with custom mode, text or callbacks."""
    return _make_session


@pytest.fixture
def anchor_session() -> ReadAlongSession:
    return _make_session(ReadingMode.ANCHOR)


@pytest.fixture
def read_only_session() -> ReadAlongSession:
    return _make_session(ReadingMode.READ_ONLY)
