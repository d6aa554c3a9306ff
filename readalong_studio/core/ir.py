"""Intermediate representation of the document tree and alignment timing.

WHY: The TEI text is a deep XML tree, but every consumer asks the same
few questions: which pages exist, what are a sentence's children, where
is word X, who is its parent. Pointer-chasing through XML elements for
each question is slow and couples consumers to the XML library. The IR
is a flat arena of typed nodes addressed by integer handles, plus a side
index from XML id to handle.

HOW: Seven dataclasses:
  TimeInterval — (start_ms, duration_ms) of one aligned word
  Node         — base: handle, parent handle, attributes, effective lang
  Page, Paragraph, Sentence — containers holding child handles
  Word, NonWordText, Anchor — sentence children (leaves)
  DocumentTree — the arena (nodes list, page handles, id index)

RULES:
- Handles are list positions in DocumentTree.nodes, stable for one tree
- A tree is never patched: edits produce a fresh DocumentTree
- lang is the effective language (own attribute, else inherited)
- Anchor.id is always word_id + "-anc"; Anchor.time is seconds or None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Type, TypeVar

from readalong_studio.config import ANCHOR_SUFFIX


@dataclass(frozen=True)
class TimeInterval:
    """Aligned span of one word, in milliseconds."""

    start_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms

    def as_list(self) -> list[float]:
        return [self.start_ms, self.duration_ms]


def seconds_to_ms(seconds: float) -> float:
    """Seconds to milliseconds on the 3-decimal grid all alignment times use.

    Parsed starts and playback samples must go through the same rounding,
    otherwise 1.005 s lands at 1004.9999999999999 ms, short of its word.
    """
    return round(seconds * 1000, 3)


@dataclass
class Node:
    handle: int
    parent: Optional[int] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    lang: Optional[str] = None


@dataclass
class Page(Node):
    id: str = ""
    image: Optional[str] = None
    children: List[int] = field(default_factory=list)


@dataclass
class Paragraph(Node):
    children: List[int] = field(default_factory=list)

    @property
    def css_class(self) -> Optional[str]:
        return self.attributes.get("class")


@dataclass
class Sentence(Node):
    id: Optional[str] = None
    children: List[int] = field(default_factory=list)

    @property
    def css_class(self) -> Optional[str]:
        return self.attributes.get("class")


@dataclass
class Word(Node):
    """A clickable, audio-aligned word."""

    id: str = ""
    text: str = ""


@dataclass
class NonWordText(Node):
    """Text between words (punctuation, spacing, untagged elements).

    Has a synthetic id and no audio alignment.
    """

    id: str = ""
    text: str = ""


@dataclass
class Anchor(Node):
    id: str = ""
    time: Optional[float] = None

    @property
    def word_id(self) -> str:
        return anchor_word_id(self.id)


def anchor_id_for(word_id: str) -> str:
    return word_id + ANCHOR_SUFFIX


def anchor_word_id(anchor_id: str) -> str:
    if anchor_id.endswith(ANCHOR_SUFFIX):
        return anchor_id[: -len(ANCHOR_SUFFIX)]
    return anchor_id


N = TypeVar("N", bound=Node)


@dataclass
class DocumentTree:
    """Arena of document nodes with an id side index.

    WHY: Anchor splicing and rendering look nodes up by id constantly;
    the side index makes that a dict lookup instead of a tree walk.

    HOW: Built by the TEI parser in document order, so iterating
    ``nodes`` visits the document depth-first, pre-order.

    RULES:
    - pages holds the handles of Page nodes in document order
    - index maps every node id (page, sentence, word, anchor, text run)
      to its handle; the first occurrence wins on duplicate ids
    """

    nodes: List[Node] = field(default_factory=list)
    pages: List[int] = field(default_factory=list)
    index: Dict[str, int] = field(default_factory=dict)

    def add(self, node: N) -> N:
        self.nodes.append(node)
        node_id = getattr(node, "id", None)
        if node_id and node_id not in self.index:
            self.index[node_id] = node.handle
        if node.parent is not None:
            parent = self.nodes[node.parent]
            parent.children.append(node.handle)  # type: ignore[attr-defined]
        return node

    def node(self, handle: int) -> Node:
        return self.nodes[handle]

    def get(self, node_id: str) -> Optional[Node]:
        handle = self.index.get(node_id)
        if handle is None:
            return None
        return self.nodes[handle]

    def children(self, handle: int) -> List[Node]:
        node = self.nodes[handle]
        return [self.nodes[h] for h in getattr(node, "children", [])]

    def ancestor(self, handle: int, kind: Type[N]) -> Optional[N]:
        """Nearest ancestor of the given node type, or None."""
        current = self.nodes[handle].parent
        while current is not None:
            node = self.nodes[current]
            if isinstance(node, kind):
                return node
            current = node.parent
        return None

    def iter_nodes(self, kind: Type[N]) -> Iterator[N]:
        for node in self.nodes:
            if isinstance(node, kind):
                yield node

    def page_nodes(self) -> List[Page]:
        return [self.nodes[h] for h in self.pages]  # type: ignore[misc]

    def words(self) -> List[Word]:
        return list(self.iter_nodes(Word))

    def anchors(self) -> List[Anchor]:
        return list(self.iter_nodes(Anchor))

    def word(self, word_id: str) -> Optional[Word]:
        node = self.get(word_id)
        return node if isinstance(node, Word) else None

    def anchor(self, word_id: str) -> Optional[Anchor]:
        node = self.get(anchor_id_for(word_id))
        return node if isinstance(node, Anchor) else None

    def position(self, node_id: str) -> Optional[int]:
        """Document-order position (handle) of a node id, or None."""
        return self.index.get(node_id)
