"""TEI text parser, live document wrapper, and export serialization.

WHY: The read-along text is a TEI-like XML document: page <div>s hold
<p> paragraphs, which hold sentence elements, which mix <w> words,
<anchor> markers, and plain text runs. The core needs (1) a normalized
DocumentTree view of that document for lookups and rendering, and
(2) the live XML itself, because anchor edits must end up in the
exported text exactly where the operator placed them.

HOW: xml.etree.ElementTree holds the live document (comments and
processing instructions kept). parse_tei_tree() derives a fresh
DocumentTree from the live root every time it is called. TeiDocument
bundles the root, the derived tree, and id/parent maps, and offers the
few structural mutations the anchor editor needs.

RULES:
- Pages: every div[@type="page"], in document order; id from @id (or @xml:id)
- Page image: url of a direct <graphic> child, if any
- Paragraphs: direct <p> children of a page
- Sentences: element children of a paragraph that have any content
- Sentence children: text run → NonWordText "<sentenceId|P>text<c>",
  <w> → Word, <anchor> → Anchor, other element → NonWordText (own id or
  "text_<c>"); c counts every child node (text runs and elements)
- lang: own xml:lang / lang attribute, else inherited from the parent
- Parsing is deterministic: same live tree in, equal DocumentTree out
- Zero pages or unparsable XML → MalformedText
- Export strips <w> wrappers (word text stays) on a copy; live tree untouched
"""

from __future__ import annotations

import copy
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional

from readalong_studio.config import XML_NAMESPACE
from readalong_studio.core.ir import (
    Anchor,
    DocumentTree,
    NonWordText,
    Page,
    Paragraph,
    Sentence,
    Word,
)
from readalong_studio.errors import MalformedText

logger = logging.getLogger(__name__)

_XML_LANG = "{%s}lang" % XML_NAMESPACE
_XML_ID = "{%s}id" % XML_NAMESPACE


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def local_name(element: ET.Element) -> Optional[str]:
    """Tag without namespace, or None for comments and processing instructions."""
    if not isinstance(element.tag, str):
        return None
    return element.tag.rsplit("}", 1)[-1]


def element_namespace(element: ET.Element) -> Optional[str]:
    if isinstance(element.tag, str) and element.tag.startswith("{"):
        return element.tag[1:].split("}", 1)[0]
    return None


def element_id(element: ET.Element) -> Optional[str]:
    return element.get("id") or element.get(_XML_ID)


def _own_lang(element: ET.Element) -> Optional[str]:
    return element.get("lang") or element.get(_XML_LANG)


def _attributes(element: ET.Element) -> Dict[str, str]:
    """Element attributes with the XML namespace written as the xml: prefix."""
    result: Dict[str, str] = {}
    for key, value in element.attrib.items():
        if key.startswith("{%s}" % XML_NAMESPACE):
            key = "xml:" + key.rsplit("}", 1)[-1]
        elif key.startswith("{"):
            key = key.rsplit("}", 1)[-1]
        result[key] = value
    return result


def _parent_map(root: ET.Element) -> Dict[ET.Element, ET.Element]:
    return {child: parent for parent in root.iter() for child in parent}


def _inherited_lang(
    element: ET.Element,
    parents: Dict[ET.Element, ET.Element],
) -> Optional[str]:
    current: Optional[ET.Element] = element
    while current is not None:
        lang = _own_lang(current)
        if lang:
            return lang
        current = parents.get(current)
    return None


def parse_anchor_time(value: Optional[str]) -> Optional[float]:
    """Parse an anchor time attribute ("12.34s") into seconds."""
    if value is None:
        return None
    text = value.strip()
    if text.endswith("s"):
        text = text[:-1]
    try:
        return float(text)
    except ValueError:
        logger.warning("Ignoring invalid anchor time: %r", value)
        return None


def format_anchor_time(seconds: float) -> str:
    return "{:.2f}s".format(seconds)


# ---------------------------------------------------------------------------
# Loading and tree derivation
# ---------------------------------------------------------------------------


def load_tei(xml_text: str | bytes) -> ET.Element:
    """Parse TEI text into a live ElementTree root.

    Raises:
        MalformedText: If the text is not well-formed XML.
    """
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        return ET.fromstring(xml_text, parser=parser)
    except ET.ParseError as exc:
        raise MalformedText("Text is not well-formed XML: {}".format(exc)) from exc


def _text_content(element: ET.Element) -> str:
    return "".join(element.itertext())


def _add_sentence_children(
    tree: DocumentTree,
    sentence: Sentence,
    element: ET.Element,
) -> None:
    prefix = sentence.id if sentence.id else "P"
    lang = sentence.lang
    position = 0

    def add_text_run(text: Optional[str]) -> None:
        nonlocal position
        if text:
            tree.add(NonWordText(
                handle=len(tree.nodes),
                parent=sentence.handle,
                lang=lang,
                id="{}text{}".format(prefix, position),
                text=text,
            ))
            position += 1

    add_text_run(element.text)

    for child in element:
        name = local_name(child)
        child_id = element_id(child)
        child_lang = _own_lang(child) or lang
        handle = len(tree.nodes)

        if name is None:
            # Comment or processing instruction: counted, not rendered
            pass
        elif name == "w" and child_id:
            tree.add(Word(
                handle=handle,
                parent=sentence.handle,
                attributes=_attributes(child),
                lang=child_lang,
                id=child_id,
                text=_text_content(child),
            ))
        elif name == "anchor" and child_id:
            tree.add(Anchor(
                handle=handle,
                parent=sentence.handle,
                attributes=_attributes(child),
                lang=child_lang,
                id=child_id,
                time=parse_anchor_time(child.get("time")),
            ))
        else:
            if name == "w":
                logger.warning("Word without id treated as plain text: %r", _text_content(child))
            tree.add(NonWordText(
                handle=handle,
                parent=sentence.handle,
                attributes=_attributes(child),
                lang=child_lang,
                id=child_id or "text_{}".format(position),
                text=_text_content(child),
            ))
        position += 1

        add_text_run(child.tail)


def parse_tei_tree(root: ET.Element) -> DocumentTree:
    """Derive a DocumentTree from a live TEI root.

    WHY: The anchor editor re-derives the whole view after every edit
    instead of patching it, so this must be cheap to call repeatedly and
    fully deterministic.

    HOW: Walk page divs in document order; for each, walk its <p>
    children, their sentence elements, and the sentence children,
    appending typed nodes to the arena.

    Raises:
        MalformedText: If the document contains no pages.
    """
    parents = _parent_map(root)
    tree = DocumentTree()

    for element in root.iter():
        if local_name(element) != "div" or element.get("type") != "page":
            continue

        page_id = element_id(element) or ""
        page = tree.add(Page(
            handle=len(tree.nodes),
            attributes=_attributes(element),
            lang=_inherited_lang(element, parents),
            id=page_id,
        ))
        tree.pages.append(page.handle)

        for child in element:
            if local_name(child) == "graphic" and child.get("url") and page.image is None:
                page.image = child.get("url")

        for p_element in element:
            if local_name(p_element) != "p":
                continue
            paragraph = tree.add(Paragraph(
                handle=len(tree.nodes),
                parent=page.handle,
                attributes=_attributes(p_element),
                lang=_own_lang(p_element) or page.lang,
            ))
            for s_element in p_element:
                if local_name(s_element) is None:
                    continue
                if not s_element.text and len(s_element) == 0:
                    continue
                sentence = tree.add(Sentence(
                    handle=len(tree.nodes),
                    parent=paragraph.handle,
                    attributes=_attributes(s_element),
                    lang=_own_lang(s_element) or paragraph.lang,
                    id=element_id(s_element),
                ))
                _add_sentence_children(tree, sentence, s_element)

    if not tree.pages:
        raise MalformedText('Text contains no pages (div[@type="page"])')

    return tree


def parse_tei(xml_text: str | bytes) -> DocumentTree:
    """Parse TEI text straight into a DocumentTree."""
    return parse_tei_tree(load_tei(xml_text))


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_tei(root: ET.Element) -> str:
    """Serialize the live tree, keeping a default namespace unprefixed."""
    namespace = element_namespace(root)
    if namespace:
        ET.register_namespace("", namespace)
    return ET.tostring(root, encoding="unicode")


def _unwrap(parent: ET.Element, element: ET.Element) -> None:
    """Replace element by its content inside parent."""
    index = list(parent).index(element)
    children = list(element)
    text = element.text or ""
    tail = element.tail or ""

    if children:
        last = children[-1]
        last.tail = (last.tail or "") + tail
    else:
        text += tail

    if text:
        if index > 0:
            previous = parent[index - 1]
            previous.tail = (previous.tail or "") + text
        else:
            parent.text = (parent.text or "") + text

    parent.remove(element)
    for offset, child in enumerate(children):
        parent.insert(index + offset, child)


def export_tei(root: ET.Element) -> str:
    """Serialize a copy of the document with <w> word wrappers removed."""
    exported = copy.deepcopy(root)
    parents = _parent_map(exported)
    words = [el for el in exported.iter() if local_name(el) == "w"]
    for word in words:
        _unwrap(parents[word], word)
        for child in word:
            parents[child] = parents[word]
    return serialize_tei(exported)


# ---------------------------------------------------------------------------
# Live document
# ---------------------------------------------------------------------------


class TeiDocument:
    """The live TEI document plus its derived DocumentTree.

    WHY: Edits happen on the XML (that is what gets exported) while reads
    happen on the tree. Keeping both behind one object, and only ever
    replacing the tree wholesale in refresh(), means readers never see a
    tree that disagrees with the XML.

    RULES:
    - refresh() must be called after every structural mutation
    - tree is replaced, never mutated in place
    """

    def __init__(self, root: ET.Element) -> None:
        self.root = root
        self.tree = parse_tei_tree(root)
        self._elements: Dict[str, ET.Element] = {}
        self._parents: Dict[ET.Element, ET.Element] = {}
        self._reindex()

    @classmethod
    def from_string(cls, xml_text: str | bytes) -> TeiDocument:
        return cls(load_tei(xml_text))

    @classmethod
    def from_file(cls, path: str | Path) -> TeiDocument:
        return cls.from_string(Path(path).read_bytes())

    def _reindex(self) -> None:
        self._parents = _parent_map(self.root)
        self._elements = {}
        for element in self.root.iter():
            if local_name(element) is None:
                continue
            node_id = element_id(element)
            if node_id and node_id not in self._elements:
                self._elements[node_id] = element

    def refresh(self) -> DocumentTree:
        """Re-derive the tree from the live XML and swap it in."""
        tree = parse_tei_tree(self.root)
        self._reindex()
        self.tree = tree
        return tree

    def element(self, node_id: str) -> Optional[ET.Element]:
        return self._elements.get(node_id)

    def insert_before(self, new: ET.Element, reference: ET.Element) -> None:
        parent = self._parents[reference]
        parent.insert(list(parent).index(reference), new)
        self._parents[new] = parent

    def remove(self, element: ET.Element) -> None:
        """Detach element, keeping its tail text in place."""
        parent = self._parents[element]
        index = list(parent).index(element)
        if element.tail:
            if index > 0:
                previous = parent[index - 1]
                previous.tail = (previous.tail or "") + element.tail
            else:
                parent.text = (parent.text or "") + element.tail
        parent.remove(element)

    def make_element(self, name: str, like: ET.Element) -> ET.Element:
        """New element in the same namespace as an existing one."""
        namespace = element_namespace(like)
        tag = "{%s}%s" % (namespace, name) if namespace else name
        return ET.Element(tag)

    def serialize(self) -> str:
        return serialize_tei(self.root)

    def export(self) -> str:
        return export_tei(self.root)

    def word_ids(self) -> List[str]:
        return [word.id for word in self.tree.words()]
