"""Direction classes for rendered markup.

Walks an ``xml.etree.ElementTree`` tree (what Python-Markdown produces) and
tags every block whose text has a detectable direction with ``esm-rtl`` or
``esm-ltr``. ElementTree keeps character data in ``text``/``tail`` rather than
in separate nodes, so :func:`iter_child_nodes` presents an element's content
as the DOM would: strings for text nodes, elements for everything else, in
document order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union
from xml.etree.ElementTree import Element

from autodir.app.direction import Direction, detect_direction

RTL_CLASS = "esm-rtl"
LTR_CLASS = "esm-ltr"
AUTO_CLASS = "esm-auto"
DIRECTION_CLASSES = {
    Direction.RTL: RTL_CLASS,
    Direction.LTR: LTR_CLASS,
    Direction.AUTO: AUTO_CLASS,
}

# Inline elements whose own dir has no visual effect; their direction
# belongs on the nearest enclosing block.
SPECIAL_TAGS = frozenset({"em", "i", "strong", "b", "del", "s", "strike", "code", "a", "mark"})
LIST_ITEM_TAG = "li"
UNORDERED_LIST_TAG = "ul"
PARAGRAPH_TAG = "p"

Node = Union[str, Element]


def class_list(element: Element) -> list[str]:
    return (element.get("class") or "").split()


def has_class(element: Element, name: str) -> bool:
    return name in class_list(element)


def add_class(element: Element, name: str) -> None:
    classes = class_list(element)
    if name not in classes:
        classes.append(name)
        element.set("class", " ".join(classes))


def remove_class(element: Element, name: str) -> None:
    classes = class_list(element)
    if name not in classes:
        return
    remaining = [c for c in classes if c != name]
    if remaining:
        element.set("class", " ".join(remaining))
    else:
        element.attrib.pop("class", None)


def set_direction_class(element: Element, direction: Direction) -> None:
    """Give element exactly one direction class."""
    for name in DIRECTION_CLASSES.values():
        remove_class(element, name)
    add_class(element, DIRECTION_CLASSES[direction])


def direction_of(element: Element) -> Optional[Direction]:
    classes = class_list(element)
    for direction, name in DIRECTION_CLASSES.items():
        if name in classes:
            return direction
    return None


def iter_child_nodes(element: Element) -> Iterator[Node]:
    if element.text:
        yield element.text
    for child in element:
        yield child
        if child.tail:
            yield child.tail


def _append_text(target: Element, text: str) -> None:
    if not text:
        return
    if len(target):
        last = target[-1]
        last.tail = (last.tail or "") + text
    else:
        target.text = (target.text or "") + text


def split_paragraph_lines(paragraph: Element) -> bool:
    """Turn a multi-line <p> into a <div> holding one <p> per line.

    Lines are separated by <br> elements and newline characters. Returns
    True when the paragraph was split; a paragraph with fewer than two
    non-empty lines is left alone.
    """
    segments: list[list[Node]] = [[]]

    def feed(text: Optional[str]) -> None:
        for idx, part in enumerate((text or "").split("\n")):
            if idx:
                segments.append([])
            if part:
                segments[-1].append(part)

    feed(paragraph.text)
    for child in paragraph:
        if child.tag == "br":
            segments.append([])
        else:
            segments[-1].append(child)
        feed(child.tail)

    segments = [seg for seg in segments if any(not isinstance(n, str) or n.strip() for n in seg)]
    if len(segments) < 2:
        return False

    lines: list[Element] = []
    for seg in segments:
        line = Element(PARAGRAPH_TAG)
        for node in seg:
            if isinstance(node, str):
                _append_text(line, node)
            else:
                node.tail = None
                line.append(node)
        lines.append(line)
    attrib = dict(paragraph.attrib)
    tail = paragraph.tail
    paragraph.clear()
    paragraph.tag = "div"
    paragraph.attrib.update(attrib)
    paragraph.tail = tail
    paragraph.extend(lines)
    return True


def _needs_split(paragraph: Element) -> bool:
    if paragraph.text and "\n" in paragraph.text.strip("\n"):
        return True
    for child in paragraph:
        if child.tag == "br":
            return True
        if child.tail and "\n" in child.tail:
            return True
    return False


@dataclass
class _Frame:
    element: Element
    committed: bool = False
    scanned: bool = False


class DirectionClassifier:
    """Assigns direction classes to a rendered tree.

    The classifier keeps no state between calls; the carry-forward
    direction for blocks without a detectable direction is threaded through
    each walk and returned to the caller.
    """

    def __init__(
        self,
        detector: Optional[Callable[[str], Optional[Direction]]] = None,
        *,
        special_tags: frozenset[str] = SPECIAL_TAGS,
        split_paragraphs: bool = True,
    ) -> None:
        self._detect = detector or detect_direction
        self.special_tags = special_tags
        self.split_paragraphs = split_paragraphs

    def classify(self, root: Optional[Element], fallback: Direction = Direction.LTR) -> Direction:
        """Classify root in place; returns the last detected direction."""
        if root is None:
            return fallback
        return self._walk(root, [], fallback)

    __call__ = classify

    def _walk(self, element: Element, ancestors: list[_Frame], last: Direction) -> Direction:
        if self.split_paragraphs and element.tag == PARAGRAPH_TAG and _needs_split(element):
            split_paragraph_lines(element)
        # Classes from an earlier run are reassigned from scratch.
        for name in DIRECTION_CLASSES.values():
            remove_class(element, name)
        frame = _Frame(element)
        stack = ancestors + [frame]
        nodes = list(iter_child_nodes(element))
        final = len(nodes) - 1
        for index, node in enumerate(nodes):
            if isinstance(node, str):
                if not frame.committed and node.strip():
                    frame.scanned = True
                    direction = self._detect(node)
                    if direction is not None:
                        last = direction
                        self._commit(stack, direction)
                    continue
            elif isinstance(node.tag, str):
                last = self._walk(node, stack, last)
            if index == final and frame.scanned and not frame.committed:
                set_direction_class(element, last)
                frame.committed = True
        if element.tag == UNORDERED_LIST_TAG:
            first_item = next((child for child in element if child.tag == LIST_ITEM_TAG), None)
            if first_item is not None and has_class(first_item, RTL_CLASS):
                set_direction_class(element, Direction.RTL)
        return last

    def _commit(self, stack: list[_Frame], direction: Direction) -> None:
        frame = stack[-1]
        frame.committed = True
        if frame.element.tag not in self.special_tags:
            self._assign(stack, len(stack) - 1, direction)
            return
        for idx in range(len(stack) - 2, -1, -1):
            target = stack[idx]
            if target.element.tag in self.special_tags:
                continue
            # Leading text of the block already decided its direction.
            if not target.committed:
                self._assign(stack, idx, direction)
            return
        # Nothing but inline ancestors: keep the direction on the node itself.
        set_direction_class(frame.element, direction)

    def _assign(self, stack: list[_Frame], idx: int, direction: Direction) -> None:
        frame = stack[idx]
        set_direction_class(frame.element, direction)
        frame.committed = True
        if idx > 0 and stack[idx - 1].element.tag == LIST_ITEM_TAG:
            parent = stack[idx - 1]
            set_direction_class(parent.element, direction)
            parent.committed = True


def classify_tree(
    root: Optional[Element],
    fallback: Direction = Direction.LTR,
    detector: Optional[Callable[[str], Optional[Direction]]] = None,
) -> Direction:
    """Classify root with a default classifier."""
    return DirectionClassifier(detector).classify(root, fallback)
