from __future__ import annotations

import re
from typing import Callable, Optional
from xml.etree.ElementTree import Element

import markdown
from markdown import util
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from autodir.app.direction import Direction, detect_direction
from autodir.app.dom_direction import DirectionClassifier, direction_of

PREVIEW_EXTENSIONS = ["fenced_code", "tables", "nl2br"]

# Stashed raw HTML / entities show up in the tree as STX...ETX placeholders.
_PLACEHOLDER_RE = re.compile(f"{util.STX}[^{util.ETX}]*{util.ETX}")


class AutoDirectionTreeprocessor(Treeprocessor):
    def __init__(
        self,
        md,
        *,
        fallback: Direction,
        dir_attribute: bool,
        split_paragraphs: bool,
        detector: Optional[Callable[[str], Optional[Direction]]] = None,
    ) -> None:
        super().__init__(md)
        self._detect = detector or detect_direction
        self.fallback = fallback
        self.dir_attribute = dir_attribute
        self.classifier = DirectionClassifier(self._detect_rendered, split_paragraphs=split_paragraphs)
        self.last_direction = fallback

    def _detect_rendered(self, text: str) -> Optional[Direction]:
        return self._detect(_PLACEHOLDER_RE.sub(" ", text))

    def run(self, root: Element) -> None:
        self.last_direction = self.classifier.classify(root, self.fallback)
        if self.dir_attribute:
            for element in root.iter():
                direction = direction_of(element)
                if direction is not None:
                    element.set("dir", direction.value)


class AutoDirectionExtension(Extension):
    def __init__(self, detector: Optional[Callable[[str], Optional[Direction]]] = None, **kwargs) -> None:
        self.detector = detector
        self.config = {
            "fallback": ["ltr", "Direction for blocks before any detectable text"],
            "dir_attribute": [False, "Mirror direction classes into dir attributes"],
            "split_paragraphs": [True, "Split multi-line paragraphs into one block per line"],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md) -> None:
        processor = AutoDirectionTreeprocessor(
            md,
            fallback=Direction.parse(self.getConfig("fallback"), Direction.LTR),
            dir_attribute=bool(self.getConfig("dir_attribute")),
            split_paragraphs=bool(self.getConfig("split_paragraphs")),
            detector=self.detector,
        )
        # After inline parsing (20) and prettify (10): the tree is final.
        md.treeprocessors.register(processor, "auto_direction", 5)


def makeExtension(**kwargs) -> AutoDirectionExtension:
    return AutoDirectionExtension(**kwargs)


def render_markdown(
    text: str,
    *,
    direction: Direction = Direction.AUTO,
    fallback: Direction = Direction.LTR,
    dir_attribute: bool = False,
    detector: Optional[Callable[[str], Optional[Direction]]] = None,
) -> str:
    """Render markdown to HTML; in auto mode every block gets a direction class.

    For a fixed document direction the markup is left unclassified and the
    caller sets the direction on the preview container.
    """
    extensions: list = list(PREVIEW_EXTENSIONS)
    if direction is Direction.AUTO:
        extensions.append(
            AutoDirectionExtension(
                fallback=fallback.value,
                dir_attribute=dir_attribute,
                detector=detector,
            )
        )
    return markdown.markdown(text or "", extensions=extensions)
