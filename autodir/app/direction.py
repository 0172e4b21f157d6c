from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence


class Direction(str, Enum):
    LTR = "ltr"
    RTL = "rtl"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: object, default: Optional["Direction"] = None) -> Optional["Direction"]:
        """Return the Direction named by value (case-insensitive), else default."""
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return default
        return default


# Code point ranges per Unicode script, block-level approximation of the
# Script property. Ranges are inclusive.
SCRIPT_RANGES: dict[str, tuple[tuple[int, int], ...]] = {
    "Arabic": (
        (0x0600, 0x06FF),
        (0x0750, 0x077F),
        (0x0870, 0x089F),
        (0x08A0, 0x08FF),
        (0xFB50, 0xFDFF),
        (0xFE70, 0xFEFF),
        (0x10E60, 0x10E7F),
        (0x1EE00, 0x1EEFF),
    ),
    "Hebrew": ((0x0591, 0x05FF), (0xFB1D, 0xFB4F)),
    "Syriac": ((0x0700, 0x074F), (0x0860, 0x086F)),
    "Thaana": ((0x0780, 0x07BF),),
    "Armenian": ((0x0531, 0x058F), (0xFB13, 0xFB17)),
    "Bengali": ((0x0980, 0x09FF),),
    "Bopomofo": ((0x02EA, 0x02EB), (0x3105, 0x312F), (0x31A0, 0x31BF)),
    "Braille": ((0x2800, 0x28FF),),
    "Buhid": ((0x1740, 0x175F),),
    "Canadian_Aboriginal": ((0x1400, 0x167F), (0x18B0, 0x18FF), (0x11AB0, 0x11ABF)),
    "Cherokee": ((0x13A0, 0x13FF), (0xAB70, 0xABBF)),
    "Cyrillic": (
        (0x0400, 0x052F),
        (0x1C80, 0x1C8F),
        (0x2DE0, 0x2DFF),
        (0xA640, 0xA69F),
        (0x1E030, 0x1E08F),
    ),
    "Devanagari": ((0x0900, 0x0963), (0x0966, 0x097F), (0xA8E0, 0xA8FF)),
    "Ethiopic": ((0x1200, 0x139F), (0x2D80, 0x2DDF), (0xAB00, 0xAB2F)),
    "Georgian": ((0x10A0, 0x10FF), (0x1C90, 0x1CBF), (0x2D00, 0x2D2F)),
    "Greek": ((0x0370, 0x0373), (0x0375, 0x037D), (0x037F, 0x03FF), (0x1F00, 0x1FFF)),
    "Gujarati": ((0x0A80, 0x0AFF),),
    "Gurmukhi": ((0x0A00, 0x0A7F),),
    "Han": (
        (0x2E80, 0x2FDF),
        (0x3005, 0x3005),
        (0x3007, 0x3007),
        (0x3021, 0x3029),
        (0x3038, 0x303B),
        (0x3400, 0x4DBF),
        (0x4E00, 0x9FFF),
        (0xF900, 0xFAFF),
        (0x20000, 0x323AF),
    ),
    "Hangul": (
        (0x1100, 0x11FF),
        (0x3131, 0x318E),
        (0xA960, 0xA97F),
        (0xAC00, 0xD7FF),
        (0xFFA0, 0xFFDC),
    ),
    "Hanunoo": ((0x1720, 0x1734),),
    "Hiragana": ((0x3041, 0x309F), (0x1B001, 0x1B11F)),
    # Combining marks only; joiners and variation selectors stay neutral.
    "Inherited": (
        (0x0300, 0x036F),
        (0x1AB0, 0x1AFF),
        (0x1DC0, 0x1DFF),
        (0x20D0, 0x20FF),
        (0xFE20, 0xFE2F),
    ),
    "Kannada": ((0x0C80, 0x0CFF),),
    "Katakana": (
        (0x30A1, 0x30FF),
        (0x31F0, 0x31FF),
        (0x32D0, 0x32FE),
        (0x3300, 0x3357),
        (0xFF66, 0xFF6F),
        (0xFF71, 0xFF9D),
    ),
    "Khmer": ((0x1780, 0x17FF), (0x19E0, 0x19FF)),
    "Lao": ((0x0E80, 0x0EFF),),
    "Latin": (
        (0x0041, 0x005A),
        (0x0061, 0x007A),
        (0x00AA, 0x00AA),
        (0x00BA, 0x00BA),
        (0x00C0, 0x00D6),
        (0x00D8, 0x00F6),
        (0x00F8, 0x02B8),
        (0x02E0, 0x02E4),
        (0x1D00, 0x1D25),
        (0x1D2C, 0x1D5C),
        (0x1E00, 0x1EFF),
        (0x2071, 0x2071),
        (0x207F, 0x207F),
        (0x2090, 0x209C),
        (0x2C60, 0x2C7F),
        (0xA722, 0xA787),
        (0xA78B, 0xA7FF),
        (0xAB30, 0xAB64),
        (0xFB00, 0xFB06),
        (0xFF21, 0xFF3A),
        (0xFF41, 0xFF5A),
    ),
    "Limbu": ((0x1900, 0x194F),),
    "Malayalam": ((0x0D00, 0x0D7F),),
    "Mongolian": ((0x1800, 0x1801), (0x1804, 0x1804), (0x1806, 0x18AF), (0x11660, 0x1167F)),
    "Myanmar": ((0x1000, 0x109F), (0xA9E0, 0xA9FF), (0xAA60, 0xAA7F)),
    "Ogham": ((0x1680, 0x169C),),
    "Oriya": ((0x0B00, 0x0B7F),),
    "Runic": ((0x16A0, 0x16EA), (0x16EE, 0x16F8)),
    "Sinhala": ((0x0D80, 0x0DFF), (0x111E0, 0x111FF)),
    "Tagalog": ((0x1700, 0x171F),),
    "Tagbanwa": ((0x1760, 0x177F),),
    "Tamil": ((0x0B80, 0x0BFF), (0x11FC0, 0x11FFF)),
    "Telugu": ((0x0C00, 0x0C7F),),
    "Thai": ((0x0E01, 0x0E3A), (0x0E40, 0x0E5B)),
    "Tibetan": ((0x0F00, 0x0FD4), (0x0FD9, 0x0FDA)),
    "Yi": ((0xA000, 0xA48C), (0xA490, 0xA4C6)),
}

RTL_SCRIPTS: tuple[str, ...] = ("Arabic", "Hebrew", "Syriac", "Thaana")
LTR_SCRIPTS: tuple[str, ...] = tuple(name for name in SCRIPT_RANGES if name not in RTL_SCRIPTS)

# Obsidian style named link: [[target|label]] reads as its label.
NAMED_LINK_PATTERN = re.compile(r"\[\[[^\]]*\|([^\]]*)\]\]")
# A checked markdown checkbox; the "x" is not prose.
CHECKED_BOX_PATTERN = re.compile(r"- \[[xX]\]")


def strip_meaningless_text(text: str) -> str:
    """Drop markup that would bias detection without being prose."""
    text = NAMED_LINK_PATTERN.sub(r"\1", text)
    return CHECKED_BOX_PATTERN.sub("", text)


def _char_class(names: Iterable[str], table: Mapping[str, Sequence[tuple[int, int]]]) -> str:
    parts: list[str] = []
    for name in names:
        for lo, hi in table[name]:
            if lo == hi:
                parts.append(f"\\U{lo:08x}")
            else:
                parts.append(f"\\U{lo:08x}-\\U{hi:08x}")
    return "[" + "".join(parts) + "]" if parts else "(?!)"


class DirectionDetector:
    """First-strong-character direction detection over two script groups.

    Group R scripts make a line right-to-left, group L scripts make it
    left-to-right; whichever group supplies the first matching character
    wins. Characters from neither group (digits, punctuation, symbols,
    unlisted scripts) carry no direction.
    """

    def __init__(
        self,
        rtl_scripts: Iterable[str] = RTL_SCRIPTS,
        ltr_scripts: Iterable[str] = LTR_SCRIPTS,
        *,
        table: Mapping[str, Sequence[tuple[int, int]]] = SCRIPT_RANGES,
        strip: bool = True,
    ) -> None:
        self.rtl_scripts = tuple(rtl_scripts)
        self.ltr_scripts = tuple(name for name in ltr_scripts if name not in self.rtl_scripts)
        unknown = [name for name in self.rtl_scripts + self.ltr_scripts if name not in table]
        if unknown:
            raise ValueError(f"Unknown script name(s): {', '.join(unknown)}")
        self.strip = strip
        self._pattern = re.compile(
            f"({_char_class(self.rtl_scripts, table)})|({_char_class(self.ltr_scripts, table)})"
        )

    def detect(self, text: Optional[str]) -> Optional[Direction]:
        """Return RTL/LTR for the first strong character in text, or None."""
        if not text:
            return None
        if self.strip:
            text = strip_meaningless_text(text)
        match = self._pattern.search(text)
        if match is None:
            return None
        return Direction.RTL if match.group(1) else Direction.LTR

    __call__ = detect


_DEFAULT_DETECTOR = DirectionDetector()


def detect_direction(text: Optional[str]) -> Optional[Direction]:
    """Detect the direction of text with the built-in script groups."""
    return _DEFAULT_DETECTOR.detect(text)
