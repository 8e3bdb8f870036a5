"""
Text direction for mixed Arabic / Latin content.

Record fields hold Arabic and English text side by side (client names,
matters, notes), so a cell's direction cannot follow the page language.

    detect_direction("شركة النيل")   -> "rtl"
    detect_direction("Nile Co.")     -> "ltr"
    detect_direction("")             -> "auto"
"""

import re
from typing import List, NamedTuple, Optional

RTL = "rtl"
LTR = "ltr"
AUTO = "auto"

ARABIC_CHARS = re.compile("[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]")
HEBREW_CHARS = re.compile("[\u0590-\u05FF\u200F\u202A-\u202E\u2028\u2029]")
LATIN_CHARS = re.compile(r"[a-zA-Z0-9]")

# Always rendered left to right whatever they contain
LTR_INPUT_TYPES = frozenset({"email", "url", "tel", "password"})


class Segment(NamedTuple):
    text: str
    direction: str


def _char_direction(char: str) -> str:
    if ARABIC_CHARS.match(char) or HEBREW_CHARS.match(char):
        return RTL
    if LATIN_CHARS.match(char):
        return LTR
    return AUTO


def detect_direction(text: Optional[str]) -> str:
    """Direction of the first non-blank character: "rtl", "ltr" or "auto"."""
    if text is None:
        return AUTO
    text = str(text).lstrip()
    if not text:
        return AUTO
    return _char_direction(text[0])


def has_mixed_content(text: Optional[str]) -> bool:
    if not text:
        return False
    text = str(text)
    return bool(ARABIC_CHARS.search(text)) and bool(LATIN_CHARS.search(text))


def segment_mixed_content(text: Optional[str]) -> List[Segment]:
    """
    Split text into runs of one direction.

    Neutral characters (spaces, punctuation) stay attached to the run they
    follow. Blank runs are dropped.
    """
    if not text:
        return []

    segments = []
    current = ""
    direction = None
    for char in str(text):
        char_direction = _char_direction(char)
        if direction not in (None, AUTO) and char_direction not in (AUTO, direction):
            if current.strip():
                segments.append(Segment(current, direction))
            current = char
            direction = char_direction
            continue
        current += char
        if direction in (None, AUTO):
            direction = char_direction

    if current.strip():
        segments.append(Segment(current, direction or AUTO))
    return segments


def input_direction(input_type: str) -> str:
    return LTR if input_type in LTR_INPUT_TYPES else AUTO
