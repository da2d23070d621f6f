"""
Unicode script classification.

Every visible character falls into one of three buckets for purity purposes:
a script letter (Arabic, Latin, Cyrillic, ...), a script-neutral character
(digit, punctuation, symbol, combining mark) or an "other" character
(control, format, private-use, replacement character).
"""

from __future__ import annotations

import unicodedata
from enum import Enum
from typing import Iterator, Tuple


class Script(Enum):
    """Coarse script classes used by detection and validation."""
    ARABIC = "arabic"
    LATIN = "latin"
    CYRILLIC = "cyrillic"
    GREEK = "greek"
    HEBREW = "hebrew"
    CJK = "cjk"
    OTHER_LETTER = "other_letter"
    NEUTRAL = "neutral"
    SPACE = "space"
    OTHER = "other"


# (start, end) inclusive code point ranges
_RANGES = [
    (Script.ARABIC, 0x0600, 0x06FF),
    (Script.ARABIC, 0x0750, 0x077F),
    (Script.ARABIC, 0x08A0, 0x08FF),
    (Script.ARABIC, 0xFB50, 0xFDFF),
    (Script.ARABIC, 0xFE70, 0xFEFF),
    (Script.LATIN, 0x0041, 0x005A),
    (Script.LATIN, 0x0061, 0x007A),
    (Script.LATIN, 0x00C0, 0x024F),
    (Script.LATIN, 0x00AA, 0x00AA),
    (Script.LATIN, 0x00BA, 0x00BA),
    (Script.LATIN, 0x1E00, 0x1EFF),
    (Script.LATIN, 0xFB00, 0xFB06),
    (Script.CYRILLIC, 0x0400, 0x052F),
    (Script.CYRILLIC, 0x1C80, 0x1C8F),
    (Script.GREEK, 0x0370, 0x03FF),
    (Script.HEBREW, 0x0590, 0x05FF),
    (Script.CJK, 0x3040, 0x30FF),
    (Script.CJK, 0x4E00, 0x9FFF),
    (Script.CJK, 0xAC00, 0xD7AF),
]

LETTER_SCRIPTS = frozenset({
    Script.ARABIC, Script.LATIN, Script.CYRILLIC, Script.GREEK,
    Script.HEBREW, Script.CJK, Script.OTHER_LETTER,
})

SUPPORTED_SCRIPTS = frozenset({Script.ARABIC, Script.LATIN})

# Zero-width joiners and bidi marks occur legitimately in Arabic typesetting.
_ALLOWED_FORMAT = frozenset({"\u200c", "\u200d", "\u200e", "\u200f"})


def classify_char(ch: str) -> Script:
    """Classify a single character."""
    if ch.isspace():
        return Script.SPACE
    if ch == "\ufffd":
        return Script.OTHER
    category = unicodedata.category(ch)
    if category == "Nd" or category[0] in ("P", "S"):
        return Script.NEUTRAL
    if category == "Cf" and ch in _ALLOWED_FORMAT:
        return Script.NEUTRAL
    if category[0] == "C":
        return Script.OTHER
    code = ord(ch)
    # Combining diacritical marks attach to whatever letter precedes them.
    if 0x0300 <= code <= 0x036F:
        return Script.NEUTRAL
    for script, start, end in _RANGES:
        if start <= code <= end:
            return script
    if category[0] in ("L", "M"):
        return Script.OTHER_LETTER
    return Script.NEUTRAL


def iter_runs(text: str) -> Iterator[Tuple[int, int, Script]]:
    """Yield maximal (start, end, script) runs of identically classified characters."""
    if not text:
        return
    start = 0
    current = classify_char(text[0])
    for index in range(1, len(text)):
        script = classify_char(text[index])
        if script is not current:
            yield start, index, current
            start = index
            current = script
    yield start, len(text), current


def dominant_letter_script(text: str) -> Script:
    """Return the letter script with the most characters in ``text``."""
    counts = {}
    for ch in text:
        script = classify_char(ch)
        if script in LETTER_SCRIPTS:
            counts[script] = counts.get(script, 0) + 1
    if not counts:
        return Script.NEUTRAL
    return max(counts.items(), key=lambda item: item[1])[0]
