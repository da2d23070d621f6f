"""
Output cleaning for engine responses.

Engines wrap the translation they were asked for in various ways:
- <think>...</think> reasoning blocks
- "Translation:" / "Traduction :" / "الترجمة:" prefixes
- code fences
- quotes around the whole answer
These are removed before the purity cleaner runs.
"""

import re
from typing import List

_PREFIXES = [
    r"^Translation\s*:\s*",
    r"^Translated text\s*:\s*",
    r"^Traduction\s*:\s*",
    r"^Texte traduit\s*:\s*",
    r"^Output\s*:\s*",
    r"^Result\s*:\s*",
    r"^الترجمة\s*[:：]\s*",
    r"^النص المترجم\s*[:：]\s*",
]

_QUOTE_PAIRS = [('"', '"'), ("'", "'"), ("«", "»"), ("“", "”")]


def clean_engine_output(text: str) -> str:
    """
    Extract only the translated text from a raw engine response.

    Args:
        text: Raw engine output

    Returns:
        Cleaned text; the stripped original when cleaning would leave nothing
    """
    if not text:
        return ""

    original = text

    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<thinking>.*?</thinking>", "", text, flags=re.DOTALL | re.IGNORECASE)

    match = re.match(r"^```(?:\w+)?\s*\n(.*?)\n```\s*$", text.strip(), re.DOTALL)
    if match:
        text = match.group(1)

    text = text.strip()
    for prefix in _PREFIXES:
        text = re.sub(prefix, "", text, flags=re.IGNORECASE)

    text = text.strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(text) >= 2 and text.startswith(opening) and text.endswith(closing):
            inner = text[1:-1]
            # Leave quotes alone when the answer contains further quoted parts
            if opening not in inner and closing not in inner:
                text = inner.strip()
            break

    text = text.strip()
    if not text:
        return original.strip()
    return text


def clean_batch_outputs(outputs: List[str]) -> List[str]:
    return [clean_engine_output(t) for t in outputs]


def has_engine_wrapper(text: str) -> bool:
    """Check whether ``text`` carries any wrapper clean_engine_output removes."""
    if not text:
        return False
    patterns = [r"<think>", r"<thinking>", r"^```"] + _PREFIXES
    return any(re.search(p, text.strip(), re.IGNORECASE) for p in patterns)
