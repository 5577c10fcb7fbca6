"""
Japanese-aware sort keys.

Company names and kana readings arrive in mixed scripts: full-width and
half-width katakana, hiragana, full-width Latin. A plain codepoint sort
scatters the same reading across the list, so keys are normalised first:

1. NFKC folds half-width katakana and full-width Latin to their canonical forms
2. Katakana is folded onto hiragana (ア and あ compare equal)
3. Latin is case-folded
"""

import unicodedata
from typing import Optional

# カ (U+30AB) - か (U+304B)
_KANA_OFFSET = 0x60
_KATAKANA_FIRST = 0x30A1   # ァ
_KATAKANA_LAST = 0x30F6    # ヶ


def _fold_katakana(text: str) -> str:
    return "".join(
        chr(ord(ch) - _KANA_OFFSET) if _KATAKANA_FIRST <= ord(ch) <= _KATAKANA_LAST else ch
        for ch in text
    )


def ja_sort_key(text: Optional[str]) -> str:
    """Collation key for a single Japanese/Latin string. None sorts first."""
    if not text:
        return ""
    normalized = unicodedata.normalize("NFKC", text)
    return _fold_katakana(normalized).casefold()


def ja_sort_keys(*texts: Optional[str]) -> tuple[str, ...]:
    """Composite key, e.g. (company, kana)."""
    return tuple(ja_sort_key(t) for t in texts)
