"""RMT (real-money trading) spam detection for inbound chat."""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

# Gil sellers space out or punctuate their brand names to dodge filters,
# so each keyword is matched with arbitrary separators between its letters.
# A match may not start or end inside a longer word.
RMT_KEYWORDS = (
    "gil4sale",
    "mmogah",
    "mmoah",
    "raiditem",
    "mmoggah",
    "guild2vip",
    "guld2vip",
    "gold2vip",
    "gil2vip",
    "ffxivgil",
    "playerauctions",
    "fastgil",
    "gilcheap",
    "mogstation-gift",
)

RMT_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("cheap_gil", r"\bcheap(?:est)?\s+(?:ffxiv\s+)?gil\b"),
    ("gil_price", r"\b\d+\s*[mk]\s*gil\s*(?:=|for|only)\s*\$?\s*\d"),
    ("discount_code", r"\b(?:discount|coupon|promo)\s*code\b"),
    ("delivery", r"\b(?:fast|instant|safe)\s+(?:gil\s+)?delivery\b"),
    ("power_leveling", r"\bpower\s*level(?:ing)?\s+(?:service|cheap)\b"),
    ("g2g_site", r"\bg\s*2\s*g\s*[.,]\s*c\s*[o0]\s*m\b"),
    ("spaced_url", r"\bw\s*w\s*w\s*[.,]\s*\w[\w\s-]*[.,]\s*c\s*[o0]\s*m\b"),
)

_SEPARATORS = r"[\W_]*"
_WORD_START = r"(?<![A-Za-z0-9])"
_WORD_END = r"(?![A-Za-z0-9])"


@dataclass(frozen=True)
class SpamDecision:
    is_spam: bool
    reason: Optional[str] = None


NOT_SPAM = SpamDecision(False)


def _keyword_pattern(keyword: str) -> str:
    letters = [re.escape(ch) for ch in keyword if not ch.isspace()]
    return _WORD_START + _SEPARATORS.join(letters) + _WORD_END


class SpamFilter:
    """Pure classifier; the caller decides what to do with a spam verdict."""

    def __init__(
        self,
        keywords: Iterable[str] = RMT_KEYWORDS,
        phrases: Iterable[Tuple[str, str]] = RMT_PHRASES,
    ):
        self._keyword_patterns: List[Tuple[str, re.Pattern]] = [
            (kw, re.compile(_keyword_pattern(kw), re.IGNORECASE))
            for kw in keywords
            if kw.strip()
        ]
        self._phrase_patterns: List[Tuple[str, re.Pattern]] = [
            (name, re.compile(pattern, re.IGNORECASE)) for name, pattern in phrases
        ]

    def evaluate(self, text: str) -> SpamDecision:
        """Classify ``text``.

        Returns:
            SpamDecision with the matching rule as ``reason`` when spam.
        """
        if not text:
            return NOT_SPAM

        for keyword, pattern in self._keyword_patterns:
            if pattern.search(text):
                return SpamDecision(True, f"keyword:{keyword}")

        for name, pattern in self._phrase_patterns:
            if pattern.search(text):
                return SpamDecision(True, f"phrase:{name}")

        return NOT_SPAM

    def is_spam(self, text: str) -> bool:
        return self.evaluate(text).is_spam
