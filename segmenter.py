"""Word segmentation on top of jieba, returning offset-carrying phrases."""
import re as _re
from pathlib import Path
from typing import Iterable, List, Optional

import jieba

from errors import SegmentationError
from log import get_logger
from models import Phrase

logger = get_logger("yuedu.segmenter")

# Unified ideographs: basic, Ext A, compatibility, Ext B-F, compatibility supplement, Ext G-H
_CJK_RE = _re.compile(
    r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
    r"\U00020000-\U0002ebef\U0002f800-\U0002fa1f\U00030000-\U000323af]"
)


def contains_cjk(text: str) -> bool:
    return bool(text) and _CJK_RE.search(text) is not None


def check_coverage(text: str, phrases: List[Phrase]) -> None:
    """Raise SegmentationError unless phrases partition ``text`` exactly."""
    cursor = 0
    for phrase in phrases:
        if phrase.start != cursor or text[phrase.start:phrase.end] != phrase.text:
            raise SegmentationError(f"segment gap or overlap at offset {cursor}")
        cursor = phrase.end
    if cursor != len(text):
        raise SegmentationError(f"segments end at {cursor}, text length is {len(text)}")


def load_user_words(path: Path) -> List[str]:
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


class Segmenter:
    """Splits text into phrases that cover every character, punctuation included."""

    def __init__(self, user_words: Optional[Iterable[str]] = None, tokenizer: Optional[jieba.Tokenizer] = None):
        self._tokenizer = tokenizer or jieba.Tokenizer()
        added = 0
        for word in user_words or ():
            self._tokenizer.add_word(word)
            added += 1
        if added:
            logger.info("Loaded user words into tokenizer", extra={"component": "segmenter", "count": added})

    @classmethod
    def from_file(cls, path: Path) -> "Segmenter":
        return cls(user_words=load_user_words(path))

    def segment(self, text: str) -> List[Phrase]:
        if not text:
            return []
        try:
            tokens = list(self._tokenizer.tokenize(text))
            phrases = [Phrase(text=word, start=start, end=end) for word, start, end in tokens if word]
        except Exception as exc:
            logger.exception("Tokenizer failed", extra={"component": "segmenter"})
            raise SegmentationError(f"tokenizer failed: {exc}") from exc

        phrases.sort(key=lambda p: p.start)
        check_coverage(text, phrases)
        return phrases
