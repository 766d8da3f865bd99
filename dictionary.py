"""CC-CEDICT dictionary lookups with deterministic pinyin."""
import re as _re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from opencc import OpenCC
from pypinyin import pinyin, Style as PinyinStyle
from pypinyin.contrib.tone_convert import to_tone

from log import get_logger
from models import Definition

logger = get_logger("yuedu.dictionary")

_t2s = OpenCC('t2s')  # Traditional → Simplified

# Traditional Simplified [pin1 yin1] /sense 1/sense 2/
_CEDICT_LINE = _re.compile(r"^(\S+)\s+(\S+)\s+\[([^\]]*)\]\s+/(.+)/\s*$")
_NUMBERED_SYLLABLE = _re.compile(r"^[a-zA-Z:]+[1-5]$")

# Grammatical particles whose first CC-CEDICT sense is misleading for readers
_particle_overrides = {
    "的": ("de", "(possessive/descriptive particle)"),
    "了": ("le", "(completion/change particle)"),
    "着": ("zhe", "(continuous aspect particle)"),
    "过": ("guo", "(experiential particle)"),
    "得": ("de", "(complement particle)"),
    "地": ("de", "(adverbial particle)"),
    "吗": ("ma", "(question particle)"),
    "呢": ("ne", "(question/continuation particle)"),
    "吧": ("ba", "(suggestion particle)"),
    "把": ("bǎ", "(object-marking particle)"),
    "被": ("bèi", "(passive particle)"),
}

Variant = Tuple[str, List[str]]


def numbered_to_marks(numbered: str) -> str:
    """Convert CC-CEDICT pinyin (``xue2 xi2``, ``lu:4``) to tone marks."""
    out = []
    for syllable in numbered.split():
        if not _NUMBERED_SYLLABLE.match(syllable):
            out.append(syllable)
            continue
        marked = to_tone(syllable.lower().replace("u:", "ü"))
        if syllable[0].isupper():
            marked = marked[:1].upper() + marked[1:]
        out.append(marked)
    return " ".join(out)


def phrase_pinyin(text: str) -> str:
    result = pinyin(text, style=PinyinStyle.TONE)
    return " ".join(p[0] for p in result)


def to_simplified(text: str) -> str:
    return _t2s.convert(text)


def parse_cedict(lines) -> Dict[str, List[Variant]]:
    """Group CC-CEDICT entries by simplified headword, keeping file order."""
    entries: Dict[str, List[Variant]] = {}
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        match = _CEDICT_LINE.match(line)
        if not match:
            continue
        _trad, simp, numbered, senses = match.groups()
        glosses = [s.strip() for s in senses.split("/") if s.strip()]
        if not glosses:
            continue
        entries.setdefault(simp, []).append((numbered_to_marks(numbered), glosses))
    return entries


class Dictionary:
    def __init__(self, entries: Optional[Dict[str, List[Variant]]] = None):
        self._entries = entries or {}

    @classmethod
    def from_file(cls, path: Path) -> "Dictionary":
        if not path.exists():
            logger.warning("CC-CEDICT file not found, dictionary is empty",
                           extra={"component": "dictionary", "detail": str(path)})
            return cls()
        with open(path, encoding="utf-8") as f:
            entries = parse_cedict(f)
        logger.info("Loaded CC-CEDICT", extra={"component": "dictionary", "count": len(entries)})
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, word: str) -> Optional[Definition]:
        """First pronunciation variant and its first sense, or None.

        Headwords are simplified, so the OpenCC form is matched first; the
        text as given is tried only when that misses.
        """
        simplified = to_simplified(word)
        for candidate in dict.fromkeys((simplified, word)):
            if candidate in _particle_overrides:
                reading, gloss = _particle_overrides[candidate]
                return Definition(pinyin=reading, gloss=gloss)
            variants = self._entries.get(candidate)
            if variants:
                reading, glosses = variants[0]
                return Definition(pinyin=reading, gloss=glosses[0])
        return None
