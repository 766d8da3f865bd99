"""Sentence splitting and batched sentence translation."""
import re as _re
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from llm import llm_chat, numbered_prompt, parse_indexed_response
from log import get_logger
from models import TRANSLATION_UNAVAILABLE

logger = get_logger("yuedu.sentences")

ChatFn = Callable[..., Awaitable[Optional[str]]]

# A clause plus its terminator, or a trailing clause with none
_SENTENCE_RE = _re.compile(r"[^。！？.!?\n]+[。！？.!?\n]|[^。！？.!?\n]+$")

_SYSTEM_MSG = "You translate Chinese into natural English. Return valid JSON only."


def split_sentences(text: str) -> List[str]:
    sentences = [s.strip() for s in _SENTENCE_RE.findall(text or "")]
    return [s for s in sentences if s]


def _translation_prompt(sentences: List[str]) -> str:
    return f"""Translate each numbered Chinese sentence into English.

{numbered_prompt(sentences)}

Return ONLY a JSON array with one object per sentence:
[{{"index": 1, "translation": "English translation"}}]

Rules:
- "index" is the sentence number from the list above
- Translate every sentence, no commentary"""


class SentenceTranslator:
    def __init__(self, chat: ChatFn = llm_chat):
        self._chat = chat

    async def translate(self, sentences: List[str]) -> Dict[str, str]:
        unique = list(dict.fromkeys(s for s in sentences if s))
        if not unique:
            return {}

        try:
            reply = await self._chat(
                [{"role": "user", "content": _translation_prompt(unique)}],
                system=_SYSTEM_MSG, temperature=0.3,
            )
        except (httpx.HTTPError, ValueError):
            logger.warning("LLM sentence translation failed", exc_info=True,
                           extra={"component": "sentences", "count": len(unique)})
            reply = None

        answers = parse_indexed_response(reply, len(unique))
        translations = {}
        for idx, sentence in enumerate(unique, start=1):
            answer = answers.get(idx) or {}
            text = str(answer.get("translation") or answer.get("text") or "").strip()
            translations[sentence] = text or TRANSLATION_UNAVAILABLE
        return translations


def all_unavailable(translations: Dict[str, str]) -> bool:
    """True when a non-empty batch came back as placeholders only."""
    return bool(translations) and all(t == TRANSLATION_UNAVAILABLE for t in translations.values())
