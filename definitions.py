"""Phrase definitions: CC-CEDICT first, one batched LLM call for the rest."""
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from dictionary import Dictionary, phrase_pinyin
from llm import llm_chat, numbered_prompt, parse_indexed_response
from log import get_logger
from models import Definition, Phrase, missing_definition
from segmenter import contains_cjk

logger = get_logger("yuedu.definitions")

ChatFn = Callable[..., Awaitable[Optional[str]]]

_SYSTEM_MSG = "You are a concise Chinese-English dictionary. Return valid JSON only."


def _definition_prompt(words: List[str]) -> str:
    return f"""Give a short English definition (a few words) for each numbered Chinese word or phrase.

{numbered_prompt(words)}

Return ONLY a JSON array with one object per item:
[{{"index": 1, "gloss": "short English definition"}}]

Rules:
- "index" is the item number from the list above
- One object for every item, no commentary"""


class DefinitionResolver:
    """Maps phrase text to a Definition for every phrase containing Chinese."""

    def __init__(self, dictionary: Dictionary, chat: ChatFn = llm_chat):
        self._dictionary = dictionary
        self._chat = chat

    async def resolve(self, phrases: Iterable[Phrase]) -> Dict[str, Definition]:
        definitions, _ = await self.resolve_checked(p.text for p in phrases)
        return definitions

    async def resolve_texts(self, texts: Iterable[str]) -> Dict[str, Definition]:
        definitions, _ = await self.resolve_checked(texts)
        return definitions

    async def resolve_checked(self, texts: Iterable[str]) -> Tuple[Dict[str, Definition], bool]:
        """Like resolve_texts, plus whether the LLM batch failed as a whole.

        A failed batch means every dictionary miss carries the placeholder;
        callers should not cache such a result.
        """
        definitions: Dict[str, Definition] = {}
        not_found: List[str] = []
        seen = set()
        for text in texts:
            if text in seen or not contains_cjk(text):
                continue
            seen.add(text)
            hit = self._dictionary.lookup(text)
            if hit is not None:
                definitions[text] = hit
            else:
                not_found.append(text)

        if not not_found:
            return definitions, False
        resolved = await self._resolve_with_llm(not_found)
        if resolved is None:
            definitions.update((w, missing_definition()) for w in not_found)
            return definitions, True
        definitions.update(resolved)
        return definitions, False

    async def _resolve_with_llm(self, words: List[str]) -> Optional[Dict[str, Definition]]:
        try:
            reply = await self._chat(
                [{"role": "user", "content": _definition_prompt(words)}],
                system=_SYSTEM_MSG, temperature=0.2,
            )
        except (httpx.HTTPError, ValueError):
            logger.warning("LLM definition lookup failed", exc_info=True,
                           extra={"component": "definitions", "count": len(words)})
            return None
        if reply is None:
            return None

        answers = parse_indexed_response(reply, len(words))
        resolved: Dict[str, Definition] = {}
        for idx, word in enumerate(words, start=1):
            answer = answers.get(idx) or {}
            gloss = str(answer.get("gloss") or answer.get("text") or "").strip()
            if not gloss:
                resolved[word] = missing_definition()
                continue
            resolved[word] = Definition(pinyin=phrase_pinyin(word), gloss=gloss)

        missing = len(words) - len(answers)
        if missing:
            logger.info("LLM reply missing definitions",
                        extra={"component": "definitions", "count": missing})
        return resolved
