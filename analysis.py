"""Text analysis entry point: cached segmentation, definitions and sentence translations.

Cache record states for one text hash:

    absent   -> compute everything requested, write, return
    partial  -> phrases + definitions only; sentences are computed and merged
                in when a caller asks for them
    complete -> returned verbatim, whatever the caller asked for

Concurrent calls for the same hash share one in-flight computation. A result
whose LLM batch fell back to placeholders is returned but not written.
"""
import asyncio
import time
from typing import Dict, List, Optional

from definitions import DefinitionResolver
from errors import StoreError
from log import get_logger, short_hash
from models import AnalysisBundle, Definition, Phrase
from segmenter import Segmenter
from sentences import SentenceTranslator, all_unavailable, split_sentences
from store import Store

logger = get_logger("yuedu.analysis")


class TextAnalyzer:
    def __init__(self, store: Store, segmenter: Segmenter, resolver: DefinitionResolver,
                 translator: SentenceTranslator):
        self.store = store
        self.segmenter = segmenter
        self.resolver = resolver
        self.translator = translator
        self._inflight: Dict[str, asyncio.Future] = {}

    def segment_only(self, text: str) -> List[Phrase]:
        return self.segmenter.segment(text)

    async def analyze(self, text: str, text_hash: str, include_sentences: bool = False) -> AnalysisBundle:
        """Return the analysis bundle for ``text``, computing only what the cache lacks.

        ``text_hash`` is trusted to be the hash of ``text``.
        """
        if not text or not text_hash:
            raise ValueError("text and text_hash are required")

        while True:
            task = self._inflight.get(text_hash)
            if task is None:
                task = asyncio.ensure_future(self._analyze(text, text_hash, include_sentences))
                self._inflight[text_hash] = task
                task.add_done_callback(lambda t, key=text_hash: self._forget(key, t))
                return await asyncio.shield(task)

            logger.info("Joining in-flight analysis",
                        extra={"component": "analysis", "text_hash": short_hash(text_hash)})
            bundle = await asyncio.shield(task)
            if bundle.is_complete or not include_sentences:
                return bundle
            self._forget(text_hash, task)

    def _forget(self, text_hash: str, task: asyncio.Future) -> None:
        if self._inflight.get(text_hash) is task:
            del self._inflight[text_hash]

    async def _analyze(self, text: str, text_hash: str, include_sentences: bool) -> AnalysisBundle:
        started = time.perf_counter()
        cached = self._read_cache(text_hash)

        if cached is not None:
            if cached.is_complete or not include_sentences:
                logger.info("Analysis cache hit", extra={
                    "component": "analysis", "text_hash": short_hash(text_hash),
                    "detail": "complete" if cached.is_complete else "partial",
                })
                return cached
            translations = await self._translate(text)
            if all_unavailable(translations):
                self._log_not_cached(text_hash, "sentence translation unavailable")
            else:
                self._write_cache(text_hash, sentence_translations=translations)
            logger.info("Completed cached analysis with sentences", extra={
                "component": "analysis", "text_hash": short_hash(text_hash), "count": len(translations),
                "duration_ms": round((time.perf_counter() - started) * 1000),
            })
            return cached.model_copy(update={"sentence_translations": translations})

        phrases = self.segmenter.segment(text)
        definitions, definitions_failed = await self.resolver.resolve_checked(p.text for p in phrases)
        translations = await self._translate(text) if include_sentences else None

        # Placeholder-only LLM results are returned but never cached, so the
        # next request retries them.
        if definitions_failed:
            self._log_not_cached(text_hash, "definition lookup unavailable")
        else:
            if translations is not None and all_unavailable(translations):
                self._log_not_cached(text_hash, "sentence translation unavailable")
                stored_translations = None
            else:
                stored_translations = translations
            self._write_cache(text_hash, phrases=phrases, definitions=definitions,
                              sentence_translations=stored_translations)
        logger.info("Analysis cache miss computed", extra={
            "component": "analysis", "text_hash": short_hash(text_hash), "count": len(phrases),
            "duration_ms": round((time.perf_counter() - started) * 1000),
        })
        return AnalysisBundle(phrases=phrases, definitions=definitions, sentence_translations=translations)

    @staticmethod
    def _log_not_cached(text_hash: str, reason: str) -> None:
        logger.warning("LLM batch fell back to placeholders, not caching", extra={
            "component": "analysis", "text_hash": short_hash(text_hash), "detail": reason,
        })

    async def _translate(self, text: str) -> Dict[str, str]:
        return await self.translator.translate(split_sentences(text))

    def _read_cache(self, text_hash: str) -> Optional[AnalysisBundle]:
        try:
            return self.store.get_analysis(text_hash)
        except StoreError:
            logger.warning("Analysis cache read failed, treating as miss", exc_info=True,
                           extra={"component": "analysis", "text_hash": short_hash(text_hash)})
            return None

    def _write_cache(self, text_hash: str, phrases: Optional[List[Phrase]] = None,
                     definitions: Optional[Dict[str, Definition]] = None,
                     sentence_translations: Optional[Dict[str, str]] = None) -> None:
        try:
            self.store.upsert_analysis(text_hash, phrases=phrases, definitions=definitions,
                                       sentence_translations=sentence_translations)
        except StoreError:
            logger.warning("Analysis cache write failed", exc_info=True,
                           extra={"component": "analysis", "text_hash": short_hash(text_hash)})
