"""Tests for the cached, lazily-completing text analysis."""
import asyncio

import pytest

from conftest import FakeChat, echo_reply
from analysis import TextAnalyzer
from definitions import DefinitionResolver
from errors import SegmentationError, StoreError
from hashing import text_hash
from segmenter import Segmenter
from sentences import SentenceTranslator

TEXT = "我爱学习电脑。你呢？"
HASH = text_hash(TEXT)


class CountingSegmenter:
    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def segment(self, text):
        self.calls += 1
        return self.inner.segment(text)


class FailingStore:
    def get_analysis(self, text_hash):
        raise StoreError("disk I/O error")

    def upsert_analysis(self, text_hash, **fields):
        raise StoreError("disk I/O error")


class _BrokenTokenizer:
    def tokenize(self, text):
        raise RuntimeError("boom")


def _analyzer(store, segmenter, dictionary, chat):
    return TextAnalyzer(store, segmenter, DefinitionResolver(dictionary, chat=chat),
                        SentenceTranslator(chat=chat))


def test_first_call_computes_and_persists(analyzer, store):
    bundle = asyncio.run(analyzer.analyze(TEXT, HASH))
    assert "".join(p.text for p in bundle.phrases) == TEXT
    assert bundle.sentence_translations is None
    assert bundle.definitions["我"].gloss == "I; me; my"
    assert "。" not in bundle.definitions
    assert store.get_analysis(HASH) == bundle


def test_repeat_call_is_served_from_cache(store, segmenter, dictionary, chat):
    counting = CountingSegmenter(segmenter)
    analyzer = _analyzer(store, counting, dictionary, chat)
    first = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    calls = chat.call_count

    second = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert second.model_dump() == first.model_dump()
    assert counting.calls == 1
    assert chat.call_count == calls


def test_partial_record_is_completed_on_demand(store, segmenter, dictionary, chat):
    counting = CountingSegmenter(segmenter)
    analyzer = _analyzer(store, counting, dictionary, chat)

    partial = asyncio.run(analyzer.analyze(TEXT, HASH))
    assert partial.sentence_translations is None

    again = asyncio.run(analyzer.analyze(TEXT, HASH))
    assert again.sentence_translations is None
    calls = chat.call_count

    complete = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert counting.calls == 1
    assert chat.call_count == calls + 1
    assert complete.phrases == partial.phrases
    assert complete.definitions == partial.definitions
    assert complete.sentence_translations == {"我爱学习电脑。": "EN: 我爱学习电脑。", "你呢？": "EN: 你呢？"}
    assert store.get_analysis(HASH).is_complete


def test_complete_record_returned_even_without_sentences(analyzer):
    asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    bundle = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=False))
    assert bundle.sentence_translations is not None


def test_store_failures_do_not_fail_analysis(segmenter, dictionary, chat):
    analyzer = _analyzer(FailingStore(), segmenter, dictionary, chat)
    bundle = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert "".join(p.text for p in bundle.phrases) == TEXT
    assert bundle.is_complete


def test_segmentation_failure_propagates_and_persists_nothing(store, dictionary, chat):
    analyzer = _analyzer(store, Segmenter(tokenizer=_BrokenTokenizer()), dictionary, chat)
    with pytest.raises(SegmentationError):
        asyncio.run(analyzer.analyze(TEXT, HASH))
    assert store.get_analysis(HASH) is None
    assert chat.call_count == 0


def test_llm_outage_still_returns_bundle(store, segmenter, dictionary):
    chat = FakeChat(responder=None)
    analyzer = _analyzer(store, segmenter, dictionary, chat)
    bundle = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert bundle.definitions["电脑"].gloss == "No definition found"
    assert set(bundle.sentence_translations.values()) == {"Translation unavailable"}


def test_requires_text_and_hash(analyzer):
    with pytest.raises(ValueError):
        asyncio.run(analyzer.analyze("", HASH))
    with pytest.raises(ValueError):
        asyncio.run(analyzer.analyze(TEXT, ""))


class SlowChat(FakeChat):
    async def __call__(self, messages, **kwargs):
        await asyncio.sleep(0.05)
        return await super().__call__(messages, **kwargs)


def test_concurrent_requests_share_one_computation(store, segmenter, dictionary):
    chat = SlowChat(responder=echo_reply)
    counting = CountingSegmenter(segmenter)
    analyzer = _analyzer(store, counting, dictionary, chat)

    async def run():
        return await asyncio.gather(*(analyzer.analyze(TEXT, HASH) for _ in range(5)))

    results = asyncio.run(run())
    assert counting.calls == 1
    assert chat.call_count == 1
    assert all(r.model_dump() == results[0].model_dump() for r in results)
    assert analyzer._inflight == {}


def test_joiner_wanting_sentences_completes_partial(store, segmenter, dictionary):
    chat = SlowChat(responder=echo_reply)
    counting = CountingSegmenter(segmenter)
    analyzer = _analyzer(store, counting, dictionary, chat)

    async def run():
        return await asyncio.gather(
            analyzer.analyze(TEXT, HASH, include_sentences=False),
            analyzer.analyze(TEXT, HASH, include_sentences=True),
        )

    partial, complete = asyncio.run(run())
    assert partial.sentence_translations is None
    assert complete.is_complete
    assert counting.calls == 1


def test_llm_outage_result_is_not_cached_and_is_retried(store, segmenter, dictionary):
    chat = FakeChat(responder=None)
    analyzer = _analyzer(store, segmenter, dictionary, chat)
    outage = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert outage.definitions["电脑"].gloss == "No definition found"
    assert store.get_analysis(HASH) is None

    chat.responder = echo_reply
    recovered = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert recovered.definitions["电脑"].gloss == "gloss of 电脑"
    assert recovered.sentence_translations["你呢？"] == "EN: 你呢？"
    assert store.get_analysis(HASH).is_complete


def _definitions_only(prompt):
    return None if prompt.startswith("Translate") else echo_reply(prompt)


def test_translation_outage_stores_partial_record(store, segmenter, dictionary):
    chat = FakeChat(responder=_definitions_only)
    analyzer = _analyzer(store, segmenter, dictionary, chat)
    bundle = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert set(bundle.sentence_translations.values()) == {"Translation unavailable"}

    cached = store.get_analysis(HASH)
    assert cached is not None
    assert not cached.is_complete
    assert cached.definitions["电脑"].gloss == "gloss of 电脑"


def test_translation_outage_while_completing_keeps_record_partial(store, segmenter, dictionary):
    chat = FakeChat(responder=_definitions_only)
    analyzer = _analyzer(store, segmenter, dictionary, chat)
    asyncio.run(analyzer.analyze(TEXT, HASH))
    asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert not store.get_analysis(HASH).is_complete

    chat.responder = echo_reply
    complete = asyncio.run(analyzer.analyze(TEXT, HASH, include_sentences=True))
    assert complete.sentence_translations["我爱学习电脑。"] == "EN: 我爱学习电脑。"
    assert store.get_analysis(HASH).is_complete
