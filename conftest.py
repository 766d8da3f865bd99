"""Shared fixtures for the Yuedu test suite."""
import json
import re as _re

import pytest
from fastapi.testclient import TestClient

import auth
import config
from analysis import TextAnalyzer
from app import create_app
from definitions import DefinitionResolver
from dictionary import Dictionary, parse_cedict
from segmenter import Segmenter
from sentences import SentenceTranslator
from store import Store
from transcripts import TranscriptService

SAMPLE_CEDICT = """\
# CC-CEDICT sample for tests
我 我 [wo3] /I; me; my/
愛 爱 [ai4] /to love; to be fond of/
學習 学习 [xue2 xi2] /to learn; to study/
你 你 [ni3] /you (informal)/
呢 呢 [ni2] /woolen material/
中國 中国 [Zhong1 guo2] /China/
女 女 [nu:3] /female; woman/
行 行 [xing2] /to walk; to go; capable/
行 行 [hang2] /row; line; profession/
漢字 汉字 [han4 zi4] /Chinese character/
"""

_PROMPT_ITEM = _re.compile(r"^(\d+)\. (.+)$", _re.MULTILINE)


def echo_reply(prompt: str) -> str:
    """Answer every numbered item with a recognisable gloss/translation."""
    items = [{"index": int(n), "gloss": f"gloss of {text}", "translation": f"EN: {text}"}
             for n, text in _PROMPT_ITEM.findall(prompt)]
    return json.dumps(items, ensure_ascii=False)


class FakeChat:
    """Stands in for llm.llm_chat and records every prompt it receives."""

    def __init__(self, responder=echo_reply, error=None):
        self.responder = responder
        self.error = error
        self.prompts = []

    async def __call__(self, messages, **kwargs):
        prompt = messages[-1]["content"]
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if self.responder is None:
            return None
        return self.responder(prompt)

    @property
    def call_count(self):
        return len(self.prompts)


class FakeTranscriber:
    def __init__(self, text="我爱学习。", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, audio_bytes, file_name="audio"):
        self.calls.append((file_name, len(audio_bytes)))
        if self.error is not None:
            raise self.error
        return {
            "transcript": {"text": self.text, "words": []},
            "language_code": "zho",
            "language_probability": 0.98,
        }


@pytest.fixture(scope="session")
def segmenter():
    return Segmenter()


@pytest.fixture()
def dictionary():
    return Dictionary(parse_cedict(SAMPLE_CEDICT.splitlines()))


@pytest.fixture()
def store(tmp_path):
    return Store(tmp_path / "yuedu-test.db").init()


@pytest.fixture()
def chat():
    return FakeChat()


@pytest.fixture()
def transcriber():
    return FakeTranscriber()


@pytest.fixture()
def resolver(dictionary, chat):
    return DefinitionResolver(dictionary, chat=chat)


@pytest.fixture()
def analyzer(store, segmenter, resolver, chat):
    return TextAnalyzer(store, segmenter, resolver, SentenceTranslator(chat=chat))


@pytest.fixture()
def transcripts(store, resolver, transcriber):
    return TranscriptService(store, resolver, transcriber)


@pytest.fixture()
def client(store, segmenter, dictionary, chat, transcriber, monkeypatch):
    monkeypatch.setattr(config, "APP_PASSWORD", "")
    auth.reset_rate_limits()
    app = create_app(store=store, segmenter=segmenter, dictionary=dictionary,
                     chat=chat, transcriber=transcriber)
    with TestClient(app) as test_client:
        yield test_client
