"""Pydantic schemas and constants for Yuedu."""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

# --- Constants ---
NO_DEFINITION = "No definition found"
TRANSLATION_UNAVAILABLE = "Translation unavailable"

HIGHLIGHT_SORTS = ("count", "recent", "alphabetical")


# --- Pipeline records ---

class Phrase(BaseModel):
    text: str = Field(min_length=1)
    start: int = Field(ge=0)
    end: int

    @model_validator(mode="after")
    def _check_span(self):
        if self.end <= self.start:
            raise ValueError("phrase end must be greater than start")
        if self.end - self.start != len(self.text):
            raise ValueError("phrase span does not match its text length")
        return self


class Definition(BaseModel):
    pinyin: str = ""
    gloss: str


def missing_definition() -> Definition:
    return Definition(pinyin="", gloss=NO_DEFINITION)


class AnalysisBundle(BaseModel):
    phrases: List[Phrase]
    definitions: Dict[str, Definition]
    sentence_translations: Optional[Dict[str, str]] = None

    @property
    def is_complete(self) -> bool:
        return self.sentence_translations is not None


class TranscriptRecord(BaseModel):
    file_hash: str
    transcript: dict
    language_code: Optional[str] = None
    language_probability: Optional[float] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None

    @model_validator(mode="after")
    def _check_transcript(self):
        if not isinstance(self.transcript.get("text"), str):
            raise ValueError("transcript must carry a text field")
        return self


class HighlightedWord(BaseModel):
    id: str
    user_id: str
    word: str
    pinyin: Optional[str] = None
    definition: Optional[str] = None
    highlight_count: int = 1
    timestamps: List[float] = []
    pinned: bool = False
    created_at: float
    updated_at: float


# --- Request models ---

class AnalyzeRequest(BaseModel):
    text: str = ""
    text_hash: str = ""
    include_sentences: bool = False


class SegmentRequest(BaseModel):
    text: str = ""


class TranscriptCacheRequest(BaseModel):
    file_hash: str = ""


class LookupDefinitionsRequest(BaseModel):
    phrases: List[str] = []
    audio_hash: Optional[str] = None


class HighlightRequest(BaseModel):
    user_id: str
    word: str
    pinyin: Optional[str] = None
    definition: Optional[str] = None


class PinRequest(BaseModel):
    user_id: str
    pinned: bool
