"""SQLite-backed cache store: text analysis, audio transcripts, vocabulary.

Every write is an upsert keyed by hash (or user+word) and merges into the
existing row; a write never clears a column it does not carry.
"""
import json
import sqlite3
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from errors import StoreError
from log import get_logger, short_hash
from models import (
    AnalysisBundle, Definition, HighlightedWord, Phrase, TranscriptRecord, HIGHLIGHT_SORTS,
)

logger = get_logger("yuedu.store")

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS text_analysis (
        text_hash TEXT PRIMARY KEY,
        segmented_phrases TEXT,
        phrase_definitions TEXT,
        sentence_translations TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    );
    CREATE TABLE IF NOT EXISTS audio_transcripts (
        file_hash TEXT PRIMARY KEY,
        file_name TEXT,
        file_size INTEGER,
        transcript TEXT NOT NULL,
        language_code TEXT,
        language_probability REAL,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    );
    CREATE TABLE IF NOT EXISTS transcript_translations (
        audio_hash TEXT PRIMARY KEY,
        translations TEXT NOT NULL,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    );
    CREATE TABLE IF NOT EXISTS highlighted_words (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        word TEXT NOT NULL,
        pinyin TEXT,
        definition TEXT,
        highlight_count INTEGER NOT NULL DEFAULT 1,
        timestamps TEXT NOT NULL,
        pinned INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL,
        UNIQUE (user_id, word)
    );
    CREATE INDEX IF NOT EXISTS idx_highlighted_words_user ON highlighted_words(user_id);
"""

_HIGHLIGHT_ORDER = {
    "count": "pinned DESC, highlight_count DESC, updated_at DESC",
    "recent": "pinned DESC, updated_at DESC",
    "alphabetical": "pinned DESC, word ASC",
}


def _dumps(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


class Store:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=10)
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def init(self) -> "Store":
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        return self

    # --- Text analysis ---

    def get_analysis(self, text_hash: str) -> Optional[AnalysisBundle]:
        """Return the cached bundle, or None when absent or malformed."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT segmented_phrases, phrase_definitions, sentence_translations "
                "FROM text_analysis WHERE text_hash = ?",
                (text_hash,),
            ).fetchone()
        if row is None:
            return None
        try:
            sentences = row["sentence_translations"]
            return AnalysisBundle.model_validate({
                "phrases": json.loads(row["segmented_phrases"] or "null"),
                "definitions": json.loads(row["phrase_definitions"] or "null"),
                "sentence_translations": json.loads(sentences) if sentences else None,
            })
        except (ValueError, ValidationError):
            logger.warning("Rejected malformed analysis record",
                           extra={"component": "store", "text_hash": short_hash(text_hash)})
            return None

    def upsert_analysis(self, text_hash: str, phrases: Optional[List[Phrase]] = None,
                        definitions: Optional[Dict[str, Definition]] = None,
                        sentence_translations: Optional[Dict[str, str]] = None) -> None:
        now = time.time()
        phrases_json = _dumps([p.model_dump() for p in phrases]) if phrases is not None else None
        definitions_json = (
            _dumps({k: d.model_dump() for k, d in definitions.items()}) if definitions is not None else None
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO text_analysis (text_hash, segmented_phrases, phrase_definitions, "
                "sentence_translations, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(text_hash) DO UPDATE SET "
                "segmented_phrases = COALESCE(excluded.segmented_phrases, text_analysis.segmented_phrases), "
                "phrase_definitions = COALESCE(excluded.phrase_definitions, text_analysis.phrase_definitions), "
                "sentence_translations = COALESCE(excluded.sentence_translations, text_analysis.sentence_translations), "
                "updated_at = excluded.updated_at",
                (text_hash, phrases_json, definitions_json, _dumps(sentence_translations), now, now),
            )
            conn.commit()

    # --- Audio transcripts ---

    def get_cached_transcript(self, file_hash: str) -> Optional[TranscriptRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT file_hash, file_name, file_size, transcript, language_code, language_probability "
                "FROM audio_transcripts WHERE file_hash = ?",
                (file_hash,),
            ).fetchone()
        if row is None:
            return None
        try:
            data = dict(row)
            data["transcript"] = json.loads(data["transcript"])
            return TranscriptRecord.model_validate(data)
        except (ValueError, ValidationError):
            logger.warning("Rejected malformed transcript record",
                           extra={"component": "store", "audio_hash": short_hash(file_hash)})
            return None

    def put_transcript(self, record: TranscriptRecord) -> None:
        now = time.time()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO audio_transcripts (file_hash, file_name, file_size, transcript, language_code, "
                "language_probability, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(file_hash) DO UPDATE SET transcript = excluded.transcript, "
                "file_name = COALESCE(excluded.file_name, audio_transcripts.file_name), "
                "file_size = COALESCE(excluded.file_size, audio_transcripts.file_size), "
                "language_code = COALESCE(excluded.language_code, audio_transcripts.language_code), "
                "language_probability = COALESCE(excluded.language_probability, audio_transcripts.language_probability), "
                "updated_at = excluded.updated_at",
                (record.file_hash, record.file_name, record.file_size, _dumps(record.transcript),
                 record.language_code, record.language_probability, now, now),
            )
            conn.commit()

    # --- Audio-scoped phrase translations ---

    def _load_translations(self, conn, audio_hash: str) -> Optional[Dict[str, Definition]]:
        row = conn.execute(
            "SELECT translations FROM transcript_translations WHERE audio_hash = ?",
            (audio_hash,),
        ).fetchone()
        if row is None:
            return None
        try:
            raw = json.loads(row["translations"])
            return {phrase: Definition.model_validate(value) for phrase, value in raw.items()}
        except (ValueError, ValidationError, AttributeError):
            logger.warning("Rejected malformed phrase translations",
                           extra={"component": "store", "audio_hash": short_hash(audio_hash)})
            return None

    def get_cached_phrase_translations(self, audio_hash: str) -> Optional[Dict[str, Definition]]:
        with self._connect() as conn:
            return self._load_translations(conn, audio_hash)

    def merge_cached_phrase_translations(self, audio_hash: str, translations: Dict[str, Definition]) -> None:
        now = time.time()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            merged = self._load_translations(conn, audio_hash) or {}
            merged.update(translations)
            conn.execute(
                "INSERT INTO transcript_translations (audio_hash, translations, created_at, updated_at) "
                "VALUES (?, ?, ?, ?) ON CONFLICT(audio_hash) DO UPDATE SET "
                "translations = excluded.translations, updated_at = excluded.updated_at",
                (audio_hash, _dumps({k: d.model_dump() for k, d in merged.items()}), now, now),
            )
            conn.commit()

    # --- Vocabulary ---

    @staticmethod
    def _row_to_word(row) -> HighlightedWord:
        data = dict(row)
        data["timestamps"] = json.loads(data["timestamps"])
        data["pinned"] = bool(data["pinned"])
        return HighlightedWord.model_validate(data)

    def record_highlight(self, user_id: str, word: str, pinyin: Optional[str] = None,
                         definition: Optional[str] = None) -> HighlightedWord:
        """Insert a word for the user, or bump its count and timestamps."""
        now = time.time()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM highlighted_words WHERE user_id = ? AND word = ?",
                (user_id, word),
            ).fetchone()
            if row is None:
                word_id = uuid.uuid4().hex
                conn.execute(
                    "INSERT INTO highlighted_words (id, user_id, word, pinyin, definition, highlight_count, "
                    "timestamps, pinned, created_at, updated_at) VALUES (?, ?, ?, ?, ?, 1, ?, 0, ?, ?)",
                    (word_id, user_id, word, pinyin, definition, _dumps([now]), now, now),
                )
            else:
                word_id = row["id"]
                timestamps = json.loads(row["timestamps"]) + [now]
                conn.execute(
                    "UPDATE highlighted_words SET highlight_count = highlight_count + 1, timestamps = ?, "
                    "pinyin = COALESCE(?, pinyin), definition = COALESCE(?, definition), updated_at = ? "
                    "WHERE id = ?",
                    (_dumps(timestamps), pinyin, definition, now, word_id),
                )
            conn.commit()
            row = conn.execute("SELECT * FROM highlighted_words WHERE id = ?", (word_id,)).fetchone()
        return self._row_to_word(row)

    def list_highlights(self, user_id: str, sort: str = "count") -> List[HighlightedWord]:
        if sort not in HIGHLIGHT_SORTS:
            raise ValueError(f"unknown sort {sort!r}")
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM highlighted_words WHERE user_id = ? ORDER BY {_HIGHLIGHT_ORDER[sort]}",
                (user_id,),
            ).fetchall()
        return [self._row_to_word(row) for row in rows]

    def delete_highlight(self, user_id: str, word_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM highlighted_words WHERE id = ? AND user_id = ?", (word_id, user_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def set_pinned(self, user_id: str, word_id: str, pinned: bool) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE highlighted_words SET pinned = ? WHERE id = ? AND user_id = ?",
                (int(pinned), word_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0
