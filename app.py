"""Yuedu: Chinese reading assistant API."""
import argparse
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

import config
from analysis import TextAnalyzer
from analyze_routes import router as analyze_router
from definitions import DefinitionResolver
from dictionary import Dictionary
from llm import check_llm_connectivity, llm_chat
from log import get_logger
from segmenter import Segmenter
from sentences import SentenceTranslator
from store import Store
from transcript_routes import router as transcript_router
from transcription import ElevenLabsTranscriber
from transcripts import TranscriptService
from vocabulary_routes import router as vocabulary_router

logger = get_logger("yuedu.app")


def create_app(store: Optional[Store] = None, segmenter: Optional[Segmenter] = None,
               dictionary: Optional[Dictionary] = None, chat=None,
               transcriber: Optional[ElevenLabsTranscriber] = None) -> FastAPI:
    """Build the API with explicitly wired services; unset pieces come from config."""
    store = store or Store(config.DB_PATH)
    store.init()
    segmenter = segmenter or Segmenter.from_file(config.JIEBA_DICT_PATH)
    dictionary = dictionary if dictionary is not None else Dictionary.from_file(config.CEDICT_PATH)
    chat = chat or llm_chat
    transcriber = transcriber or ElevenLabsTranscriber()

    resolver = DefinitionResolver(dictionary, chat=chat)
    translator = SentenceTranslator(chat=chat)

    app = FastAPI(title="Yuedu")
    app.state.store = store
    app.state.dictionary = dictionary
    app.state.analyzer = TextAnalyzer(store, segmenter, resolver, translator)
    app.state.transcripts = TranscriptService(store, resolver, transcriber)

    app.include_router(analyze_router)
    app.include_router(transcript_router)
    app.include_router(vocabulary_router)

    @app.get("/api/health", tags=["System"], summary="Service health")
    async def health():
        return {
            "status": "ok",
            "llm": {"provider": config.LLM_PROVIDER, "reachable": await check_llm_connectivity()},
            "dictionary_entries": len(app.state.dictionary),
        }

    logger.info("App created", extra={"component": "app", "count": len(dictionary)})
    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the Yuedu API with uvicorn")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3001)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)
    uvicorn.run("app:create_app", host=args.host, port=args.port, reload=args.reload, factory=True)


if __name__ == "__main__":
    main()
