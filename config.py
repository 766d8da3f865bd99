"""Environment-driven settings for Yuedu."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).parent

# --- Storage ---
DB_PATH = Path(os.environ.get("YUEDU_DB_PATH", str(BASE_DIR / "yuedu.db")))

# --- Dictionary / segmentation ---
CEDICT_PATH = Path(os.environ.get("YUEDU_CEDICT_PATH", str(BASE_DIR / "cedict_ts.u8")))
JIEBA_DICT_PATH = Path(os.environ.get("YUEDU_JIEBA_DICT_PATH", str(BASE_DIR / "jieba_user_dict.txt")))

# --- LLM ---
LLM_PROVIDER = os.environ.get("YUEDU_LLM_PROVIDER", "anthropic")
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
ANTHROPIC_URL = os.environ.get("YUEDU_ANTHROPIC_URL", "https://api.anthropic.com/v1/messages")
ANTHROPIC_MODEL = os.environ.get("YUEDU_ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
ANTHROPIC_VERSION = "2023-06-01"
OLLAMA_URL = os.environ.get("YUEDU_OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.environ.get("YUEDU_OLLAMA_MODEL", "qwen2.5:7b")
LLM_TIMEOUT = float(os.environ.get("YUEDU_LLM_TIMEOUT", "60"))
LLM_MAX_TOKENS = int(os.environ.get("YUEDU_LLM_MAX_TOKENS", "4000"))

# --- Speech-to-text ---
ELEVENLABS_API_KEY = os.environ.get("ELEVENLABS_API_KEY", "")
STT_URL = os.environ.get("YUEDU_STT_URL", "https://api.elevenlabs.io/v1/speech-to-text")
STT_MODEL = os.environ.get("YUEDU_STT_MODEL", "scribe_v1")
STT_TIMEOUT = float(os.environ.get("YUEDU_STT_TIMEOUT", "300"))

# --- API limits ---
APP_PASSWORD = os.environ.get("YUEDU_PASSWORD", "")
MAX_TEXT_LEN = int(os.environ.get("YUEDU_MAX_TEXT_LEN", "20000"))
MAX_AUDIO_BYTES = int(os.environ.get("YUEDU_MAX_AUDIO_BYTES", str(50 * 1024 * 1024)))
MAX_LOOKUP_PHRASES = 500
RATE_LIMIT_REQUESTS = int(os.environ.get("YUEDU_RATE_LIMIT_REQUESTS", "30"))
RATE_LIMIT_WINDOW = int(os.environ.get("YUEDU_RATE_LIMIT_WINDOW", "60"))
