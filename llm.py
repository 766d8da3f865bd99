"""LLM interaction (Anthropic or Ollama) and numbered-batch response parsing."""
import json
import re as _re
from typing import Dict, List, Optional

import httpx

import config
from log import get_logger

logger = get_logger("yuedu.llm")

# "12. foo", "12) foo", "12、foo", "12: foo"
_NUMBERED_LINE = _re.compile(r"^\s*(\d+)\s*[.)、:：]\s*(.+?)\s*$")


# --- Chat ---

def _http_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


def _unexpected_body(provider: str) -> None:
    logger.warning("LLM reply has unexpected shape", extra={"component": "llm", "provider": provider})


def _anthropic_text(data) -> Optional[str]:
    """Join the text blocks of a Messages API reply; None if the body is malformed."""
    if not isinstance(data, dict):
        return None
    blocks = data.get("content", [])
    if not isinstance(blocks, list) or not all(isinstance(b, dict) for b in blocks):
        return None
    return "".join(str(b.get("text", "")) for b in blocks if b.get("type") == "text")


def _ollama_text(data) -> Optional[str]:
    if not isinstance(data, dict) or not isinstance(data.get("message"), dict):
        return None
    content = data["message"].get("content", "")
    return content if isinstance(content, str) else None


async def _anthropic_chat(messages: list, system: Optional[str], max_tokens: int,
                          temperature: float, timeout: float) -> Optional[str]:
    if not config.ANTHROPIC_API_KEY:
        logger.warning("Anthropic API key not configured", extra={"component": "llm", "provider": "anthropic"})
        return None
    body = {
        "model": config.ANTHROPIC_MODEL,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": messages,
    }
    if system:
        body["system"] = system
    async with _http_client(timeout) as client:
        resp = await client.post(
            config.ANTHROPIC_URL,
            headers={
                "x-api-key": config.ANTHROPIC_API_KEY,
                "anthropic-version": config.ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            json=body,
        )
    if resp.status_code != 200:
        logger.warning("LLM API error", extra={"component": "llm", "provider": "anthropic",
                                               "status_code": resp.status_code})
        return None
    text = _anthropic_text(resp.json())
    if text is None:
        _unexpected_body("anthropic")
    return text


async def _ollama_chat(messages: list, system: Optional[str], max_tokens: int,
                       temperature: float, timeout: float) -> Optional[str]:
    if system:
        messages = [{"role": "system", "content": system}] + list(messages)
    async with _http_client(timeout) as client:
        resp = await client.post(
            f"{config.OLLAMA_URL}/api/chat",
            json={
                "model": config.OLLAMA_MODEL,
                "messages": messages,
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
        )
    if resp.status_code != 200:
        logger.warning("LLM API error", extra={"component": "llm", "provider": "ollama",
                                               "status_code": resp.status_code})
        return None
    text = _ollama_text(resp.json())
    if text is None:
        _unexpected_body("ollama")
    return text


async def llm_chat(messages: list, system: Optional[str] = None, max_tokens: Optional[int] = None,
                   temperature: float = 0.3, timeout: Optional[float] = None) -> Optional[str]:
    """Call the configured LLM and return the reply text.

    Returns None when the provider is not configured, answers with a
    non-200 status, or sends a body of the wrong shape. Transport failures
    raise httpx.HTTPError; a non-JSON body raises ValueError.
    """
    max_tokens = max_tokens or config.LLM_MAX_TOKENS
    timeout = timeout or config.LLM_TIMEOUT
    if config.LLM_PROVIDER == "ollama":
        return await _ollama_chat(messages, system, max_tokens, temperature, timeout)
    return await _anthropic_chat(messages, system, max_tokens, temperature, timeout)


async def check_llm_connectivity() -> bool:
    if config.LLM_PROVIDER != "ollama":
        return bool(config.ANTHROPIC_API_KEY)
    try:
        async with _http_client(10) as client:
            resp = await client.get(f"{config.OLLAMA_URL}/api/tags")
            return resp.status_code == 200
    except httpx.HTTPError:
        logger.warning("Ollama not reachable", extra={"component": "llm", "provider": "ollama"})
        return False


# --- Numbered batch protocol ---

def numbered_prompt(items: List[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def parse_json_array(text: str) -> Optional[list]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _re.search(r'\[.*\]', text, _re.DOTALL)
        if not match:
            return None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return None
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        data = data["items"]
    return data if isinstance(data, list) else None


def _coerce_index(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_indexed_response(text: Optional[str], count: int) -> Dict[int, dict]:
    """Correlate a batched reply with request items 1..count.

    Prefers a JSON array whose objects echo an ``index`` field. Otherwise
    falls back to ``N. answer`` lines, matched on the leading integer so
    reordered or dropped lines do not shift the remaining answers. Fallback
    answers come back as ``{"text": ...}``.
    """
    results: Dict[int, dict] = {}
    if not text:
        return results

    array = parse_json_array(text)
    if array:
        for obj in array:
            if not isinstance(obj, dict):
                continue
            idx = _coerce_index(obj.get("index"))
            if idx is not None and 1 <= idx <= count and idx not in results:
                results[idx] = obj
        if results:
            return results

    for line in text.splitlines():
        match = _NUMBERED_LINE.match(line)
        if not match:
            continue
        idx = int(match.group(1))
        if 1 <= idx <= count and idx not in results:
            results[idx] = {"text": match.group(2)}
    return results
