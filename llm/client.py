"""
llm/client.py

Chat-completion client.
- Provides a single entrypoint: call_llm(system_prompt, user_prompt, history=None)
- Sends an OpenAI-compatible chat completion request (OpenAI or DeepSeek) or an Ollama chat request
- History is a list of {'role': 'user'|'assistant', 'content': str}
- Raises LLMError on transport errors, non-2xx responses and empty completions

Environment variables:
- LLM_PROVIDER       (openai | deepseek | ollama) default openai
- OPENAI_API_URL     (default: https://api.openai.com)
- OPENAI_API_KEY     (required for openai)
- OPENAI_MODEL       (default: gpt-4.1-nano)
- DEEPSEEK_API_URL   (default: https://api.deepseek.com)
- DEEPSEEK_API_KEY   (required for deepseek)
- DEEPSEEK_MODEL     (default: deepseek-chat)
- OLLAMA_BASE_URL    (default: http://localhost:11434)
- OLLAMA_MODEL       (default: qwen2.5:3b)
- LLM_TEMPERATURE    (default: 0.4)
- LLM_MAX_TOKENS     (default: 300)
- LLM_OFFLINE        (set to 1/true to stub responses without calling the API)
"""

import logging
import os

import requests

from util.exceptions import LLMError
from util.http import response_detail

logger = logging.getLogger(__name__)

_OPENAI_COMPATIBLE = {
    "openai": ("OPENAI_API_URL", "https://api.openai.com", "OPENAI_API_KEY", "OPENAI_MODEL", "gpt-4.1-nano"),
    "deepseek": ("DEEPSEEK_API_URL", "https://api.deepseek.com", "DEEPSEEK_API_KEY", "DEEPSEEK_MODEL", "deepseek-chat"),
}


def _generation_params():
    try:
        temperature = float(os.getenv("LLM_TEMPERATURE", "0.4"))
    except ValueError:
        temperature = 0.4
    try:
        max_tokens = int(os.getenv("LLM_MAX_TOKENS", "300"))
    except ValueError:
        max_tokens = 300
    return temperature, max_tokens


def is_offline():
    return os.getenv("LLM_OFFLINE", "").strip().lower() in {"1", "true", "yes"}


def provider_key_env():
    """Name of the API-key variable the selected provider needs, or None (ollama)."""
    provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    entry = _OPENAI_COMPATIBLE.get(provider)
    return entry[2] if entry else None


def _post(url, headers, payload, provider):
    try:
        resp = requests.post(url, headers=headers, json=payload, timeout=30)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as exc:
        logger.error("%s chat call failed: %s", provider, response_detail(exc))
        raise LLMError(f"{provider} request failed") from exc
    except ValueError as exc:
        raise LLMError(f"{provider} returned invalid JSON") from exc


def call_llm(system_prompt, user_prompt, history=None):
    """
    Call an LLM with system + user prompts and optional history.
    Provider is selected by LLM_PROVIDER env: 'openai' (default), 'deepseek' or 'ollama'.

    Args:
        system_prompt: Persistent system instruction (str)
        user_prompt: Per-turn prompt constructed by the orchestrator (str)
        history: List of past messages as dicts: {'role': 'user'|'assistant', 'content': str}

    Returns:
        Model response text (str), trimmed.
    """
    provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    temperature, max_tokens = _generation_params()

    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    if history:
        messages.extend(history)
    messages.append({"role": "user", "content": user_prompt})

    if is_offline():
        preview = (user_prompt or "").strip().splitlines()[0][:120] if (user_prompt or "").strip() else ""
        return f"[offline] {preview}" if preview else "[offline] OK"

    if provider == "ollama":
        base = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/")
        model = os.getenv("OLLAMA_MODEL", "qwen2.5:3b")
        data = _post(
            f"{base}/api/chat",
            {"Content-Type": "application/json", "Accept": "application/json"},
            {
                "model": model,
                "messages": messages,
                "stream": False,
                "options": {"temperature": temperature, "num_ctx": 4096, "num_predict": max_tokens},
            },
            "ollama",
        )
        content = (data.get("message") or {}).get("content", "")
    else:
        if provider not in _OPENAI_COMPATIBLE:
            raise LLMError(f"Unknown LLM_PROVIDER: {provider}")
        url_env, url_default, key_env, model_env, model_default = _OPENAI_COMPATIBLE[provider]
        base = os.getenv(url_env, url_default)
        key = os.getenv(key_env, "")
        if not key:
            raise LLMError(f"{key_env} is not set")
        data = _post(
            f"{base.rstrip('/')}/v1/chat/completions",
            {"Authorization": f"Bearer {key}", "Content-Type": "application/json", "Accept": "application/json"},
            {
                "model": os.getenv(model_env, model_default),
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            provider,
        )
        content = (
            (data.get("choices") or [{}])[0]
            .get("message", {})
            .get("content", "")
        )

    content = (content or "").strip()
    if not content:
        raise LLMError(f"{provider} returned an empty completion")
    return content
