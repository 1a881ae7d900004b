"""Async client for the Ollama chat endpoint."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx


def _prompt_size(*parts: str) -> str:
    chars = sum(len(p) for p in parts)
    size = sum(len(p.encode("utf-8", errors="ignore")) for p in parts)
    return f"prompt_chars={chars} prompt_bytes={size}"


async def ollama_chat(
    client: httpx.AsyncClient,
    base_url: str,
    model: str,
    system: str,
    user: str,
    *,
    temperature: float,
    timeout_s: float,
    num_predict: int,
    num_ctx: int,
    response_format: Optional[Dict[str, Any]] = None,
    log: Optional[Callable[[str], None]] = None,
    label: str = "request",
) -> str:
    """POST one non-streaming /api/chat request and return the reply text.

    ``response_format`` is passed through as Ollama's ``format`` field, so a
    JSON schema constrains the reply.
    """
    if log is not None:
        log(f"[LLM] {label} model={model} {_prompt_size(system, user)} num_ctx={num_ctx} num_predict={num_predict}")
    body: Dict[str, Any] = {
        "model": model,
        "stream": False,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "options": {"temperature": temperature, "num_predict": num_predict, "num_ctx": num_ctx},
    }
    if response_format is not None:
        body["format"] = response_format

    resp = await client.post(f"{base_url}/api/chat", json=body, timeout=timeout_s)
    resp.raise_for_status()
    message = resp.json().get("message") or {}
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise RuntimeError(f"Ollama returned an empty response for model {model}")
    return content
