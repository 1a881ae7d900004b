"""Request a structured audit from the oracle with ordered tier fallback."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import httpx

from .config import AuditConfig, OracleTier
from .errors import AuditUnavailable, IncompleteAuditResult
from .json_tools import parse_json_object
from .normalize import missing_fields
from .ollama_client import ollama_chat
from .prompts import (
    FIELD_CATEGORIES,
    FIELD_REMEDIATION,
    FIELD_SCORES,
    FIELD_VERDICT_NARRATIVE,
    FIELD_VERDICT_SHORT,
    FIELD_VIBE_CHECK,
    build_system_prompt,
    build_user_prompt,
    response_schema,
)

T = TypeVar("T")

LogFn = Callable[[str], None]
ChatFn = Callable[[OracleTier, str, str], Awaitable[str]]

_FIELD_TYPES: Dict[str, type] = {
    FIELD_CATEGORIES: list,
    FIELD_SCORES: dict,
    FIELD_REMEDIATION: list,
    FIELD_VIBE_CHECK: str,
    FIELD_VERDICT_SHORT: str,
    FIELD_VERDICT_NARRATIVE: str,
}


async def run_with_fallback(
    tiers: Sequence[OracleTier],
    attempt: Callable[[OracleTier], Awaitable[T]],
    *,
    log: Optional[LogFn] = None,
) -> Tuple[T, OracleTier]:
    """Try tiers in order; any failure moves to the next tier, never back.

    Raises AuditUnavailable, chained to the last failure, once every tier
    has failed.
    """
    failures: List[Tuple[str, str]] = []
    last_exc: Optional[BaseException] = None
    for idx, tier in enumerate(tiers):
        try:
            result = await attempt(tier)
        except Exception as e:
            detail = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            failures.append((tier.name, detail))
            last_exc = e
            if log is not None:
                if idx + 1 < len(tiers):
                    log(f"[FALLBACK] tier={tier.name} failed ({detail}); trying tier={tiers[idx + 1].name}")
                else:
                    log(f"[ERROR] tier={tier.name} failed ({detail})")
            continue
        return result, tier
    raise AuditUnavailable(failures) from last_exc


def check_conformance(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Reject responses that break the requested schema.

    Mistyped fields raise ValueError. Absent or short required fields raise
    IncompleteAuditResult. Either one counts as a failure of the tier.
    """
    for name, kind in _FIELD_TYPES.items():
        if name in payload and payload[name] is not None and not isinstance(payload[name], kind):
            raise ValueError(f'schema violation: "{name}" must be {kind.__name__}')
    missing = missing_fields(payload)
    if missing:
        raise IncompleteAuditResult(missing)
    return payload


async def request_audit(
    config: AuditConfig,
    repo_url: str,
    context: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    chat: Optional[ChatFn] = None,
    log: Optional[LogFn] = None,
    today: Optional[str] = None,
) -> Tuple[Dict[str, Any], OracleTier]:
    """Return the parsed oracle payload and the tier that produced it."""
    oracle = config.oracle
    system = build_system_prompt(config)
    user = build_user_prompt(config, repo_url, context, today=today)

    if chat is None:
        if client is None:
            raise ValueError("request_audit needs either an httpx client or a chat function")
        schema = response_schema(config.categories)

        async def _ollama_tier_chat(tier: OracleTier, system_text: str, user_text: str) -> str:
            return await ollama_chat(
                client,
                oracle.base_url,
                tier.model,
                system_text,
                user_text,
                temperature=oracle.temperature,
                timeout_s=tier.timeout_s,
                num_predict=oracle.num_predict,
                num_ctx=oracle.num_ctx,
                response_format=schema,
                log=log,
                label=f"audit tier={tier.name}",
            )

        chat = _ollama_tier_chat

    async def attempt(tier: OracleTier) -> Dict[str, Any]:
        raw = await asyncio.wait_for(chat(tier, system, user), timeout=tier.timeout_s)
        return check_conformance(parse_json_object(raw))

    try:
        return await run_with_fallback(oracle.tiers, attempt, log=log)
    except AuditUnavailable as e:
        # The last tier answered, but incompletely.
        if isinstance(e.__cause__, IncompleteAuditResult):
            raise IncompleteAuditResult(e.__cause__.missing) from e
        raise
