"""Build the oracle instructions and response schema from configuration."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional, Sequence

from .config import AuditConfig, CategorySpec
from .errors import ConfigError
from .models import SCORE_KEYS

FIELD_CATEGORIES = "categories"
FIELD_SCORES = "scores"
FIELD_VIBE_CHECK = "vibe_check"
FIELD_REMEDIATION = "remediation_steps"
FIELD_VERDICT_SHORT = "verdict_short"
FIELD_VERDICT_NARRATIVE = "verdict_narrative"

REMEDIATION_STEP_COUNT = 10


def render_rubric(categories: Sequence[CategorySpec]) -> str:
    lines = []
    for idx, cat in enumerate(categories, start=1):
        lines.append(f'{idx}. {cat.title} (scores.{cat.key})')
        for metric in cat.metrics:
            lines.append(f"   - {metric}")
    return "\n".join(lines)


def build_system_prompt(config: AuditConfig) -> str:
    return config.system_prompt.replace("{rubric}", render_rubric(config.categories))


def build_user_prompt(config: AuditConfig, repo_url: str, context: str, today: Optional[str] = None) -> str:
    """Restate the target, embed the evidence and pin today's date."""
    today = today or time.strftime("%Y-%m-%d")
    try:
        return config.user_prompt.format(repo_url=repo_url, context=context, today=today)
    except (KeyError, IndexError) as e:
        raise ConfigError(f"prompts.user has an unknown placeholder: {e}") from e


def _str() -> Dict[str, Any]:
    return {"type": "string"}


def response_schema(categories: Sequence[CategorySpec]) -> Dict[str, Any]:
    """JSON schema handed to the model as its structured-output constraint."""
    metric = {
        "type": "object",
        "properties": {
            "label": _str(),
            "score": {"type": "integer", "minimum": 0, "maximum": 5},
            "rationale": _str(),
        },
        "required": ["label", "score", "rationale"],
    }
    category = {
        "type": "object",
        "properties": {
            "title": {"type": "string", "enum": [c.title for c in categories]},
            "metrics": {"type": "array", "items": metric, "minItems": 4, "maxItems": 4},
        },
        "required": ["title", "metrics"],
    }
    score_props: Dict[str, Any] = {k: {"type": "integer", "minimum": 0, "maximum": 20} for k in SCORE_KEYS}
    score_props["total"] = {"type": "integer", "minimum": 0, "maximum": 100}
    return {
        "type": "object",
        "properties": {
            FIELD_CATEGORIES: {
                "type": "array",
                "items": category,
                "minItems": len(categories),
                "maxItems": len(categories),
            },
            FIELD_SCORES: {
                "type": "object",
                "properties": score_props,
                "required": list(score_props),
            },
            FIELD_VIBE_CHECK: _str(),
            FIELD_REMEDIATION: {
                "type": "array",
                "items": _str(),
                "minItems": REMEDIATION_STEP_COUNT,
                "maxItems": REMEDIATION_STEP_COUNT,
            },
            FIELD_VERDICT_SHORT: _str(),
            FIELD_VERDICT_NARRATIVE: _str(),
        },
        "required": [
            FIELD_CATEGORIES,
            FIELD_SCORES,
            FIELD_VIBE_CHECK,
            FIELD_REMEDIATION,
            FIELD_VERDICT_SHORT,
            FIELD_VERDICT_NARRATIVE,
        ],
    }
