"""Validate and shape oracle responses into AuditResult."""

from __future__ import annotations

import re
from typing import Dict, List, Sequence

from .config import CategorySpec
from .errors import IncompleteAuditResult
from .models import SCORE_KEYS, AuditResult, AuditScores, CategoryAudit, MetricScore
from .prompts import (
    FIELD_CATEGORIES,
    FIELD_REMEDIATION,
    FIELD_SCORES,
    FIELD_VERDICT_NARRATIVE,
    FIELD_VERDICT_SHORT,
    FIELD_VIBE_CHECK,
    REMEDIATION_STEP_COUNT,
)

_LEADING_INT_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def _clamp_int(value: object, low: int, high: int) -> int:
    """Coerce a loosely typed score into [low, high]; unusable values become 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        # Accept "4" and "4/5".
        m = _LEADING_INT_RE.match(value)
        if not m:
            return 0
        number = float(m.group(1))
    else:
        return 0
    return max(low, min(high, int(round(number))))


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _normalize_steps(values: List[object]) -> List[str]:
    out: List[str] = []
    for v in values:
        if isinstance(v, dict):
            s = _text(v.get("step") or v.get("text") or v.get("description"))
        else:
            s = _text(v)
        if s:
            out.append(s)
    return out


def _normalize_metrics(raw: object, labels: Sequence[str]) -> List[MetricScore]:
    if not isinstance(raw, list):
        return []
    metrics: List[MetricScore] = []
    for idx, m in enumerate(raw):
        if not isinstance(m, dict):
            continue
        label = _text(m.get("label") or m.get("name"))
        if not label and idx < len(labels):
            label = labels[idx]
        metrics.append(
            MetricScore(
                label=label or f"Metric {idx + 1}",
                score=_clamp_int(m.get("score"), 0, 5),
                rationale=_text(m.get("rationale") or m.get("description")),
            )
        )
    return metrics


def _normalize_categories(raw: List[object], specs: Sequence[CategorySpec]) -> List[CategoryAudit]:
    out: List[CategoryAudit] = []
    for idx, c in enumerate(raw):
        if not isinstance(c, dict):
            continue
        spec = specs[idx] if idx < len(specs) else None
        title = _text(c.get("title")) or (spec.title if spec else f"Category {idx + 1}")
        out.append(CategoryAudit(title=title, metrics=_normalize_metrics(c.get("metrics"), spec.metrics if spec else ())))
    return out


def _match_categories(
    categories: Sequence[CategoryAudit],
    specs: Sequence[CategorySpec],
) -> Dict[str, CategoryAudit]:
    """Map score keys to categories by title, then by position."""
    matched: Dict[str, CategoryAudit] = {}
    by_title = {c.title.strip().lower(): c for c in categories}
    for idx, spec in enumerate(specs):
        cat = by_title.get(spec.title.strip().lower())
        if cat is None and idx < len(categories):
            cat = categories[idx]
        if cat is not None:
            matched[spec.key] = cat
    return matched


def _apply_score_policy(
    scores: AuditScores,
    categories: Sequence[CategoryAudit],
    specs: Sequence[CategorySpec],
    policy: str,
    warnings: List[str],
) -> AuditScores:
    if policy == "trust":
        return scores

    matched = _match_categories(categories, specs)
    if policy == "recompute":
        values = {
            key: (min(20, matched[key].metric_total) if key in matched else getattr(scores, key))
            for key in SCORE_KEYS
        }
        return AuditScores(total=min(100, sum(values.values())), **values)

    for key in SCORE_KEYS:
        cat = matched.get(key)
        if cat is None:
            warnings.append(f'No category found for score "{key}"; its total cannot be checked')
            continue
        reported = getattr(scores, key)
        if cat.metric_total != reported:
            warnings.append(f"{cat.title}: metrics sum to {cat.metric_total} but the reported total is {reported}")
    category_sum = sum(scores.category_totals())
    if category_sum != scores.total:
        warnings.append(f"Category totals sum to {category_sum} but the reported grand total is {scores.total}")
    return scores


def missing_fields(payload: dict) -> List[str]:
    """Required fields that are absent, empty or short; empty when complete."""
    missing: List[str] = []
    if not isinstance(payload.get(FIELD_SCORES), dict):
        missing.append(FIELD_SCORES)
    categories_raw = payload.get(FIELD_CATEGORIES)
    if not isinstance(categories_raw, list) or not categories_raw:
        missing.append(FIELD_CATEGORIES)
    if not _text(payload.get(FIELD_VERDICT_SHORT)):
        missing.append(FIELD_VERDICT_SHORT)
    steps_raw = payload.get(FIELD_REMEDIATION)
    if not isinstance(steps_raw, list):
        missing.append(FIELD_REMEDIATION)
    else:
        count = len(_normalize_steps(steps_raw))
        if count < REMEDIATION_STEP_COUNT:
            missing.append(f"{FIELD_REMEDIATION} (got {count} of {REMEDIATION_STEP_COUNT})")
    return missing


def normalize_audit(
    payload: dict,
    *,
    repo_name: str,
    model_used: str,
    categories: Sequence[CategorySpec],
    policy: str = "trust",
) -> AuditResult:
    """Build an AuditResult, refusing to invent the verdict, plan or scores."""
    if not isinstance(payload, dict):
        raise IncompleteAuditResult(["<response object>"])

    missing = missing_fields(payload)
    if missing:
        raise IncompleteAuditResult(missing)
    scores_raw = payload[FIELD_SCORES]
    categories_raw = payload[FIELD_CATEGORIES]
    verdict_short = _text(payload.get(FIELD_VERDICT_SHORT))
    steps = _normalize_steps(payload[FIELD_REMEDIATION])

    warnings: List[str] = []
    if len(steps) > REMEDIATION_STEP_COUNT:
        warnings.append(f"Model returned {len(steps)} remediation steps; kept the first {REMEDIATION_STEP_COUNT}")
        steps = steps[:REMEDIATION_STEP_COUNT]

    cats = _normalize_categories(categories_raw, categories)
    values = {key: _clamp_int(scores_raw.get(key), 0, 20) for key in SCORE_KEYS}
    if "total" in scores_raw and scores_raw.get("total") is not None:
        total = _clamp_int(scores_raw.get("total"), 0, 100)
    else:
        total = sum(values.values())
        warnings.append("Grand total missing; derived from the category totals")
    scores = _apply_score_policy(AuditScores(total=total, **values), cats, categories, policy, warnings)

    return AuditResult(
        repo_name=repo_name,
        verdict_short=verdict_short,
        verdict_narrative=_text(payload.get(FIELD_VERDICT_NARRATIVE)),
        categories=cats,
        vibe_check_narrative=_text(payload.get(FIELD_VIBE_CHECK)),
        remediation_steps=steps,
        scores=scores,
        model_used=model_used,
        warnings=warnings,
    )
