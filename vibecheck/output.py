"""Render audit results as Markdown or JSON reports."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import List

from .models import SCORE_KEYS, AuditResult

SCORE_LABELS = {
    "architecture": "Architecture",
    "core": "Core Engineering",
    "performance": "Performance",
    "security": "Security",
    "qa": "QA & Ops",
}

_GRADE_BANDS = ((90, "A+"), (80, "A"), (70, "B"), (50, "C"), (30, "D"))
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def grade_for_total(total: int) -> str:
    for floor, grade in _GRADE_BANDS:
        if total >= floor:
            return grade
    return "F"


def _or_placeholder(text: str, placeholder: str = "_Not provided._") -> str:
    return text if text.strip() else placeholder


def render_markdown(result: AuditResult) -> str:
    """Deterministic Markdown export of an audit."""
    lines: List[str] = []
    scores = result.scores
    lines.append(f"# Code Quality Audit: {result.repo_name}\n")
    lines.append(f"**Verdict:** {result.verdict_short}\n")
    lines.append(f"**Score:** {scores.total}/100 (grade {grade_for_total(scores.total)})\n")

    lines.append("| Category | Score |")
    lines.append("| --- | --- |")
    for key in SCORE_KEYS:
        lines.append(f"| {SCORE_LABELS[key]} | {getattr(scores, key)}/20 |")
    lines.append(f"| **Total** | **{scores.total}/100** |")

    lines.append("\n## Phase 1: The 20-Point Matrix\n")
    for cat in result.categories:
        lines.append(f"### {cat.title}\n")
        for idx, m in enumerate(cat.metrics, start=1):
            rationale = f": {m.rationale}" if m.rationale else ""
            lines.append(f"{idx}. **[{m.score}/5] {m.label}**{rationale}")
        lines.append("")

    lines.append("## Phase 2: Vibe Check\n")
    lines.append(_or_placeholder(result.vibe_check_narrative) + "\n")

    lines.append("## Phase 3: The Pareto Fix Plan\n")
    for idx, step in enumerate(result.remediation_steps, start=1):
        lines.append(f"{idx}. {step}")
    lines.append("")

    lines.append("## Final Verdict\n")
    lines.append(result.verdict_short + "\n")
    if result.verdict_narrative.strip():
        lines.append(result.verdict_narrative + "\n")

    if result.warnings:
        lines.append("## Validation Warnings\n")
        for w in result.warnings:
            lines.append(f"- {w}")
        lines.append("")

    lines.append(f"_Model: {result.model_used}_\n")
    return "\n".join(lines)


def report_filename(result: AuditResult, fmt: str) -> str:
    safe = _UNSAFE_NAME_RE.sub("_", result.repo_name).strip("_") or "repository"
    return f"AUDIT_{safe}.{'json' if fmt == 'json' else 'md'}"


def write_report(out_dir: Path, result: AuditResult, fmt: str = "md") -> Path:
    """Write the audit report into out_dir and return its path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / report_filename(result, fmt)
    if fmt == "json":
        out_path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    else:
        out_path.write_text(render_markdown(result), encoding="utf-8")
    return out_path
