"""Serialize an evidence bundle into the document sent to the model."""

from __future__ import annotations

import re
from typing import Dict, List

from .models import COMMITS_UNAVAILABLE, TREE_UNAVAILABLE, EvidenceBundle

SECTION_FILE_TREE = "[FILE TREE]"
SECTION_COMMITS = "[COMMITS]"
SECTION_MANIFESTS = "[MANIFEST FILES]"
SECTION_SOURCES = "[SOURCE SAMPLES]"
SECTION_README = "[README]"

SECTION_ORDER = (
    SECTION_FILE_TREE,
    SECTION_COMMITS,
    SECTION_MANIFESTS,
    SECTION_SOURCES,
    SECTION_README,
)

NONE_FOUND = "[None found]"

_LABEL_RE = re.compile("|".join(re.escape(label) for label in SECTION_ORDER))


def _quote_labels(text: str) -> str:
    """Rewrite section labels quoted inside fetched content as (LABEL)."""
    return _LABEL_RE.sub(lambda m: "(" + m.group(0)[1:-1] + ")", text)


def _file_tree_block(bundle: EvidenceBundle) -> str:
    if bundle.file_tree is None:
        return TREE_UNAVAILABLE
    if not bundle.file_tree:
        return NONE_FOUND
    text = "\n".join(bundle.file_tree)
    if bundle.omitted_files:
        text += f"\n... ({bundle.omitted_files} more files)"
    return text


def _commits_block(bundle: EvidenceBundle) -> str:
    if bundle.commit_log is None:
        return COMMITS_UNAVAILABLE
    if not bundle.commit_log:
        return NONE_FOUND
    return "\n".join(c.render() for c in bundle.commit_log)


def _files_block(files: Dict[str, str], label: str) -> str:
    if not files:
        return NONE_FOUND
    parts: List[str] = []
    for path, content in files.items():
        parts.append(f"--- {label}{path} ---\n{content.rstrip()}")
    return "\n\n".join(parts)


def format_context(bundle: EvidenceBundle) -> str:
    """Render the fixed, labeled sections in a stable order."""
    blocks = {
        SECTION_FILE_TREE: _file_tree_block(bundle),
        SECTION_COMMITS: _commits_block(bundle),
        SECTION_MANIFESTS: _files_block(bundle.manifest_files, ""),
        SECTION_SOURCES: _files_block(bundle.source_samples, "SOURCE SAMPLE: "),
        SECTION_README: bundle.readme.rstrip() or NONE_FOUND,
    }
    lines = [f"REPO CONTEXT: {bundle.repo.slug} (default branch: {bundle.default_branch})", ""]
    for label in SECTION_ORDER:
        lines.append(label)
        lines.append(_quote_labels(blocks[label]))
        lines.append("")
    return "\n".join(lines)
