"""Pick manifests and representative source files from a repository tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .config import SelectionRules
from .models import TreeEntry

SortKey = Callable[[TreeEntry], Tuple]


def largest_first(entry: TreeEntry) -> Tuple:
    """Size descending as a proxy for code density; path breaks ties."""
    return (-entry.size, entry.path)


@dataclass(frozen=True)
class Selection:
    manifests: List[TreeEntry]
    sources: List[TreeEntry]


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


def select_manifests(entries: Sequence[TreeEntry], rules: SelectionRules) -> List[TreeEntry]:
    """Blobs whose base name is a known manifest, in tree order."""
    names = set(rules.manifest_names)
    matched = [e for e in entries if e.basename in names]
    return matched[: rules.max_manifests]


def select_sources(
    entries: Sequence[TreeEntry],
    rules: SelectionRules,
    *,
    sort_key: SortKey = largest_first,
) -> List[TreeEntry]:
    """Source-like blobs strictly inside the size band, ranked by sort_key."""
    exts = set(rules.source_extensions)
    candidates = [
        e
        for e in entries
        if _extension(e.path) in exts and rules.source_min_bytes < e.size < rules.source_max_bytes
    ]
    ranked = sorted(candidates, key=sort_key)
    return ranked[: rules.max_sources]


def select_evidence(
    entries: Sequence[TreeEntry],
    rules: SelectionRules,
    *,
    sort_key: SortKey = largest_first,
) -> Selection:
    """Run the filter -> sort -> take pipeline over an immutable snapshot."""
    snapshot = tuple(entries)
    return Selection(
        manifests=select_manifests(snapshot, rules),
        sources=select_sources(snapshot, rules, sort_key=sort_key),
    )
