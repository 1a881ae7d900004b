"""Gather the evidence bundle for one repository."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import SelectionRules
from .github_client import GitHubClient
from .models import (
    CommitRecord,
    EvidenceBundle,
    README_NOT_FOUND,
    RepositoryIdentifier,
    TreeEntry,
)
from .selector import select_evidence

LogFn = Callable[[str], None]


def truncate_lines(text: str, max_lines: int) -> str:
    """Keep the first max_lines lines and say how many were dropped."""
    lines = text.splitlines()
    if len(lines) <= max_lines:
        return text
    omitted = len(lines) - max_lines
    return "\n".join(lines[:max_lines]) + f"\n...(truncated, {omitted} more lines)"


def parse_commit(raw: Dict[str, Any]) -> CommitRecord:
    commit = raw.get("commit") or {}
    author = commit.get("author") or {}
    verification = commit.get("verification") or {}
    message = str(commit.get("message") or "").strip()
    return CommitRecord(
        sha=str(raw.get("sha") or "")[:7],
        date=str(author.get("date") or "").split("T", 1)[0],
        author=str(author.get("name") or "unknown"),
        verified=bool(verification.get("verified")),
        message=message.splitlines()[0] if message else "",
    )


def parse_tree(payload: Dict[str, Any]) -> List[TreeEntry]:
    """Blob entries of a recursive tree listing, in API order."""
    entries: List[TreeEntry] = []
    for item in payload.get("tree") or []:
        if not isinstance(item, dict) or item.get("type") != "blob":
            continue
        path = item.get("path")
        if not isinstance(path, str) or not path:
            continue
        size = item.get("size")
        entries.append(TreeEntry(path=path, size=size if isinstance(size, int) else 0))
    return entries


async def _readme(client: GitHubClient, repo: RepositoryIdentifier, log: Optional[LogFn]) -> str:
    try:
        return await client.get_readme(repo)
    except Exception as e:
        if log is not None:
            log(f"[WARN] README unavailable: {type(e).__name__}: {e}")
        return README_NOT_FOUND


async def _commits(
    client: GitHubClient,
    repo: RepositoryIdentifier,
    limit: int,
    log: Optional[LogFn],
) -> Optional[List[CommitRecord]]:
    try:
        raw = await client.get_commits(repo, per_page=limit)
        return [parse_commit(c) for c in raw[:limit] if isinstance(c, dict)]
    except Exception as e:
        if log is not None:
            log(f"[WARN] Commit log unavailable: {type(e).__name__}: {e}")
        return None


async def _tree(
    client: GitHubClient,
    repo: RepositoryIdentifier,
    ref: str,
    log: Optional[LogFn],
) -> Optional[List[TreeEntry]]:
    try:
        payload = await client.get_tree(repo, ref)
    except Exception as e:
        if log is not None:
            log(f"[WARN] File tree unavailable: {type(e).__name__}: {e}")
        return None
    if payload.get("truncated") and log is not None:
        log("[WARN] Tree listing was truncated by the API; selection sees a partial tree")
    return parse_tree(payload)


async def _file_text(
    client: GitHubClient,
    repo: RepositoryIdentifier,
    path: str,
    log: Optional[LogFn],
    verbose: bool,
) -> Optional[str]:
    if verbose and log is not None:
        log(f"[FETCH FILE] {path}")
    try:
        return await client.get_file_text(repo, path)
    except Exception as e:
        if log is not None:
            log(f"[SKIP] {path} fetch_error={type(e).__name__}")
        return None


async def _fetch_files(
    client: GitHubClient,
    repo: RepositoryIdentifier,
    paths: Sequence[str],
    log: Optional[LogFn],
    verbose: bool,
) -> List[Tuple[str, Optional[str]]]:
    # gather keeps argument order, so output follows selector order.
    texts = await asyncio.gather(*(_file_text(client, repo, p, log, verbose) for p in paths))
    return list(zip(paths, texts))


async def fetch_evidence(
    client: GitHubClient,
    repo: RepositoryIdentifier,
    rules: SelectionRules,
    *,
    log: Optional[LogFn] = None,
    verbose: bool = False,
) -> EvidenceBundle:
    """Fetch metadata (fatal on failure), then README/commits/tree concurrently,
    then the selected manifest and source files concurrently."""
    if log is not None:
        log(f"[FETCH] metadata {repo.slug}")
    meta = await client.get_repository(repo)
    branch = str(meta.get("default_branch") or "HEAD")

    if log is not None:
        log(f"[FETCH] readme, commits, tree@{branch}")
    readme, commits, tree = await asyncio.gather(
        _readme(client, repo, log),
        _commits(client, repo, rules.max_commits, log),
        _tree(client, repo, branch, log),
    )

    bundle = EvidenceBundle(repo=repo, default_branch=branch, readme=readme, commit_log=commits)
    if tree is None:
        return bundle

    paths = [e.path for e in tree]
    bundle.file_tree = paths[: rules.max_tree_entries]
    bundle.omitted_files = max(0, len(paths) - rules.max_tree_entries)

    selection = select_evidence(tree, rules)
    if log is not None:
        log(
            f"[SELECT] blobs={len(tree)} manifests={len(selection.manifests)} "
            f"sources={len(selection.sources)}"
        )
    if verbose and log is not None:
        for e in selection.manifests:
            log(f"[SELECT FILE] manifest {e.path}")
        for e in selection.sources:
            log(f"[SELECT FILE] source {e.path} bytes={e.size}")

    manifest_paths = [e.path for e in selection.manifests]
    source_paths = [e.path for e in selection.sources]
    fetched = await _fetch_files(client, repo, manifest_paths + source_paths, log, verbose)
    for path, text in fetched[: len(manifest_paths)]:
        if text is not None:
            bundle.manifest_files[path] = text
    for path, text in fetched[len(manifest_paths):]:
        if text is not None:
            bundle.source_samples[path] = truncate_lines(text, rules.max_sample_lines)
    return bundle
