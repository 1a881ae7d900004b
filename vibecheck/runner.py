"""Audit pipeline entry points and CLI."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import httpx

from .config import AuditConfig, load_config
from .context_format import format_context
from .errors import AuditError, ConfigError, InvalidRepositoryUrl, RateLimitExceeded
from .evidence import fetch_evidence
from .github_client import GitHubClient
from .locator import parse_repository_url
from .models import AuditResult, RepositoryIdentifier
from .normalize import normalize_audit
from .output import grade_for_total, write_report
from .requestor import request_audit

LogFn = Callable[[str], None]


def _format_duration(seconds: float) -> str:
    """Compact elapsed time for [TIME] lines: 850ms, 2.41s, 1m03.2s."""
    if seconds < 0:
        seconds = 0.0
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m{secs:04.1f}s"
    hours, minutes = divmod(minutes, 60)
    return f"{int(hours)}h{int(minutes):02d}m{secs:04.1f}s"


async def _gather_context(
    repo_url: str,
    access_token: Optional[str],
    config: Optional[AuditConfig],
    log: Optional[LogFn],
    verbose: bool,
    transport: Optional[httpx.AsyncBaseTransport],
) -> Tuple[RepositoryIdentifier, AuditConfig, str]:
    repo = parse_repository_url(repo_url)
    config = config or load_config()
    if not access_token and log is not None:
        log("[WARN] No access token; the anonymous GitHub rate limit applies")

    started = time.monotonic()
    async with GitHubClient(config.hosting, access_token, transport=transport) as gh:
        bundle = await fetch_evidence(gh, repo, config.selection, log=log, verbose=verbose)
    context = format_context(bundle)
    if log is not None:
        log(
            f"[TIME] fetch={_format_duration(time.monotonic() - started)} "
            f"context_bytes={len(context.encode('utf-8', errors='ignore'))}"
        )
    return repo, config, context


async def collect_context(
    repo_url: str,
    access_token: Optional[str] = None,
    *,
    config: Optional[AuditConfig] = None,
    log: Optional[LogFn] = None,
    verbose: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Locate, fetch and format the evidence without consulting the model."""
    _, _, context = await _gather_context(repo_url, access_token, config, log, verbose, transport)
    return context


async def run_audit(
    repo_url: str,
    access_token: Optional[str] = None,
    *,
    config: Optional[AuditConfig] = None,
    log: Optional[LogFn] = None,
    verbose: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AuditResult:
    """Audit one public repository end to end.

    ``transport`` is handed to every httpx client the run creates.
    """
    repo, config, context = await _gather_context(repo_url, access_token, config, log, verbose, transport)

    started = time.monotonic()
    async with httpx.AsyncClient(transport=transport) as client:
        payload, tier = await request_audit(
            config,
            f"https://github.com/{repo.slug}",
            context,
            client=client,
            log=log,
        )
    if log is not None:
        log(f"[TIME] audit={_format_duration(time.monotonic() - started)} tier={tier.name} model={tier.model}")

    return normalize_audit(
        payload,
        repo_name=repo.name,
        model_used=tier.model,
        categories=config.categories,
        policy=config.oracle.score_policy,
    )


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="vibecheck",
        description="Brutal code quality audit of a public GitHub repository using a local Ollama model",
    )
    ap.add_argument("url", help="Repository URL, e.g. https://github.com/owner/repo")
    ap.add_argument(
        "--token",
        default=os.environ.get("GITHUB_TOKEN", ""),
        help="GitHub access token (default: $GITHUB_TOKEN)",
    )
    ap.add_argument("--config", default=None, help="Path to an audit config YAML (default: packaged config)")
    ap.add_argument("--ollama", default=None, help="Override the Ollama base URL from the config")
    ap.add_argument("--out", default="audit-out", help="Output directory for the report and run.log")
    ap.add_argument("--format", choices=("md", "json"), default="md", help="Report format")
    ap.add_argument(
        "--context-only",
        action="store_true",
        help="Print the fetched repository context and exit without calling the model",
    )
    ap.add_argument("--verbose", action="store_true", help="Log per-file selection and fetch details")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    out_root = Path(args.out).resolve()
    run_log_path = out_root / "run.log"

    def _append_log(line: str) -> None:
        run_log_path.parent.mkdir(parents=True, exist_ok=True)
        with run_log_path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def _log(msg: str, *, stderr: bool = False) -> None:
        stream = sys.stderr if stderr or msg.startswith(("[WARN]", "[ERROR]")) else sys.stdout
        print(msg, file=stream)
        _append_log(msg)

    _append_log(f"[RUN] start {time.strftime('%Y-%m-%d %H:%M:%S')} url={args.url}")

    try:
        config = load_config(Path(args.config) if args.config else None)
        if args.ollama:
            config = config.with_oracle_base(args.ollama)
        token = args.token.strip() or None
        if args.context_only:
            context = asyncio.run(
                collect_context(args.url, token, config=config, log=_log, verbose=args.verbose)
            )
            print(context)
            return 0
        result = asyncio.run(run_audit(args.url, token, config=config, log=_log, verbose=args.verbose))
    except (ConfigError, InvalidRepositoryUrl) as e:
        _log(f"[ERROR] {e}", stderr=True)
        return 2
    except RateLimitExceeded as e:
        _log(f"[ERROR] {e}", stderr=True)
        _log(f"[HINT] {e.guidance}", stderr=True)
        return 3
    except AuditError as e:
        _log(f"[ERROR] {e}", stderr=True)
        return 1

    for w in result.warnings:
        _log(f"[WARN] {w}", stderr=True)
    report_path = write_report(out_root, result, args.format)
    _log(
        f"[OK] {result.repo_name}: {result.scores.total}/100 "
        f"(grade {grade_for_total(result.scores.total)}) model={result.model_used}"
    )
    _log(f"[VERDICT] {result.verdict_short}")
    _log(f"[OK] wrote {report_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
