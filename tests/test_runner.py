"""End-to-end audits against fake GitHub and Ollama services."""

from __future__ import annotations

import asyncio
import json
from typing import List

import pytest

from tests._fixtures.fake_services import make_audit_payload
from vibecheck.errors import (
    AuditUnavailable,
    IncompleteAuditResult,
    InvalidRepositoryUrl,
    RateLimitExceeded,
    RepositoryNotFound,
)
from vibecheck.runner import _format_duration, collect_context, run_audit

URL = "https://github.com/acme/widget"


def _audit(services, config, url=URL, token=None, log=None):
    return asyncio.run(run_audit(url, token, config=config, log=log, transport=services.transport()))


def test_primary_model_audit(services, config) -> None:
    services.oracle["qwen2.5-coder:32b"] = json.dumps(make_audit_payload())
    result = _audit(services, config)
    assert result.repo_name == "widget"
    assert result.model_used == "qwen2.5-coder:32b"
    assert result.scores.total == 60
    assert services.oracle_models == ["qwen2.5-coder:32b"]


def test_secondary_model_after_primary_failure(services, config) -> None:
    services.oracle["qwen2.5-coder:32b"] = 503
    services.oracle["qwen2.5-coder:7b"] = json.dumps(make_audit_payload(metric_score=4))
    logs: List[str] = []
    result = _audit(services, config, log=logs.append)
    assert result.model_used == "qwen2.5-coder:7b"
    assert result.scores.total == 80
    assert services.oracle_models == ["qwen2.5-coder:32b", "qwen2.5-coder:7b"]
    assert any(line.startswith("[FALLBACK]") for line in logs)


def test_missing_repository_never_reaches_the_model(services, config) -> None:
    services.repo_status = 404
    with pytest.raises(RepositoryNotFound):
        _audit(services, config)
    assert services.oracle_models == []
    assert len(services.github_requests) == 1


def test_anonymous_rate_limit(services, config) -> None:
    services.repo_status = 403
    with pytest.raises(RateLimitExceeded) as err:
        _audit(services, config)
    assert err.value.authenticated is False
    assert "token" in err.value.guidance
    assert services.oracle_models == []


def test_invalid_url_makes_no_requests(services, config) -> None:
    with pytest.raises(InvalidRepositoryUrl):
        _audit(services, config, url="https://gitlab.com/acme/widget")
    assert services.requests == []


def test_all_tiers_failing(services, config) -> None:
    with pytest.raises(AuditUnavailable):
        _audit(services, config)
    assert services.oracle_models == ["qwen2.5-coder:32b", "qwen2.5-coder:7b"]


def test_incomplete_primary_answer_falls_back(services, config) -> None:
    payload = make_audit_payload()
    del payload["scores"]
    services.oracle["qwen2.5-coder:32b"] = json.dumps(payload)
    services.oracle["qwen2.5-coder:7b"] = json.dumps(make_audit_payload())
    result = _audit(services, config)
    assert result.model_used == "qwen2.5-coder:7b"
    assert services.oracle_models == ["qwen2.5-coder:32b", "qwen2.5-coder:7b"]


def test_incomplete_answer_on_both_tiers(services, config) -> None:
    payload = make_audit_payload()
    del payload["verdict_short"]
    services.oracle["qwen2.5-coder:32b"] = json.dumps(payload)
    services.oracle["qwen2.5-coder:7b"] = json.dumps(payload)
    with pytest.raises(IncompleteAuditResult) as err:
        _audit(services, config)
    assert err.value.missing == ["verdict_short"]
    assert services.oracle_models == ["qwen2.5-coder:32b", "qwen2.5-coder:7b"]


def test_degraded_evidence_still_audits(services, config) -> None:
    services.readme = None
    services.commits_status = 500
    services.tree_status = 500
    services.oracle["qwen2.5-coder:32b"] = json.dumps(make_audit_payload())
    result = _audit(services, config)
    assert result.model_used == "qwen2.5-coder:32b"
    user_prompt = services.oracle_payloads[0]["messages"][1]["content"]
    assert "[No README found]" in user_prompt
    assert "[Could not fetch commits]" in user_prompt
    assert "[Could not fetch file tree]" in user_prompt


def test_context_reaches_the_model(services, config) -> None:
    services.oracle["qwen2.5-coder:32b"] = json.dumps(make_audit_payload())
    _audit(services, config)
    user_prompt = services.oracle_payloads[0]["messages"][1]["content"]
    assert "REPO CONTEXT: acme/widget" in user_prompt
    assert "--- SOURCE SAMPLE: src/core.ts ---" in user_prompt
    assert URL in user_prompt


def test_collect_context_skips_the_model(services, config) -> None:
    logs: List[str] = []
    text = asyncio.run(collect_context(URL, config=config, log=logs.append, transport=services.transport()))
    assert text.startswith("REPO CONTEXT: acme/widget (default branch: main)")
    assert services.oracle_models == []
    assert any(line.startswith("[WARN] No access token") for line in logs)
    assert any(line.startswith("[TIME] fetch=") for line in logs)


def test_format_duration() -> None:
    assert _format_duration(0.25) == "250ms"
    assert _format_duration(12.5) == "12.50s"
    assert _format_duration(125) == "2m05.0s"
    assert _format_duration(3725) == "1h02m05.0s"
