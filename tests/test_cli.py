from __future__ import annotations

import json

import pytest

from tests._fixtures.fake_services import FakeServices, make_audit_payload
from vibecheck import runner
from vibecheck.errors import AuditUnavailable, RateLimitExceeded
from vibecheck.normalize import normalize_audit


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.delenv("VIBECHECK_CONFIG", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


def _fake_audit(config):
    async def fake_run_audit(url, token=None, **kwargs):
        return normalize_audit(
            make_audit_payload(),
            repo_name="widget",
            model_used="qwen2.5-coder:7b",
            categories=config.categories,
        )

    return fake_run_audit


def _raising(exc):
    async def fake(*args, **kwargs):
        raise exc

    return fake


def test_success_writes_report_and_log(tmp_path, monkeypatch, capsys, config) -> None:
    monkeypatch.setattr(runner, "run_audit", _fake_audit(config))
    code = runner.main(["https://github.com/acme/widget", "--out", str(tmp_path)])
    assert code == 0
    report = tmp_path / "AUDIT_widget.md"
    assert report.exists()
    assert "_Model: qwen2.5-coder:7b_" in report.read_text(encoding="utf-8")
    out = capsys.readouterr().out
    assert "[OK] widget: 60/100 (grade C) model=qwen2.5-coder:7b" in out
    log = (tmp_path / "run.log").read_text(encoding="utf-8")
    assert log.startswith("[RUN] start")
    assert "[VERDICT] A tidy facade over naive code." in log


def test_json_format(tmp_path, monkeypatch, config) -> None:
    monkeypatch.setattr(runner, "run_audit", _fake_audit(config))
    assert runner.main(["https://github.com/acme/widget", "--out", str(tmp_path), "--format", "json"]) == 0
    data = json.loads((tmp_path / "AUDIT_widget.json").read_text(encoding="utf-8"))
    assert data["model_used"] == "qwen2.5-coder:7b"


def test_rate_limit_exit_code_and_hint(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(runner, "run_audit", _raising(RateLimitExceeded(authenticated=False)))
    code = runner.main(["https://github.com/acme/widget", "--out", str(tmp_path)])
    assert code == 3
    err = capsys.readouterr().err
    assert "[ERROR] GitHub API rate limit exceeded" in err
    assert "[HINT] Provide a GitHub access token" in err


def test_other_audit_failure_exit_code(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(runner, "run_audit", _raising(AuditUnavailable([("primary", "down")])))
    assert runner.main(["https://github.com/acme/widget", "--out", str(tmp_path)]) == 1
    assert not list(tmp_path.glob("AUDIT_*"))


def test_invalid_url_exit_code(tmp_path, capsys) -> None:
    assert runner.main(["not-a-repo", "--out", str(tmp_path)]) == 2
    assert "Invalid repository URL" in capsys.readouterr().err


def test_bad_config_exit_code(tmp_path) -> None:
    assert runner.main(["https://github.com/acme/widget", "--out", str(tmp_path), "--config", str(tmp_path / "x.yaml")]) == 2


def test_token_and_ollama_flags_are_forwarded(tmp_path, monkeypatch, config) -> None:
    seen = {}
    inner = _fake_audit(config)

    async def spy(url, token=None, **kwargs):
        seen["token"] = token
        seen["base_url"] = kwargs["config"].oracle.base_url
        return await inner(url, token, **kwargs)

    monkeypatch.setattr(runner, "run_audit", spy)
    runner.main(
        [
            "https://github.com/acme/widget",
            "--out",
            str(tmp_path),
            "--token",
            "ghp_x",
            "--ollama",
            "http://gpu:11434/",
        ]
    )
    assert seen == {"token": "ghp_x", "base_url": "http://gpu:11434"}


def test_context_only_prints_context(tmp_path, monkeypatch, capsys) -> None:
    services = FakeServices()
    real_collect = runner.collect_context

    async def collect(url, token=None, **kwargs):
        return await real_collect(url, token, transport=services.transport(), **kwargs)

    monkeypatch.setattr(runner, "collect_context", collect)
    assert runner.main(["https://github.com/acme/widget", "--out", str(tmp_path), "--context-only"]) == 0
    out = capsys.readouterr().out
    assert "REPO CONTEXT: acme/widget (default branch: main)" in out
    assert services.oracle_models == []
    assert not list(tmp_path.glob("AUDIT_*"))
