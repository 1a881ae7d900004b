from __future__ import annotations

import pytest

from tests._fixtures.fake_services import FakeServices
from vibecheck.config import AuditConfig, load_config


@pytest.fixture
def config(monkeypatch) -> AuditConfig:
    """The packaged default configuration, regardless of the caller's env."""
    monkeypatch.delenv("VIBECHECK_CONFIG", raising=False)
    return load_config()


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()
