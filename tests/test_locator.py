"""Repository URL parsing."""

from __future__ import annotations

import pytest

from vibecheck.errors import InvalidRepositoryUrl
from vibecheck.locator import parse_repository_url
from vibecheck.models import RepositoryIdentifier


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/acme/widget",
        "https://github.com/acme/widget/",
        "https://github.com/acme/widget///",
        "  https://github.com/acme/widget  ",
        "https://github.com/acme/widget/tree/main/src",
        "https://github.com/acme/widget?tab=readme",
        "https://github.com/acme/widget#readme",
        "https://github.com/acme/widget.git",
        "http://www.github.com/acme/widget",
        "github.com/acme/widget",
    ],
)
def test_parse_extracts_owner_and_repo(url: str) -> None:
    assert parse_repository_url(url) == RepositoryIdentifier(owner="acme", name="widget")


@pytest.mark.parametrize(
    "url",
    [
        "",
        "   ",
        "acme/widget",
        "https://github.com/acme",
        "https://github.com/acme/",
        "https://gitlab.com/acme/widget",
        "https://example.com/github.com/acme/widget",
        "not a url at all",
    ],
)
def test_parse_rejects_malformed_input(url: str) -> None:
    with pytest.raises(InvalidRepositoryUrl):
        parse_repository_url(url)


def test_identifier_slug() -> None:
    assert parse_repository_url("https://github.com/Acme-Org/Widget.js").slug == "Acme-Org/Widget.js"
