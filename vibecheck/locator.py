"""Parse repository URLs into owner/name identifiers."""

from __future__ import annotations

import re

from .errors import InvalidRepositoryUrl
from .models import RepositoryIdentifier

DEFAULT_HOST = "github.com"


def _repo_url_re(host: str) -> re.Pattern:
    return re.compile(
        r"^(?:https?://)?(?:www\.)?" + re.escape(host) + r"/([^/?#\s]+)/([^/?#\s]+)",
        re.IGNORECASE,
    )


def parse_repository_url(url: str, *, host: str = DEFAULT_HOST) -> RepositoryIdentifier:
    """Extract owner and repo name, ignoring extra path segments, query and fragment."""
    clean = (url or "").strip().rstrip("/")
    m = _repo_url_re(host).match(clean)
    if not m:
        raise InvalidRepositoryUrl(url)
    owner, name = m.group(1), m.group(2)
    if name.lower().endswith(".git"):
        name = name[:-4]
    if not name or owner in (".", "..") or name in (".", ".."):
        raise InvalidRepositoryUrl(url)
    return RepositoryIdentifier(owner=owner, name=name)
