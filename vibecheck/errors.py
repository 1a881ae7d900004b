"""Error taxonomy surfaced to callers of the audit pipeline."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

TOKEN_GUIDANCE = (
    "Provide a GitHub access token with --token or the GITHUB_TOKEN environment "
    "variable to raise the API rate limit."
)


class ConfigError(RuntimeError):
    """Raised when the audit configuration cannot be loaded."""


class AuditError(RuntimeError):
    """Base class for every terminal audit failure."""


class InvalidRepositoryUrl(AuditError):
    """The input does not look like <host>/<owner>/<repo>."""

    def __init__(self, url: str) -> None:
        super().__init__(f'Invalid repository URL: "{url}". Format: https://github.com/owner/repo')
        self.url = url


class RepositoryNotFound(AuditError):
    """The repository does not exist or is private."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Repository not found or private: {slug}")
        self.slug = slug


class RateLimitExceeded(AuditError):
    """The hosting API refused the request because of its rate limit."""

    guidance = TOKEN_GUIDANCE

    def __init__(self, authenticated: bool) -> None:
        if authenticated:
            message = "GitHub API rate limit exceeded for the supplied token."
        else:
            message = "GitHub API rate limit exceeded. Please provide a token."
        super().__init__(message)
        self.authenticated = authenticated


class HostingApiError(AuditError):
    """Any other failure of an essential hosting API call."""

    def __init__(self, status: Optional[int], reason: str) -> None:
        if status is None:
            super().__init__(f"GitHub API error: {reason}")
        else:
            super().__init__(f"GitHub API error: {status} {reason}".rstrip())
        self.status = status
        self.reason = reason


class AuditUnavailable(AuditError):
    """Every oracle tier failed."""

    def __init__(self, failures: Sequence[Tuple[str, str]]) -> None:
        detail = "; ".join(f"{tier}: {err}" for tier, err in failures) or "no tiers configured"
        super().__init__(f"Audit unavailable, all model tiers failed ({detail})")
        self.failures: List[Tuple[str, str]] = list(failures)


class IncompleteAuditResult(AuditError):
    """The oracle answered but required structure is missing."""

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__("Audit response is incomplete, missing: " + ", ".join(missing))
        self.missing: List[str] = list(missing)
