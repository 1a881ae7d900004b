"""Async client for the GitHub REST endpoints the audit reads."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .config import HostingConfig
from .errors import HostingApiError, RateLimitExceeded, RepositoryNotFound
from .models import RepositoryIdentifier


def decode_content(payload: Any) -> str:
    """Decode a contents/readme payload (base64) to text."""
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
        raise HostingApiError(None, "unexpected content payload")
    encoding = str(payload.get("encoding") or "base64").lower()
    if encoding != "base64":
        raise HostingApiError(None, f"unsupported content encoding: {encoding}")
    raw = base64.b64decode(payload["content"])
    return raw.decode("utf-8", errors="replace")


class GitHubClient:
    """Explicitly scoped API client; use as ``async with GitHubClient(...)``.

    Every request carries the token when one is supplied. Status mapping:
    403/429 -> RateLimitExceeded, 404 -> RepositoryNotFound, anything else
    non-2xx -> HostingApiError.
    """

    def __init__(
        self,
        hosting: HostingConfig,
        token: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.hosting = hosting
        self.token = token or None
        headers = {"Accept": hosting.accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=hosting.api_base,
            headers=headers,
            timeout=hosting.timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _raise_for_status(self, resp: httpx.Response, slug: str) -> None:
        if resp.is_success:
            return
        if resp.status_code in (403, 429):
            raise RateLimitExceeded(authenticated=self.token is not None)
        if resp.status_code == 404:
            raise RepositoryNotFound(slug)
        raise HostingApiError(resp.status_code, resp.reason_phrase)

    async def get_json(self, path: str, slug: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise HostingApiError(None, f"{type(e).__name__}: {e}") from e
        self._raise_for_status(resp, slug)
        try:
            return resp.json()
        except ValueError as e:
            raise HostingApiError(resp.status_code, "response is not JSON") from e

    @staticmethod
    def _repo_path(repo: RepositoryIdentifier) -> str:
        return f"/repos/{quote(repo.owner, safe='')}/{quote(repo.name, safe='')}"

    async def get_repository(self, repo: RepositoryIdentifier) -> Dict[str, Any]:
        data = await self.get_json(self._repo_path(repo), repo.slug)
        if not isinstance(data, dict):
            raise HostingApiError(None, "repository metadata is not an object")
        return data

    async def get_readme(self, repo: RepositoryIdentifier) -> str:
        payload = await self.get_json(f"{self._repo_path(repo)}/readme", repo.slug)
        return decode_content(payload)

    async def get_commits(self, repo: RepositoryIdentifier, per_page: int) -> List[Dict[str, Any]]:
        data = await self.get_json(f"{self._repo_path(repo)}/commits", repo.slug, {"per_page": per_page})
        if not isinstance(data, list):
            raise HostingApiError(None, "commit list is not an array")
        return data

    async def get_tree(self, repo: RepositoryIdentifier, ref: str) -> Dict[str, Any]:
        data = await self.get_json(
            f"{self._repo_path(repo)}/git/trees/{quote(ref, safe='')}",
            repo.slug,
            {"recursive": 1},
        )
        if not isinstance(data, dict):
            raise HostingApiError(None, "tree listing is not an object")
        return data

    async def get_file_text(self, repo: RepositoryIdentifier, path: str) -> str:
        payload = await self.get_json(f"{self._repo_path(repo)}/contents/{quote(path, safe='/')}", repo.slug)
        return decode_content(payload)
