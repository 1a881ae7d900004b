"""Data shapes passed between the audit stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

README_NOT_FOUND = "[No README found]"
COMMITS_UNAVAILABLE = "[Could not fetch commits]"
TREE_UNAVAILABLE = "[Could not fetch file tree]"

SCORE_KEYS = ("architecture", "core", "performance", "security", "qa")


@dataclass(frozen=True)
class RepositoryIdentifier:
    """Owner/name pair addressing a repository on the hosting API."""
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class TreeEntry:
    """A blob from the recursive tree listing."""
    path: str
    size: int

    @property
    def basename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    date: str
    author: str
    verified: bool
    message: str

    def render(self) -> str:
        flag = " [Verified]" if self.verified else ""
        return f"{self.sha} {self.date} [{self.author}]{flag}: {self.message}"


@dataclass
class EvidenceBundle:
    """Raw facts gathered about a repository before the oracle is consulted.

    ``readme`` holds README_NOT_FOUND when the README fetch failed. The list
    shaped fields use ``None`` for "fetch failed" so an empty list still means
    "fetched, nothing there".
    """

    repo: RepositoryIdentifier
    default_branch: str
    file_tree: Optional[List[str]] = None
    omitted_files: int = 0
    readme: str = README_NOT_FOUND
    commit_log: Optional[List[CommitRecord]] = None
    manifest_files: Dict[str, str] = field(default_factory=dict)
    source_samples: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricScore:
    label: str
    score: int
    rationale: str


@dataclass(frozen=True)
class CategoryAudit:
    title: str
    metrics: List[MetricScore]

    @property
    def metric_total(self) -> int:
        return sum(m.score for m in self.metrics)


@dataclass(frozen=True)
class AuditScores:
    architecture: int
    core: int
    performance: int
    security: int
    qa: int
    total: int

    def category_totals(self) -> List[int]:
        return [getattr(self, key) for key in SCORE_KEYS]


@dataclass
class AuditResult:
    """Canonical audit result consumed by the presentation layer."""

    repo_name: str
    verdict_short: str
    verdict_narrative: str
    categories: List[CategoryAudit]
    vibe_check_narrative: str
    remediation_steps: List[str]
    scores: AuditScores
    model_used: str
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
