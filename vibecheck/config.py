"""Load and validate the YAML configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import ConfigError
from .models import SCORE_KEYS

CONFIG_ENV_VAR = "VIBECHECK_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "audit_config.yaml"

SCORE_POLICIES = ("trust", "recompute", "warn")


@dataclass(frozen=True)
class HostingConfig:
    api_base: str
    accept: str
    timeout_s: float


@dataclass(frozen=True)
class SelectionRules:
    """Bounds and filters used to pick manifests and source samples."""
    max_tree_entries: int
    max_commits: int
    manifest_names: Tuple[str, ...]
    max_manifests: int
    source_extensions: Tuple[str, ...]
    source_min_bytes: int
    source_max_bytes: int
    max_sources: int
    max_sample_lines: int


@dataclass(frozen=True)
class OracleTier:
    name: str
    model: str
    timeout_s: float


@dataclass(frozen=True)
class OracleConfig:
    base_url: str
    tiers: Tuple[OracleTier, ...]
    temperature: float
    num_ctx: int
    num_predict: int
    score_policy: str


@dataclass(frozen=True)
class CategorySpec:
    key: str
    title: str
    metrics: Tuple[str, ...]


@dataclass(frozen=True)
class AuditConfig:
    path: Path
    hosting: HostingConfig
    selection: SelectionRules
    oracle: OracleConfig
    categories: Tuple[CategorySpec, ...]
    system_prompt: str
    user_prompt: str

    def with_oracle_base(self, base_url: str) -> "AuditConfig":
        """Return a copy pointing at a different oracle endpoint."""
        return replace(self, oracle=replace(self.oracle, base_url=base_url.rstrip("/")))


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read the YAML config from disk and validate its top-level type."""
    if not path.exists():
        raise ConfigError(f'Config file not found: "{path}"')
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f'Failed to read config "{path}": {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'Config file "{path}" must be a YAML mapping at top level')
    return data


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config path from an explicit argument, env override or default."""
    if path is not None:
        return Path(path).expanduser().resolve()
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return DEFAULT_CONFIG_PATH


def _require_section(data: Dict[str, Any], name: str, kind: type) -> Any:
    """Fetch a required config section and validate its type."""
    value = data.get(name)
    if not isinstance(value, kind):
        raise ConfigError(f'Config section "{name}" missing or not a {kind.__name__}')
    return value


def _require_int(section: Dict[str, Any], key: str, label: str) -> int:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{label}.{key} must be a non-negative int")
    return value


def _require_number(section: Dict[str, Any], key: str, label: str) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{label}.{key} must be a number")
    return float(value)


def _require_str(section: Dict[str, Any], key: str, label: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{label}.{key} is missing or not a string")
    return value


def _str_list(value: object, label: str) -> List[str]:
    if not isinstance(value, list):
        raise ConfigError(f"{label} must be a list")
    out: List[str] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            out.append(item.strip())
    return out


def _parse_hosting(raw: Dict[str, Any]) -> HostingConfig:
    return HostingConfig(
        api_base=_require_str(raw, "api_base", "hosting").rstrip("/"),
        accept=_require_str(raw, "accept", "hosting"),
        timeout_s=_require_number(raw, "timeout_s", "hosting"),
    )


def _parse_selection(raw: Dict[str, Any]) -> SelectionRules:
    rules = SelectionRules(
        max_tree_entries=_require_int(raw, "max_tree_entries", "selection"),
        max_commits=_require_int(raw, "max_commits", "selection"),
        manifest_names=tuple(_str_list(raw.get("manifest_names"), "selection.manifest_names")),
        max_manifests=_require_int(raw, "max_manifests", "selection"),
        source_extensions=tuple(
            e.lower() if e.startswith(".") else "." + e.lower()
            for e in _str_list(raw.get("source_extensions"), "selection.source_extensions")
        ),
        source_min_bytes=_require_int(raw, "source_min_bytes", "selection"),
        source_max_bytes=_require_int(raw, "source_max_bytes", "selection"),
        max_sources=_require_int(raw, "max_sources", "selection"),
        max_sample_lines=_require_int(raw, "max_sample_lines", "selection"),
    )
    if rules.source_min_bytes >= rules.source_max_bytes:
        raise ConfigError("selection.source_min_bytes must be below selection.source_max_bytes")
    return rules


def _parse_oracle(raw: Dict[str, Any]) -> OracleConfig:
    tiers_raw = raw.get("tiers")
    if not isinstance(tiers_raw, list) or not tiers_raw:
        raise ConfigError("oracle.tiers must be a non-empty list")
    tiers: List[OracleTier] = []
    for idx, t in enumerate(tiers_raw):
        if not isinstance(t, dict):
            raise ConfigError(f"oracle.tiers[{idx}] is not a mapping")
        label = f"oracle.tiers[{idx}]"
        tiers.append(
            OracleTier(
                name=_require_str(t, "name", label),
                model=_require_str(t, "model", label),
                timeout_s=_require_number(t, "timeout_s", label),
            )
        )
    policy = str(raw.get("score_policy") or "trust").strip().lower()
    if policy not in SCORE_POLICIES:
        raise ConfigError(f'oracle.score_policy must be one of {", ".join(SCORE_POLICIES)} (got "{policy}")')
    return OracleConfig(
        base_url=_require_str(raw, "base_url", "oracle").rstrip("/"),
        tiers=tuple(tiers),
        temperature=_require_number(raw, "temperature", "oracle"),
        num_ctx=_require_int(raw, "num_ctx", "oracle"),
        num_predict=_require_int(raw, "num_predict", "oracle"),
        score_policy=policy,
    )


def _parse_categories(raw: List[Any]) -> Tuple[CategorySpec, ...]:
    out: List[CategorySpec] = []
    for idx, c in enumerate(raw):
        if not isinstance(c, dict):
            raise ConfigError(f"categories[{idx}] is not a mapping")
        label = f"categories[{idx}]"
        metrics = _str_list(c.get("metrics"), f"{label}.metrics")
        if len(metrics) != 4:
            raise ConfigError(f"{label}.metrics must list exactly 4 metrics")
        out.append(CategorySpec(key=_require_str(c, "key", label), title=_require_str(c, "title", label), metrics=tuple(metrics)))
    keys = tuple(c.key for c in out)
    if keys != SCORE_KEYS:
        raise ConfigError("categories must be keyed, in order: " + ", ".join(SCORE_KEYS))
    return tuple(out)


def load_config(path: Optional[Path] = None) -> AuditConfig:
    """Load the audit configuration; nothing is cached between calls."""
    config_path = resolve_config_path(path)
    data = _read_yaml(config_path)

    prompts = _require_section(data, "prompts", dict)
    user_prompt = _require_str(prompts, "user", "prompts")
    if "{context}" not in user_prompt:
        raise ConfigError('prompts.user must contain a "{context}" placeholder')

    return AuditConfig(
        path=config_path,
        hosting=_parse_hosting(_require_section(data, "hosting", dict)),
        selection=_parse_selection(_require_section(data, "selection", dict)),
        oracle=_parse_oracle(_require_section(data, "oracle", dict)),
        categories=_parse_categories(_require_section(data, "categories", list)),
        system_prompt=_require_str(prompts, "system", "prompts"),
        user_prompt=user_prompt,
    )
