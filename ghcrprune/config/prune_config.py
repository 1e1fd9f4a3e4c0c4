"""
Prune run configuration loader.

Inputs are read from an optional YAML file, the process environment (GitHub
Actions ``INPUT_*`` variables or ``GHCR_PRUNE_*`` variables, after loading a
``.env`` file) and command-line values, in increasing order of precedence.
Deprecated input names are folded into their replacements once, here.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator

from ghcrprune.connectors.base import RegistryScope, ScopeKind
from ghcrprune.errors import ConfigurationError
from ghcrprune.retention.retention_models import RetentionPolicy

logger = logging.getLogger(__name__)

INPUT_NAMES = (
    "token",
    "organization",
    "user",
    "container",
    "dry-run",
    "keep-last",
    "keep-younger-than",
    "prune-untagged",
    "prune-tags-regexes",
    "keep-tags",
    "keep-tags-regexes",
    "api-url",
    "rate-limit-delay-ms",
)

# deprecated input -> canonical input
DEPRECATED_INPUTS = {
    "older-than": "keep-younger-than",
    "untagged": "prune-untagged",
    "tag-regex": "prune-tags-regexes",
}

TRUE_VALUES = {"true", "1", "yes", "on"}


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.splitlines()
    else:
        items = [str(item) for item in value]
    return [item.strip() for item in items if item.strip()]


class PruneConfig(BaseModel):
    """Validated configuration of one prune run."""
    token: SecretStr
    container: str
    organization: Optional[str] = None
    user: Optional[str] = None
    dry_run: bool = False
    keep_last: int = Field(default=0, ge=0)
    keep_younger_than: int = Field(default=0, ge=0)
    prune_untagged: bool = False
    prune_tags_regexes: List[str] = Field(default_factory=list)
    keep_tags: List[str] = Field(default_factory=list)
    keep_tags_regexes: List[str] = Field(default_factory=list)
    api_url: str = "https://api.github.com"
    rate_limit_delay_ms: int = Field(default=0, ge=0)

    @field_validator("dry_run", "prune_untagged", mode="before")
    @classmethod
    def _parse_bool(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        return str(value).strip().lower() in TRUE_VALUES

    @field_validator("prune_tags_regexes", "keep_tags", "keep_tags_regexes", mode="before")
    @classmethod
    def _parse_multi_value(cls, value: Any) -> List[str]:
        return _as_list(value)

    @field_validator("prune_tags_regexes", "keep_tags_regexes")
    @classmethod
    def _check_regexes(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid regex '{pattern}': {e}") from e
        return patterns

    @field_validator("container")
    @classmethod
    def _check_container(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("container name must not be empty")
        return value

    @field_validator("organization", "user", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if _is_absent(value):
            return None
        return str(value).strip()

    @model_validator(mode="after")
    def _check_scope(self) -> "PruneConfig":
        if self.organization and self.user:
            raise ValueError("'organization' and 'user' are mutually exclusive, set only one of them")
        if not self.token.get_secret_value():
            raise ValueError("token must not be empty")
        return self

    @property
    def scope(self) -> RegistryScope:
        if self.organization:
            return RegistryScope(ScopeKind.ORGANIZATION, self.organization)
        if self.user:
            return RegistryScope(ScopeKind.USER, self.user)
        return RegistryScope(ScopeKind.AUTHENTICATED_USER)

    def retention_policy(self) -> RetentionPolicy:
        return RetentionPolicy(
            keep_younger_than_days=self.keep_younger_than,
            prune_untagged=self.prune_untagged,
            prune_tags_regexes=tuple(self.prune_tags_regexes),
            keep_tags=tuple(self.keep_tags),
            keep_tags_regexes=tuple(self.keep_tags_regexes),
            keep_last=self.keep_last,
        )


def _normalize_name(name: str) -> str:
    return str(name).strip().lower().replace("_", "-")


def read_yaml_inputs(config_path: Path) -> Dict[str, Any]:
    """Read a flat mapping of input names from a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    return {_normalize_name(key): value for key, value in config_data.items()}


def read_env_inputs(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Read inputs from GitHub Actions INPUT_* and GHCR_PRUNE_* variables."""
    inputs: Dict[str, Any] = {}
    for name in (*INPUT_NAMES, *DEPRECATED_INPUTS):
        underscored = name.upper().replace("-", "_")
        for key in (f"GHCR_PRUNE_{underscored}", f"INPUT_{underscored}", f"INPUT_{name.upper()}"):
            if not _is_absent(environ.get(key)):
                inputs[name] = environ[key]
    return inputs


def fold_deprecated_inputs(inputs: Dict[str, Any]) -> Dict[str, Any]:
    """Move deprecated inputs to their canonical names when those are absent."""
    folded = dict(inputs)
    for deprecated, canonical in DEPRECATED_INPUTS.items():
        value = folded.pop(deprecated, None)
        if _is_absent(value):
            continue
        if _is_absent(folded.get(canonical)):
            logger.warning(f"Input '{deprecated}' is deprecated, use '{canonical}' instead")
            folded[canonical] = value
        else:
            logger.warning(f"Ignoring deprecated input '{deprecated}' because '{canonical}' is set")
    return folded


def build_prune_config(inputs: Mapping[str, Any]) -> PruneConfig:
    """
    Validate raw inputs keyed by input name into a PruneConfig.

    Raises:
        ConfigurationError: If any input is missing, invalid or contradictory
    """
    folded = fold_deprecated_inputs({_normalize_name(k): v for k, v in inputs.items() if not _is_absent(v)})

    unknown = sorted(set(folded) - set(INPUT_NAMES))
    if unknown:
        logger.warning(f"Ignoring unknown inputs: {', '.join(unknown)}")

    fields = {name.replace("-", "_"): folded[name] for name in INPUT_NAMES if name in folded}

    try:
        return PruneConfig(**fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc']) or 'config'}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e


def load_prune_config(
    cli_args: Optional[Mapping[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PruneConfig:
    """
    Load the prune configuration from file, environment and CLI values.

    Args:
        cli_args: Inputs given on the command line, keyed by input name
        config_path: Optional YAML file with inputs
        environ: Environment mapping, defaults to os.environ after loading .env

    Returns:
        Validated PruneConfig
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    inputs: Dict[str, Any] = {}
    if config_path is not None:
        inputs.update(read_yaml_inputs(Path(config_path)))

    for source in (read_env_inputs(environ), cli_args or {}):
        for name, value in source.items():
            if not _is_absent(value):
                inputs[_normalize_name(name)] = value

    return build_prune_config(inputs)
