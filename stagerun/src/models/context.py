"""
Immutable environment context shared by every stage of a run.
"""

import os
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from stagerun.src.errors import MissingConfig, PipelineConfigError

RECOGNIZED_KEYS = (
    "repo_url",
    "branch",
    "remote_host",
    "remote_user",
    "remote_port",
    "credential_id",
)

REMOTE_KEYS = ("remote_host", "remote_user", "credential_id")

class EnvironmentContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo_url: Optional[str] = None
    branch: Optional[str] = None
    remote_host: Optional[str] = None
    remote_user: Optional[str] = None
    remote_port: str = "22"
    credential_id: Optional[str] = None
    extras: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("extras")
    @classmethod
    def _check_extras(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        for key in value:
            if key in RECOGNIZED_KEYS:
                raise ValueError(f"'{key}' is a recognized option, not an extra")
        return MappingProxyType(dict(value))

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "EnvironmentContext":
        """Split a flat mapping into recognized options and extras."""
        known = {}
        extras = {}
        for key, value in values.items():
            if value is None:
                continue
            if key in RECOGNIZED_KEYS:
                known[key] = str(value)
            else:
                extras[str(key)] = str(value)
        return cls(**known, extras=extras)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key in RECOGNIZED_KEYS:
            value = getattr(self, key)
        else:
            value = self.extras.get(key)
        return value if value else default

    def resolve(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise MissingConfig([key])
        return value

    def require(self, keys: Iterable[str], stage: Optional[str] = None):
        missing = [key for key in keys if self.get(key) is None]
        if missing:
            raise MissingConfig(missing, stage=stage)

    def to_dict(self) -> Dict[str, str]:
        values = {key: self.get(key) for key in RECOGNIZED_KEYS if self.get(key) is not None}
        values.update(self.extras)
        return values

    def as_env(self) -> Dict[str, str]:
        """Context values as environment variables (REPO_URL, BRANCH, ...)."""
        return {key.upper(): value for key, value in self.to_dict().items()}

    def merged(self, overrides: Mapping[str, object]) -> "EnvironmentContext":
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return EnvironmentContext.from_mapping(values)

def parse_overrides(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse key=value strings from the command line."""
    overrides = {}
    for pair in pairs:
        if "=" not in pair:
            raise PipelineConfigError(f"Invalid override '{pair}', expected key=value")
        key, value = pair.split("=", 1)
        overrides[key.strip()] = value
    return overrides

def load_context(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, object]] = None,
    defaults: Optional[Mapping[str, object]] = None,
) -> EnvironmentContext:
    """
    Build the run context.
    Precedence: defaults (pipeline 'environment') < context file < overrides.
    """
    values: Dict[str, object] = dict(defaults or {})

    if path:
        if not os.path.exists(path):
            raise PipelineConfigError(f"Context file not found: {path}")
        with open(path, "r") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise PipelineConfigError(f"Invalid context YAML: {e}")
        if not isinstance(loaded, dict):
            raise PipelineConfigError("Context file must be a mapping")
        values.update(loaded)

    if overrides:
        values.update(overrides)

    return EnvironmentContext.from_mapping(values)
