# src/tracecheck/core/config.py
"""
Configuration schema and loading for tracecheck runs.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Last height whose traces use the pre-nv20 nested trace layout.
NV20_UPGRADE_HEIGHT = 489094

BERYX_URL = "https://api.zondax.ch/fil/data/v4/mainnet"


class NodeSettings(BaseModel):
    """Lotus full node JSON-RPC endpoint."""

    model_config = {"frozen": True}

    url: str = Field(default="http://127.0.0.1:1234/rpc/v1", description="Lotus JSON-RPC v1 endpoint")
    token: str | None = Field(default=None, description="Bearer token for the node API")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-call timeout")


class TraceSourceSettings(BaseModel):
    """Where trace bytes come from.

    Example YAML:
        trace_source:
          plugin: filesystem
          options:
            directory: ./traces
    """

    model_config = {"frozen": True}

    plugin: str = Field(default="filesystem", description="Registered trace source name")
    options: dict[str, Any] = Field(default_factory=dict, description="Source-specific options")


class TraceParserSettings(BaseModel):
    """Trace parser plugin selection. There is no builtin parser."""

    model_config = {"frozen": True}

    plugin: str | None = Field(default=None, description="Registered trace parser name")
    options: dict[str, Any] = Field(default_factory=dict, description="Parser-specific options")


class EventProviderSettings(BaseModel):
    """Event height provider used by the event-driven checks."""

    model_config = {"frozen": True}

    plugin: str = Field(default="beryx", description="Registered event provider name")
    url: str = Field(default=BERYX_URL, description="Provider base URL")
    token: str | None = Field(default=None, description="Bearer token for the provider")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")


class CheckpointSettings(BaseModel):
    """Checkpoint database location.

    Each check keeps its own SQLite file under ``db_path``.
    """

    model_config = {"frozen": True}

    db_path: str = Field(default="./tracecheck-db", description="Directory holding the per-check checkpoint files")


class TraceSchemaSettings(BaseModel):
    """Height at which the nested trace layout changed."""

    model_config = {"frozen": True}

    upgrade_height: int = Field(default=NV20_UPGRADE_HEIGHT, ge=0)


class TraceCheckSettings(BaseModel):
    """Top-level settings for a tracecheck run."""

    model_config = {"frozen": True}

    network_name: str = Field(default="mainnet", description="Network the node and traces belong to")
    node: NodeSettings = Field(default_factory=NodeSettings)
    trace_source: TraceSourceSettings = Field(default_factory=TraceSourceSettings)
    trace_parser: TraceParserSettings = Field(default_factory=TraceParserSettings)
    event_provider: EventProviderSettings = Field(default_factory=EventProviderSettings)
    checkpoint: CheckpointSettings = Field(default_factory=CheckpointSettings)
    trace_schema: TraceSchemaSettings = Field(default_factory=TraceSchemaSettings)

    @field_validator("network_name")
    @classmethod
    def validate_network_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("network_name must not be empty")
        return v


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    An unset variable without a default is left as written.
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    # Dynaconf upper-cases keys that arrive through environment variables
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> TraceCheckSettings:
    """Load settings from an optional YAML file with environment overrides.

    Precedence:
    1. Environment variables (TRACECHECK_*) - highest priority
    2. Config file, when given
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: TRACECHECK_NODE__URL for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but does not exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="TRACECHECK",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(raw_config)

    return TraceCheckSettings(**raw_config)


SECRET_FIELD_NAMES = frozenset({"token"})


def redacted_config(settings: TraceCheckSettings) -> dict[str, Any]:
    """Settings as a dict safe to log: secret fields are masked."""

    def _mask(value: Any) -> Any:
        if isinstance(value, dict):
            return {k: ("***" if k in SECRET_FIELD_NAMES and v else _mask(v)) for k, v in value.items()}
        return value

    result: dict[str, Any] = _mask(settings.model_dump(mode="json"))
    return result
