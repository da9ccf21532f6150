# src/altary/core/config.py
"""Configuration schema and loading for the Altary client.

Uses Pydantic for validation and Dynaconf for multi-source loading.

Settings can come from three places:
- Keyword options: ``AltarySettings.from_options(api_key=..., ...)``
- Environment: ``AltarySettings.from_env()`` reads ALTARY_API_KEY and
  ALTARY_ENDPOINT, with keyword overrides taking precedence
- A YAML file with ALTARY_* environment overrides: ``load_settings(path)``

The pre-send hook is not a setting: it is a callable and is passed to the
Client directly.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from altary.contracts.enums import Level, Severity
from altary.contracts.errors import AltaryConfigError

DEFAULT_ENDPOINT = "https://altary.web-ts.dev/cards/errors"

API_KEY_ENV_VAR = "ALTARY_API_KEY"
ENDPOINT_ENV_VAR = "ALTARY_ENDPOINT"


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "settings"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


class TransportSettings(BaseModel):
    """Transport selection.

    Example YAML:
        transport:
          name: console
          options:
            format: pretty
    """

    model_config = {"frozen": True}

    name: str = Field(default="http", min_length=1, description="Registered transport name")
    options: dict[str, Any] = Field(default_factory=dict, description="Transport-specific options")


class AltarySettings(BaseModel):
    """Validated client configuration.

    All settings are frozen after construction.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    api_key: str = Field(description="Bearer token for the collection endpoint")
    endpoint: str = Field(default=DEFAULT_ENDPOINT, min_length=1, description="Collection endpoint URL")
    user: dict[str, Any] | None = Field(default=None, description="Context attached verbatim to every event")
    log_levels: tuple[Level, ...] | None = Field(
        default=None,
        description="Allow-list of levels to report (None reports every level)",
    )
    type_of_errors: int = Field(
        default=int(Severity.ALL),
        ge=0,
        description="Severity mask of fault signals to capture",
    )
    batch_flush: bool = Field(
        default=False,
        description="Send all queued events in one request instead of one request per event",
    )
    queue_size: int = Field(default=10_000, gt=0, description="Maximum queued events before oldest are dropped")
    source_context_lines: int = Field(default=5, ge=0, description="Source lines on each side of the failing line")
    transport: TransportSettings = Field(default_factory=TransportSettings)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("api_key is required")
        return v

    @field_validator("log_levels", mode="before")
    @classmethod
    def coerce_log_levels(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("type_of_errors", mode="before")
    @classmethod
    def coerce_severity_mask(cls, v: Any) -> Any:
        """Accept an int mask, a Severity, a member name, or a list of those."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list | tuple | set | frozenset):
            mask = 0
            for item in v:
                if isinstance(item, str):
                    try:
                        mask |= Severity[item.strip().upper()]
                    except KeyError:
                        raise ValueError(f"Unknown severity name: {item!r}") from None
                else:
                    mask |= int(item)
            return mask
        return v

    @property
    def reporting_mask(self) -> Severity:
        """``type_of_errors`` as a Severity flag (unknown bits ignored)."""
        return Severity(self.type_of_errors & Severity.ALL)

    @classmethod
    def from_options(cls, **options: Any) -> AltarySettings:
        """Validate keyword options.

        Raises:
            AltaryConfigError: If api_key is missing or any option is invalid.
        """
        if not options.get("api_key"):
            raise AltaryConfigError("Altary init: api_key is required")
        try:
            return cls(**options)
        except ValidationError as e:
            raise AltaryConfigError(f"Invalid Altary configuration: {_format_validation_error(e)}") from e

    @classmethod
    def from_env(cls, **overrides: Any) -> AltarySettings:
        """Build settings from ALTARY_API_KEY / ALTARY_ENDPOINT.

        Explicit keyword overrides win over the environment.

        Raises:
            AltaryConfigError: If no api key is available.
        """
        options: dict[str, Any] = {}
        env_key = os.environ.get(API_KEY_ENV_VAR)
        if env_key:
            options["api_key"] = env_key
        env_endpoint = os.environ.get(ENDPOINT_ENV_VAR)
        if env_endpoint:
            options["endpoint"] = env_endpoint
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_options(**options)


def load_settings(config_path: Path) -> AltarySettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (ALTARY_*) - highest priority
    2. Config file (altary.yaml)
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: ALTARY_TRANSPORT__NAME for nested keys.

    Raises:
        AltaryConfigError: If configuration fails validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ALTARY",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # and drop its own bookkeeping settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES", "ENVVAR_PREFIX", "MERGE_ENABLED"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    if isinstance(raw_config.get("transport"), dict):
        raw_config["transport"] = {k.lower(): v for k, v in raw_config["transport"].items()}

    return AltarySettings.from_options(**raw_config)
