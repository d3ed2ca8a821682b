"""Configuration loading for the prospect workflow.

Variables are declared in a YAML file (``config/config_vars.yaml``)::

    variables:
      FOLLOW_UP_INTERVAL_SECONDS:
        source: FOLLOW_UP_INTERVAL_SECONDS
        type: float
        default: 86400
    validation:
      required: []
      optional: [OPENAI_API_KEY]

Each ``source`` is resolved from the process environment first, then from a
``.env`` file, then from the declared default. Values are coerced to the
declared type and exposed through :class:`WorkflowSettings`.
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "config_vars.yaml"

SUPPORTED_TYPES = {"str", "int", "float", "bool"}


class WorkflowSettings(BaseModel):
    """Typed view over the loaded configuration variables."""

    model_config = ConfigDict(frozen=True)

    follow_up_interval: timedelta = timedelta(days=1)
    max_follow_ups: int = Field(default=1, ge=0)
    retry_from_error: bool = False
    extraction_timeout: Optional[float] = 60.0
    agent_model: str = "gpt-4.1-mini"
    agent_temperature: float = 0.2
    agent_max_tool_rounds: int = Field(default=6, ge=1)
    openai_api_key: Optional[str] = None
    database_url: str = "sqlite+aiosqlite:///./prospect_workflow.db"
    follow_up_subject: str = "Following up on your property inquiry"
    follow_up_message: str = (
        "We are still waiting for a few details to complete your property inquiry. "
        "Please reply to this message with the missing information."
    )
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> "WorkflowSettings":
        """Build settings from raw ``NAME -> value`` pairs, skipping ``None``."""

        mapping = {
            "FOLLOW_UP_INTERVAL_SECONDS": "follow_up_interval",
            "MAX_FOLLOW_UPS": "max_follow_ups",
            "RETRY_FROM_ERROR": "retry_from_error",
            "EXTRACTION_TIMEOUT_SECONDS": "extraction_timeout",
            "AGENT_MODEL": "agent_model",
            "AGENT_TEMPERATURE": "agent_temperature",
            "AGENT_MAX_TOOL_ROUNDS": "agent_max_tool_rounds",
            "OPENAI_API_KEY": "openai_api_key",
            "DATABASE_URL": "database_url",
            "FOLLOW_UP_SUBJECT": "follow_up_subject",
            "FOLLOW_UP_MESSAGE": "follow_up_message",
            "LOG_LEVEL": "log_level",
            "LOG_JSON": "log_json",
        }
        fields: dict[str, Any] = {}
        for name, field_name in mapping.items():
            value = values.get(name)
            if value is None:
                continue
            if field_name == "follow_up_interval":
                value = timedelta(seconds=float(value))
            elif field_name == "extraction_timeout" and float(value) <= 0:
                value = None
            fields[field_name] = value
        return cls(**fields)


_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


class ConfigLoader:
    """Resolve the variables declared in ``config_vars.yaml`` into typed values."""

    def __init__(
        self,
        config_path: str | Path,
        *,
        dotenv_path: Optional[str | Path] = None,
        environ: Optional[dict[str, str]] = None,
    ) -> None:
        self.config_path = Path(config_path).expanduser().resolve()
        raw = self._read_config(self.config_path)
        self.variables = self._variables(raw.get("variables") or {})
        self.validation = raw.get("validation") or {}
        if not isinstance(self.validation, dict):
            raise ValueError("'validation' section must be a mapping")
        self._environ = os.environ if environ is None else environ
        self._dotenv = self._read_dotenv(dotenv_path)

    @staticmethod
    def _read_config(path: Path) -> dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file '{path}' does not exist.")
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file '{path}' must hold a mapping")
        return data

    @staticmethod
    def _variables(section: Any) -> dict[str, dict[str, Any]]:
        if not isinstance(section, dict):
            raise ValueError("'variables' section must map names to definitions")
        for name, definition in section.items():
            if not isinstance(definition, dict) or not isinstance(definition.get("source"), str):
                raise ValueError(f"Variable '{name}' must define a string 'source'")
            if str(definition.get("type", "str")) not in SUPPORTED_TYPES:
                raise ValueError(f"Variable '{name}' uses unsupported type '{definition['type']}'")
        return section

    def _read_dotenv(self, provided: Optional[str | Path]) -> dict[str, str]:
        if provided is not None:
            path = Path(provided).expanduser()
        else:
            found = find_dotenv(usecwd=True)
            path = Path(found) if found else self.config_path.parent / ".env"
        if not path.exists():
            return {}
        return {key: value for key, value in dotenv_values(path).items() if value is not None}

    @staticmethod
    def coerce(name: str, raw: Any, target_type: str) -> Any:
        """Convert a raw environment or YAML value to the declared type."""

        if raw is None:
            return None
        if target_type == "str":
            return str(raw).lower() if isinstance(raw, bool) else str(raw)
        if target_type == "bool":
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
            raise ValueError(f"Variable '{name}' expects a boolean, got '{raw}'")
        try:
            return int(str(raw).strip()) if target_type == "int" else float(str(raw).strip())
        except ValueError as exc:
            raise ValueError(f"Variable '{name}' expects {target_type}, got '{raw}'") from exc

    def load(self) -> dict[str, Any]:
        """Return every declared variable: environment, then .env, then default."""

        strict = bool(self.validation.get("strict", False))
        required = set(self.validation.get("required") or [])
        resolved: dict[str, Any] = {}

        for name, definition in self.variables.items():
            source = definition["source"]
            raw = self._environ.get(source, self._dotenv.get(source))
            if raw is None:
                if strict or name in required:
                    logger.error("config_variable_missing", variable=name)
                    raise RuntimeError(
                        f"Required variable '{name}' not found in environment or .env file."
                    )
                raw = definition.get("default")
            resolved[name] = self.coerce(name, raw, str(definition.get("type", "str")))
            logger.debug(
                "config_variable_loaded",
                variable=name,
                is_set=resolved[name] is not None,
            )

        return resolved

    def settings(self) -> WorkflowSettings:
        return WorkflowSettings.from_values(self.load())


_SETTINGS: Optional[WorkflowSettings] = None


def init_settings(
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    *,
    dotenv_path: Optional[str | Path] = None,
) -> WorkflowSettings:
    """Load settings once and keep them as the process-wide instance."""

    global _SETTINGS
    if _SETTINGS is not None:
        logger.warning("settings_reinitialised", config_path=str(config_path))
    _SETTINGS = ConfigLoader(config_path, dotenv_path=dotenv_path).settings()
    return _SETTINGS


def get_settings() -> WorkflowSettings:
    if _SETTINGS is None:
        raise RuntimeError("Settings not initialised. Call init_settings().")
    return _SETTINGS


__all__ = [
    "ConfigLoader",
    "WorkflowSettings",
    "get_settings",
    "init_settings",
]
