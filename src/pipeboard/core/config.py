"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from pipeboard.core.base import BaseConfig, BaseState
from pipeboard.core.log import Logger, setup_logger
from pipeboard.core.yaml_settings import YamlWithIncludesSettingsSource
from pipeboard.model.display import DisplayDescriptor, Palette

# Modules reachable from templates in YAML values, e.g.
# {platformdirs.user_state_dir} or {os.getcwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

_TEMPLATE = re.compile(r'\{([a-z._]+)\}')


# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class DashboardConfig(BaseConfig):
    """What to render and how often."""

    name: str = Field(
        default="dashboard",
        description="Dashboard name, used for the log service name",
    )
    team: str | None = Field(
        default=None,
        description=(
            "Team whose private pipelines are shown alongside public "
            "ones; unset shows public pipelines only"
        ),
    )
    base_url: str = Field(
        default="",
        description="Prefix for build links (e.g. https://ci.example.com)",
    )
    refresh_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between dashboard re-evaluations",
    )
    events_file: Path | None = Field(
        default=None,
        description="YAML file of pipeline events to replay",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default_factory=Logger,
        description="Logger configuration and runtime instance",
    )
    dashboard: DashboardConfig = Field(
        default_factory=DashboardConfig,
        description="Dashboard rendering settings",
    )
    palette: Palette = Field(
        default_factory=Palette,
        description="Background colour per pipeline state",
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "pipeboard"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )

    def setup_logging(self) -> None:
        """Install the global logger from the `logger` section."""
        setup_logger(
            log_root=self.log_root,
            service_name=self.dashboard.name,
            level=self.logger.level,
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )

    def close(self):
        """Close the global logger, then the closeable children."""
        from pipeboard.core.log import logger
        logger.close()
        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable while running)
# ============================================================

class DashboardState(BaseState):
    """Dashboard runtime state."""

    board: Any = Field(
        default=None,
        description="Active Dashboard instance",
    )
    published: list[DisplayDescriptor] = Field(
        default_factory=list,
        description="Descriptors from the most recent refresh",
    )
    events_applied: int = Field(
        default=0,
        description="Events consumed from the events file (rejected included)",
    )
    status: str = Field(
        default="pending",
        description="Run status: pending, running, complete, failed",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """All runtime state, grouped by concern."""

    dashboard: DashboardState = Field(
        default_factory=DashboardState,
        description="Dashboard runtime state",
    )


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Configuration plus runtime state; passed to every command.

    Sources, highest priority first: constructor/CLI arguments,
    YAML files (defaults, user, project, --include), .env,
    PIPEBOARD_* environment variables, file secrets.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates while running)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="pipeboard.yaml",
        env_file=".env",
        env_prefix="PIPEBOARD_",
        env_nested_delimiter="__",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _finish_loading(self) -> "State":
        """Substitute templates, then bring up logging.

        Logging comes last so that templated paths such as
        log_root are already resolved.
        """
        self._substitute_recursive(self)
        self.config.setup_logging()
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                obj[i] = self._substitute_value(item)

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {dotted.path} templates with resolved values.

        Examples:
            "{platformdirs.user_log_dir}" -> "~/.local/state/pipeboard/log"
            "{config.dashboard.name}.log" -> "dashboard.log"

        Unresolvable templates are left untouched.
        """
        def replace_template(match):
            parts = match.group(1).split(".")
            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('pipeboard', appauthor=False)
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return _TEMPLATE.sub(replace_template, value)


__all__ = ["State", "Config", "DashboardConfig", "BaseConfig", "BaseState"]
