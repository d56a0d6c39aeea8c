import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from reviewkit.domain.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_NEW_LIMIT,
    DEFAULT_REVIEW_LIMIT,
)

CONFIG_DIR = Path.home() / ".config/reviewkit"


class AppConfig(BaseSettings):
    """
    Configuration model for reviewkit.
    Supports loading from:
    1. Environment variables (REVIEWKIT_*)
    2. Config file (~/.config/reviewkit/config.toml)
    3. Manual overrides (CLI / server)
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEWKIT_",
        extra="ignore",
    )

    # Storage
    backend: Literal["memory", "sqlite"] = "sqlite"
    db_path: Path = Field(default_factory=lambda: CONFIG_DIR / "reviewkit.db")

    # Study sessions
    session_limit: int = Field(default=DEFAULT_REVIEW_LIMIT, ge=1)
    new_card_limit: int = Field(default=DEFAULT_NEW_LIMIT, ge=0)
    shuffle_sessions: bool = True

    # Review submission
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)

    # Root logger level; None keeps the entry point default (CLI WARNING, server INFO).
    log_level: str | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Earlier sources win: overrides, then env, then the TOML file.
        toml_file = CONFIG_DIR / "config.toml"
        if toml_file.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_db_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str | None:
        if v is None:
            return None
        level = str(v).upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


def resolve_config(overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/reviewkit/config.toml (if exists)
    3. Environment variables (REVIEWKIT_*)
    4. overrides (None values are ignored)
    """
    clean = {k: v for k, v in (overrides or {}).items() if v is not None}
    return AppConfig(**clean)
