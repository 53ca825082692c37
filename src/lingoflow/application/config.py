from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from lingoflow.domain.constants import DEFAULT_CARD_LIMIT

CONFIG_FILES = [
    Path.home() / ".config/lingoflow/config.toml",
    Path.home() / ".lingoflow.toml",
]


class AppConfig(BaseSettings):
    """
    Configuration model for lingoflow.
    Supports loading from:
    1. Environment variables (LINGOFLOW_*)
    2. Config file (~/.config/lingoflow/config.toml)
    3. Manual overrides (CLI / server)
    """

    model_config = SettingsConfigDict(
        env_prefix="LINGOFLOW_",
        extra="ignore",
    )

    # Persistence
    store: Literal["memory", "sqlite"] = "sqlite"
    db_path: Path = Field(default_factory=lambda: Path.home() / ".lingoflow" / "lingoflow.db")

    # Text analysis
    nlp: Literal["simple", "spacy"] = "simple"
    spacy_model: str = "es_core_news_sm"
    dictionary_path: Path | None = None
    default_language: str | None = None

    # LLM
    llm: Literal["stub", "openai"] = "stub"
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"

    # Images
    image_backend: Literal["placeholder", "http"] = "placeholder"
    image_gen_url: str = "http://localhost:4000/imagegen/mock"

    # Billing
    billing: Literal["stub", "http"] = "stub"
    billing_url: str = "http://localhost:4000"
    billing_api_key: str | None = None

    # Extraction
    extraction_limit: int = DEFAULT_CARD_LIMIT
    parallel_enrichment: bool = False

    # Logging
    verbose: int = 1

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

        # First existing config file wins
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("dictionary_path", mode="before")
    @classmethod
    def resolve_dictionary_path(cls, v: Any) -> Path | None:
        if v:
            return Path(v).expanduser().resolve()
        return None


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/lingoflow/config.toml (if exists)
    3. Environment variables (LINGOFLOW_*)
    4. cli_overrides (passed from Typer or the server), None values dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
