"""Configuration settings for the Snapshot Mock API."""
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """
    Application settings.

    Values resolve from the process environment first, then the local
    .env file, then the local config.json file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        json_file="config.json",
        json_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    # Document store
    mongo_uri: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("mongo_uri", "MONGO_URI"),
    )
    mongo_database: str = "test_data"
    mongo_collection: str = "snapshot"

    # Store timeouts (seconds)
    connect_timeout_seconds: float = 10.0
    operation_timeout_seconds: float = 10.0
    scan_timeout_seconds: float = 30.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Service identification
    service_name: str = "snapshot-mock-api"

    @field_validator("mongo_uri", mode="before")
    @classmethod
    def _blank_uri_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

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
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )


settings = Settings()
