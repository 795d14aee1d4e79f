"""Crawler configuration loaded from environment variables."""

from __future__ import annotations

import json
import logging
import re
from typing import Annotated, Any
from urllib.parse import quote

from pydantic import Field, ValidationError, ValidationInfo, computed_field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
)

logger = logging.getLogger(__name__)

DEFAULT_NODE_URLS = ("ws://0.0.0.0:9944",)
REDACTED = "***"

_BASE10 = re.compile(r"[+-]?[0-9]+")


class ConfigurationError(ValueError):
    """Raised when an environment variable cannot be coerced to its field type."""

    def __init__(self, problems: list[tuple[str, str]]) -> None:
        self.variables = [name for name, _ in problems]
        details = "; ".join(f"{name}: {reason}" for name, reason in problems)
        super().__init__(f"Invalid crawler configuration ({details})")


def _default_for(cls: type[BaseSettings], info: ValidationInfo) -> Any:
    return cls.model_fields[info.field_name].get_default(call_default_factory=True)


def _base10(value: Any) -> Any:
    """Plain decimal integers only: no underscores, no floats, no hex."""
    if isinstance(value, str):
        text = value.strip()
        if not _BASE10.fullmatch(text):
            raise ValueError(f"expected a base-10 integer, got {value!r}")
        return int(text)
    return value


class PostgresConfig(BaseSettings):
    """Connection parameters for the relational store (POSTGRES_* variables)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    host: str = Field(default="0.0.0.0", validation_alias="POSTGRES_HOST")
    port: int = Field(default=5432, validation_alias="POSTGRES_PORT")
    user: str = Field(default="reefexplorer", validation_alias="POSTGRES_USER")
    database: str = Field(default="reefexplorer", validation_alias="POSTGRES_DATABASE")
    password: str = Field(default="reefexplorer", validation_alias="POSTGRES_PASSWORD", repr=False)

    @field_validator("host", "user", "database", "password", "port", mode="before")
    @classmethod
    def _empty_means_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value == "":
            return _default_for(cls, info)
        if info.field_name == "port":
            return _base10(value)
        return value

    @property
    def dsn(self) -> str:
        """libpq-style URL, credentials percent-encoded."""
        return (
            f"postgresql://{quote(self.user, safe='')}:{quote(self.password, safe='')}"
            f"@{self.host}:{self.port}/{quote(self.database, safe='')}"
        )


# Fields built only from init kwargs, never looked up in the environment
_NESTED_FIELDS = frozenset({"postgres_config"})


class _FlatEnvSource(EnvSettingsSource):
    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        if field_name in _NESTED_FIELDS:
            return None, field_name, False
        return super().get_field_value(field, field_name)


class _FlatDotEnvSource(DotEnvSettingsSource):
    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        if field_name in _NESTED_FIELDS:
            return None, field_name, False
        return super().get_field_value(field, field_name)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Node RPC endpoints, JSON array in the environment
    node_urls: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_NODE_URLS,
        min_length=1,
        validation_alias="NODE_PROVIDER_URLS",
    )

    # Block ingestion tuning
    start_block_size: int = Field(default=32, validation_alias="START_BLOCK_SIZE")
    max_blocks_per_step: int = Field(default=256, validation_alias="MAX_BLOCKS_PER_STEP")
    chunk_size: int = Field(default=1024, validation_alias="CHUNK_SIZE")
    poll_interval: int = Field(default=100, validation_alias="POLL_INTERVAL")  # milliseconds

    # Error reporting
    sentry_dns: str = Field(default="", validation_alias="SENTRY_DNS")

    # Deployment; copied verbatim, so an empty value stays empty
    environment: str | None = Field(default=None, validation_alias="ENVIRONMENT")
    network: str | None = Field(default=None, validation_alias="NETWORK")
    reefswap_factory_address: str = Field(default="", validation_alias="FACTORY_ADDRESS")

    # Contract sync
    subcontract_interval: int = Field(default=100, validation_alias="SUBCONTRACT_INTERVAL")
    verified_contract_sync_interval: int = Field(
        default=100, validation_alias="VERIFIED_CONTRACT_SYNC_INTERVAL"
    )
    verified_contract_sync: bool = Field(default=False, validation_alias="VERIFIED_CONTRACT_SYNC")
    live_graphql_url: str = Field(
        default="http://localhost:8080/v1/graphql", validation_alias="LIVE_GRAPHQL_URL"
    )

    postgres_config: PostgresConfig = Field(default_factory=PostgresConfig)

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
            _FlatEnvSource(settings_cls),
            _FlatDotEnvSource(settings_cls),
            file_secret_settings,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sentry_backtracking_dns(self) -> str:
        """Backtracking worker reports to the same DSN as the main crawler."""
        return self.sentry_dns

    @field_validator("node_urls", mode="before")
    @classmethod
    def _parse_node_urls(cls, value: Any) -> Any:
        if value == "":
            return DEFAULT_NODE_URLS
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"expected a JSON array of strings ({exc.msg})") from exc
        return value

    @field_validator(
        "start_block_size",
        "max_blocks_per_step",
        "chunk_size",
        "poll_interval",
        "subcontract_interval",
        "verified_contract_sync_interval",
        mode="before",
    )
    @classmethod
    def _parse_int(cls, value: Any, info: ValidationInfo) -> Any:
        if value == "":
            return _default_for(cls, info)
        return _base10(value)

    @field_validator("sentry_dns", "reefswap_factory_address", "live_graphql_url", mode="before")
    @classmethod
    def _empty_means_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value == "":
            return _default_for(cls, info)
        return value

    @field_validator("verified_contract_sync", mode="before")
    @classmethod
    def _exact_true(cls, value: Any) -> Any:
        # Only the literal lowercase "true" enables sync
        if isinstance(value, str):
            return value == "true"
        return value

    def redacted(self) -> dict[str, Any]:
        """model_dump() with credentials masked, safe to log or print."""
        data = self.model_dump()
        for key in ("sentry_dns", "sentry_backtracking_dns"):
            if data[key]:
                data[key] = REDACTED
        if data["postgres_config"]["password"]:
            data["postgres_config"]["password"] = REDACTED
        return data


def _problems(exc: ValidationError) -> list[tuple[str, str]]:
    """Map pydantic error locations (the variable aliases) to (name, reason)."""
    problems = []
    for error in exc.errors():
        loc = error.get("loc") or ("?",)
        problems.append((str(loc[0]), error["msg"]))
    return problems


def load_settings() -> Settings:
    """Read the environment once and build the crawler configuration.

    Raises:
        ConfigurationError: a variable is set but cannot be coerced, e.g.
            malformed JSON in NODE_PROVIDER_URLS or a non-numeric POSTGRES_PORT.
    """
    problems: list[tuple[str, str]] = []
    causes: list[Exception] = []

    postgres: PostgresConfig | None = None
    try:
        postgres = PostgresConfig()
    except ValidationError as exc:
        problems.extend(_problems(exc))
        causes.append(exc)
    except SettingsError as exc:
        problems.append(("POSTGRES_*", str(exc)))
        causes.append(exc)

    # Keep validating the rest so every bad variable is reported at once
    try:
        settings = Settings(postgres_config=postgres or PostgresConfig.model_construct())
    except ValidationError as exc:
        problems.extend(_problems(exc))
        causes.append(exc)
    except SettingsError as exc:
        problems.append(("environment", str(exc)))
        causes.append(exc)

    if problems:
        raise ConfigurationError(problems) from causes[0]

    logger.debug(
        "Loaded crawler configuration: %d node(s), network=%s",
        len(settings.node_urls),
        settings.network,
    )
    return settings
