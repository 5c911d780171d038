"""
mongocache — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
Resource options accept both the snake_case names and the camelCase names
used by MongoDB connection strings (replicaSet, connectTimeoutMS, ...).
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, model_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class MongoResourceConfig(BaseModel):
    """Connection settings of one MongoDB resource."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    servers: str | list[Any] = Field(default="localhost:27017", description="Server list")
    database: str = Field(
        default="cache",
        validation_alias=AliasChoices("database", "db"),
        description="Database holding the cache collection",
    )
    collection: str = Field(default="cache", description="Cache collection name")
    replica_set: str | None = Field(default=None, alias="replicaSet", description="Replica set name")
    username: str | None = Field(default=None, description="Username")
    password: SecretStr | None = Field(default=None, description="Password")
    auth_source: str | None = Field(default=None, alias="authSource", description="Authentication database")
    connect_timeout_ms: int | None = Field(default=None, ge=0, alias="connectTimeoutMS")
    socket_timeout_ms: int | None = Field(default=None, ge=0, alias="socketTimeoutMS")
    w_timeout_ms: int | None = Field(default=None, ge=0, alias="wTimeoutMS")
    connect: bool = Field(default=True, description="Connect eagerly when the client is built")
    tls: bool | None = Field(default=None, validation_alias=AliasChoices("tls", "ssl"))
    fsync: bool | None = Field(default=None)
    journal: bool | None = Field(default=None)
    w: int | str | list[str] = Field(default=1, description="Write concern")
    read_preference: str | None = Field(default=None, alias="readPreference")
    read_preference_tags: list[str] | None = Field(default=None, alias="readPreferenceTags")

    def to_options(self) -> dict[str, Any]:
        """Options keyed by canonical name, ready for MongoDBResourceManager.set_resource()."""
        options = self.model_dump(exclude_none=True)
        if self.password is not None:
            options["password"] = self.password.get_secret_value()
        return options

    @model_validator(mode="after")
    def validate_against_option_rules(self) -> "MongoResourceConfig":
        """Apply the same rules the resource manager enforces."""
        # Imported here: the cache package imports this module through its factory
        from ..cache.backends.mongodb.option_rules import validate_options
        from ..errors import ConfigurationError

        try:
            validate_options(self.to_options())
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return self


class CacheConfig(BaseModel):
    """Cache configuration."""

    resource_id: str = Field(default="default", description="Resource id used by the default cache")
    namespace: str = Field(default="mongocache", description="Cache namespace")
    ttl_seconds: int = Field(default=0, ge=0, description="TTL in seconds (0 = no expiry)")
    key_pattern: str | None = Field(default=None, description="Regular expression every key must match")
    resources: dict[str, MongoResourceConfig] = Field(
        default_factory=lambda: {"default": MongoResourceConfig()},
        description="Resources by id",
    )

    @model_validator(mode="after")
    def validate_resource_id(self) -> "CacheConfig":
        """Ensure the selected resource is configured."""
        if self.resource_id not in self.resources:
            raise ValueError(f"resource_id '{self.resource_id}' has no entry in resources")
        return self


class MongoCacheConfig(BaseModel):
    """Root configuration for mongocache."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON logs")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
