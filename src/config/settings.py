"""Application settings with Pydantic Settings validation.

Secrets (tokens, API keys) are loaded from .env file.
Non-sensitive configuration is loaded from config/*.yaml files.
All configs are automatically merged and validated against JSON schemas.
"""

import json
from pathlib import Path
from typing import Any, Final, Literal, cast

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.logging_config import get_logger
from src.services.candidate_scorer import MatcherConfig

MATRIX_HOMESERVER_DEFAULT: Final[str] = "https://matrix.org"
DB_PATH_DEFAULT: Final[str] = "data/processed_posts.db"
HTTP_TIMEOUT_SECONDS_DEFAULT: Final[float] = 30.0
ITEM_DELAY_SECONDS_DEFAULT: Final[float] = 2.0
POLL_INTERVAL_SECONDS_DEFAULT: Final[float] = 900.0

logger = cast(Any, get_logger(__name__))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_schema(schema_name: str) -> dict[str, Any]:
    """Load JSON Schema from config/schemas/.

    Args:
        schema_name: Schema name without extension (e.g., "main")

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = Path("config/schemas") / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any], schema_name: str, file_path: str = ""
) -> None:
    """Validate config section against JSON Schema.

    Args:
        config: Configuration dictionary to validate
        schema_name: Name of schema to validate against
        file_path: Optional file path for error messages

    Raises:
        ValueError: If validation fails
    """
    schema = load_schema(schema_name)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ValueError(error_msg) from e


def _load_yaml_file(path: Path, schema_name: str) -> dict[str, Any] | None:
    try:
        with open(path, encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(
            "config_file_load_failed",
            path=str(path),
            error=str(e),
        )
        return None

    try:
        validate_config_section(file_config, schema_name, str(path))
    except ValueError as e:
        logger.error(
            "config_validation_failed",
            path=str(path),
            schema=schema_name,
            error=str(e),
        )
        raise

    logger.debug("config_file_loaded", path=str(path), schema=schema_name)
    return file_config


def load_all_configs() -> dict[str, Any]:
    """Load and merge all YAML configs from config/ directory.

    Loading order (later overrides earlier):
    1. config/main.yaml
    2. All other config/*.yaml files (sorted alphabetically)

    Each file is validated against config/schemas/<stem>.schema.json if present.

    Returns:
        Merged configuration dictionary
    """
    merged_config: dict[str, Any] = {}
    file_count = 0

    main_path = Path("config/main.yaml")
    if main_path.exists():
        main_config = _load_yaml_file(main_path, "main")
        if main_config is not None:
            merged_config = main_config
            file_count += 1

    config_dir = Path("config")
    if config_dir.exists() and config_dir.is_dir():
        yaml_files = sorted(
            f for f in config_dir.glob("*.yaml") if f.name != "main.yaml"
        )
        for yaml_file in yaml_files:
            file_config = _load_yaml_file(yaml_file, yaml_file.stem)
            if file_config is None:
                continue
            merged_config = deep_merge(merged_config, file_config)
            file_count += 1

    logger.info("config_load_complete", file_count=file_count)
    return merged_config


class Settings(BaseSettings):
    """Application settings.

    Secrets are loaded from .env file.
    Non-sensitive config is loaded from config/*.yaml with fallback to defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === SECRETS (from .env) ===

    matrix_access_token: SecretStr = Field(
        ..., description="Matrix bot access token (from .env)"
    )
    igdb_client_id: str = Field(..., description="Twitch application client ID")
    igdb_client_secret: SecretStr = Field(
        ..., description="Twitch application client secret (from .env)"
    )
    matrix_user: str = Field(
        default="", description="Matrix login user for token recovery (from .env)"
    )
    matrix_password: SecretStr | None = Field(
        default=None, description="Matrix login password for token recovery (from .env)"
    )

    def matrix_password_login(self) -> tuple[str, str] | None:
        """Return (user, password) when password login is configured."""
        user = self.matrix_user.strip()
        password = (
            self.matrix_password.get_secret_value() if self.matrix_password else ""
        )
        if not user or not password:
            return None
        return user, password

    @field_validator("matrix_access_token", "igdb_client_secret", mode="before")
    @classmethod
    def _ensure_secret(
        cls, value: SecretStr | str | None, info: ValidationInfo
    ) -> SecretStr:
        if value is None:
            raise ValueError(f"{info.field_name} must be provided")

        if isinstance(value, SecretStr):
            secret_value = value.get_secret_value()
        else:
            secret_value = str(value)

        if not secret_value.strip():
            raise ValueError(f"{info.field_name} must not be empty")

        return value if isinstance(value, SecretStr) else SecretStr(secret_value)

    @field_validator("igdb_client_id")
    @classmethod
    def _ensure_client_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("igdb_client_id must not be empty")
        return value.strip()

    def __init__(self, **data: Any):
        """Initialize settings with auto-loaded configs from all YAML files."""
        config = load_all_configs()

        super().__init__(**data)
        self._apply_yaml_defaults(config)

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding env-provided values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            object.__setattr__(self, field_name, value)
            self.model_fields_set.add(field_name)

        matrix_config = config.get("matrix") or {}
        _assign("matrix_homeserver", matrix_config.get("homeserver"))
        _assign("matrix_user_id", matrix_config.get("user_id"))
        _assign("matrix_room_id", matrix_config.get("room_id"))
        _assign("matrix_max_retries", matrix_config.get("max_retries"))

        feed_config = config.get("feed") or {}
        _assign("feed_url", feed_config.get("url"))

        igdb_config = config.get("igdb") or {}
        _assign("igdb_search_limit", igdb_config.get("search_limit"))
        _assign("igdb_timeout_seconds", igdb_config.get("timeout_seconds"))

        media_config = config.get("media") or {}
        _assign("thumbnail_width", media_config.get("thumbnail_width"))
        _assign("thumbnail_height", media_config.get("thumbnail_height"))
        _assign("max_screenshots", media_config.get("max_screenshots"))
        _assign(
            "screenshot_batch_timeout_seconds",
            media_config.get("batch_timeout_seconds"),
        )
        _assign("screenshot_order", media_config.get("screenshot_order"))
        _assign("screenshot_workers", media_config.get("workers"))
        _assign("reply_delay_seconds", media_config.get("reply_delay_seconds"))
        _assign("fetch_max_attempts", media_config.get("fetch_max_attempts"))
        _assign("http_timeout_seconds", media_config.get("http_timeout_seconds"))

        processing_config = config.get("processing") or {}
        _assign("item_delay_seconds", processing_config.get("item_delay_seconds"))
        _assign(
            "poll_interval_seconds", processing_config.get("poll_interval_seconds")
        )
        _assign("summary_length", processing_config.get("summary_length"))

        database_config = config.get("database") or {}
        _assign("db_path", database_config.get("path"))

        logging_config = config.get("logging") or {}
        _assign("log_level", logging_config.get("level"))
        _assign("log_json", logging_config.get("json"))

        matcher_overrides = config.get("matcher")
        if isinstance(matcher_overrides, dict):
            _assign("matcher_overrides", matcher_overrides)

    # Matrix configuration
    matrix_homeserver: str = Field(
        default=MATRIX_HOMESERVER_DEFAULT, description="Matrix homeserver base URL"
    )
    matrix_user_id: str = Field(default="", description="Bot user ID (informational)")
    matrix_room_id: str = Field(default="", description="Room receiving notifications")
    matrix_max_retries: int = Field(
        default=3, ge=1, description="Attempts per Matrix request"
    )

    # Feed configuration
    feed_url: str = Field(default="", description="Release RSS/Atom feed URL")

    # IGDB configuration
    igdb_search_limit: int = Field(
        default=10, ge=1, le=500, description="Candidates requested per search"
    )
    igdb_timeout_seconds: float = Field(
        default=HTTP_TIMEOUT_SECONDS_DEFAULT, gt=0, description="IGDB request timeout"
    )

    # Media configuration
    thumbnail_width: int = Field(default=225, ge=1, description="Thumbnail width")
    thumbnail_height: int = Field(default=300, ge=1, description="Thumbnail height")
    max_screenshots: int = Field(
        default=5, ge=0, description="Screenshots posted per game"
    )
    screenshot_batch_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Deadline for preparing all screenshots"
    )
    screenshot_order: Literal["index", "completion"] = Field(
        default="index", description="Reply order: catalog index or completion"
    )
    screenshot_workers: int = Field(
        default=5, ge=1, description="Concurrent screenshot preparations"
    )
    reply_delay_seconds: float = Field(
        default=0.5, ge=0, description="Delay between thread replies"
    )
    fetch_max_attempts: int = Field(
        default=3, ge=1, description="Download attempts per image"
    )
    http_timeout_seconds: float = Field(
        default=HTTP_TIMEOUT_SECONDS_DEFAULT, gt=0, description="HTTP timeout"
    )

    # Processing configuration
    item_delay_seconds: float = Field(
        default=ITEM_DELAY_SECONDS_DEFAULT, ge=0, description="Delay between items"
    )
    poll_interval_seconds: float = Field(
        default=POLL_INTERVAL_SECONDS_DEFAULT, gt=0, description="Feed poll interval"
    )
    summary_length: int = Field(
        default=200, ge=10, description="Maximum caption summary length"
    )

    # Database configuration
    db_path: str = Field(default=DB_PATH_DEFAULT, description="SQLite ledger path")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # Matcher configuration
    matcher_overrides: dict[str, Any] = Field(
        default_factory=dict, description="Overrides for MatcherConfig fields"
    )

    def matcher_config(self) -> MatcherConfig:
        """Build the scorer configuration from defaults and YAML overrides.

        Raises:
            pydantic.ValidationError: If an override is out of range
        """
        overrides = dict(self.matcher_overrides)
        keywords = overrides.get("penalty_keywords")
        if isinstance(keywords, list):
            overrides["penalty_keywords"] = tuple(str(k) for k in keywords)
        return MatcherConfig(**overrides)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
