from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".personal-youtube"
OAUTH_CALLBACK_PATH = "/oauth2callback"
PROVIDER_MAX_PAGE_SIZE = 50
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "supports_total_count",
    "supports_sort_and_cursor_reuse",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{PERSONAL_YOUTUBE_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Runtime configuration for the personal YouTube repository service.

    Every option is read from `PERSONAL_YOUTUBE_*` environment variables (or `.env`).
    The OAuth client credentials are owned by the host and only ever read here.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERSONAL_YOUTUBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for session state and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite session-state database. {_data_dir_default_note(Path('state.db'))}",
    )

    # OAuth client registration.
    client_id: str | None = Field(
        default=None,
        description="Google OAuth client ID registered for this site.",
    )
    client_secret: str | None = Field(
        default=None,
        description="Google OAuth client secret registered for this site.",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description=(
            "Externally reachable base URL of this service. The OAuth redirect URI is "
            f"this value followed by `{OAUTH_CALLBACK_PATH}`."
        ),
    )

    # Listing behavior.
    page_size: int = Field(
        default=29,
        ge=1,
        le=PROVIDER_MAX_PAGE_SIZE,
        description="Videos per listing/search page (the YouTube API caps pages at 50).",
    )
    supports_total_count: bool = Field(
        default=True,
        description="Report the provider's total result count in page results.",
    )
    supports_sort_and_cursor_reuse: bool = Field(
        default=True,
        description=(
            "Cache the last search keyword/sort per repository and continue searches "
            "with the provider's next page token."
        ),
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    @property
    def redirect_uri(self) -> str:
        return f"{self.public_base_url}{OAUTH_CALLBACK_PATH}"

    @field_validator("public_base_url", mode="before")
    @classmethod
    def _normalize_public_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("PERSONAL_YOUTUBE_PUBLIC_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("PERSONAL_YOUTUBE_PUBLIC_BASE_URL must not be empty.")
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("client_id", "client_secret", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _validate_oauth_configuration(
    *,
    client_id: str | None,
    client_secret: str | None,
) -> None:
    errors: list[str] = []

    if client_id is None:
        errors.append("PERSONAL_YOUTUBE_CLIENT_ID is required.")
    if client_secret is None:
        errors.append("PERSONAL_YOUTUBE_CLIENT_SECRET is required.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid OAuth client configuration:\n{bullets}")


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_oauth_secrets: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_oauth_secrets:
        _validate_oauth_configuration(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
        )

    return settings
