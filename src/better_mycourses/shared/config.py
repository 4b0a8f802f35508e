"""
Configuration Module - Settings for the Moodle client, cache and API.
=====================================================================

Precedence, lowest first: model defaults, config/settings.yaml, a .env file,
the process environment. Nested keys use a double underscore
(``CACHE__TTL__PROFILE=60``). ``JWT_SECRET``, ``MOODLE_BASE_URL`` and
``LOG_LEVEL`` are accepted as flat shortcuts.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# .env values become process environment before Settings reads it
load_dotenv()


def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:142.0) Gecko/20100101 Firefox/142.0"
)


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class MoodleConfig(BaseModel):
    """Endpoints and transport settings for the upstream Moodle instance."""

    base_url: str = "https://mycourses.ict.mahidol.ac.th"
    saml_login_path: str = "/auth/saml2/login.php"
    saml_idp: str = "333b5ee96be2a2062bb8ca7793f7212d"
    idp_origin: str = "https://idp.mahidol.ac.th"
    home_path: str = "/my/"
    profile_path: str = "/user/profile.php"
    attendance_path: str = "/course/attendance.php"
    course_view_path: str = "/course/view.php"
    quiz_view_path: str = "/mod/quiz/view.php"
    assign_view_path: str = "/mod/assign/view.php"
    service_path: str = "/lib/ajax/service.php"
    session_cookie: str = "MoodleSession"
    username_prefix: str = "STUDENT\\"
    timeout: float = 30.0
    max_retries: int = 2
    retry_min_wait: int = 1
    retry_max_wait: int = 5
    max_workers: int = 6
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def login_url(self) -> str:
        """Full SAML initiation URL including the return target."""
        from urllib.parse import urlencode

        query = urlencode(
            {"wants": self.base_url.rstrip("/") + "/", "idp": self.saml_idp, "passive": "off"}
        )
        return f"{self.url(self.saml_login_path)}?{query}"

    def url(self, path: str) -> str:
        """Join a site-relative path onto the base URL."""
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")


class CacheTTLConfig(BaseModel):
    """Per-entity time-to-live values in seconds."""

    profile: int = 900
    courses: int = 3600
    attendance: int = 300
    content: int = 300
    syllabus: int = 900
    validation: int = 300
    activity: int = 300


class CacheConfig(BaseModel):
    """In-memory response cache settings."""

    prefix: str = "mycourses"
    sweep_interval: float = 300.0
    cascade_on_logout: bool = False
    ttl: CacheTTLConfig = Field(default_factory=CacheTTLConfig)


class AuthConfig(BaseModel):
    """Bearer token settings for the API facade."""

    jwt_secret: str = "your-super-secret-jwt-key-change-this-in-production"
    algorithm: str = "HS256"
    token_expiry_seconds: int = 7 * 24 * 3600


class ApiConfig(BaseModel):
    """HTTP facade settings."""

    title: str = "Better MyCourses API"
    prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """Root settings object; build it with ``get_settings`` rather than directly."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Top-level environment overrides
    jwt_secret: Optional[str] = Field(default=None, validation_alias="JWT_SECRET")
    moodle_base_url: Optional[str] = Field(default=None, validation_alias="MOODLE_BASE_URL")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    moodle: MoodleConfig = Field(default_factory=MoodleConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs and must lose to the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("jwt_secret", "moodle_base_url", "log_level", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Optional[str]:
        """Treat blank environment values as unset."""
        if v is None or str(v).strip() == "":
            return None
        return str(v)

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return PROJECT_ROOT

    def get_effective_moodle(self) -> MoodleConfig:
        """Get the Moodle config with the MOODLE_BASE_URL override applied."""
        if self.moodle_base_url:
            return self.moodle.model_copy(update={"base_url": self.moodle_base_url})
        return self.moodle

    def get_effective_jwt_secret(self) -> str:
        """Get the effective token secret (env override or config)."""
        return self.jwt_secret or self.auth.jwt_secret

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; a missing or empty file yields no overrides."""
    if not path.is_file():
        return {}

    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(loaded).__name__}")
    return loaded


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Build settings from the YAML file (default: config/settings.yaml) and the environment."""
    return Settings(**_read_yaml(config_path or DEFAULT_CONFIG_FILE))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the process-wide settings, built on first use.

    The API app, the CLI and the service all read through here, so tests
    that change the environment must call ``reload_settings``.

    Example:
        >>> settings = get_settings()
        >>> print(settings.cache.ttl.courses)
        3600
    """
    return _create_settings()


def reload_settings() -> Settings:
    """Drop the cached settings and build them again from YAML and the environment."""
    get_settings.cache_clear()
    return get_settings()
