"""Configuration management using Pydantic settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "recipe-engine"

DEFAULT_FIELDS_SCHEMA = Path(__file__).parent / "recipes" / "data" / "fields.json"


class EngineSettings(BaseSettings):
    """Interpreter defaults.

    Variable names carry no prefix: recipes and deployment environments refer
    to them directly (``$SYSTEM_LANGUAGE`` in templates, ``MIN_PAGE_LOAD_TIMEOUT``
    in the process environment).
    """

    model_config = SettingsConfigDict(extra="ignore")

    system_language: str = Field(default="en", description="Caller language, e.g. en or es_ES")
    system_region: str = Field(default="US", description="Caller region, e.g. US or ES")
    default_page_load_timeout: int = Field(default=30_000, description="Navigation timeout in ms when a step sets none")
    min_page_load_timeout: int = Field(default=5_000, description="Lower bound in ms for per-step navigation timeouts")
    fields_schema_path: Optional[str] = Field(default=None, description="Override for the output field schema file")

    def load_timeout(self, step_timeout: int | None) -> int:
        """Resolve the navigation timeout for a load step (milliseconds)."""
        if step_timeout is None:
            return self.default_page_load_timeout
        return max(step_timeout, self.min_page_load_timeout)

    def get_fields_schema_path(self) -> Path:
        if self.fields_schema_path:
            return Path(self.fields_schema_path).expanduser()
        return DEFAULT_FIELDS_SCHEMA


class BrowserSettings(BaseSettings):
    """Browser configuration."""

    model_config = SettingsConfigDict(env_prefix="RECIPE_BROWSER_")

    headless: bool = Field(default=True)
    cdp_url: Optional[str] = Field(default=None, description="Attach to an already running browser over CDP")
    user_agent: Optional[str] = Field(default=None, description="User-Agent used until a recipe overrides it")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="RECIPE_LOG_")

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False, description="Render log lines as JSON instead of console text")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Defaults
    """

    model_config = SettingsConfigDict(extra="ignore")

    engine: EngineSettings = Field(default_factory=EngineSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


settings = AppSettings()
