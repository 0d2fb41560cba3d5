"""Configuration management for the publish tool.

Uses Pydantic Settings for environment-based defaults; CLI flags override
them per invocation.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Configuration(str, Enum):
    """Build configuration selector."""

    RELEASE = "Release"
    DEBUG = "Debug"

    @property
    def optimize(self) -> int:
        """Byte-compile optimization level (2 strips asserts and docstrings)."""
        return 2 if self is Configuration.RELEASE else 0

    @property
    def include_sources(self) -> bool:
        """Debug builds keep ``.py`` sources next to bytecode for tracebacks."""
        return self is Configuration.DEBUG


class BuildSettings(BaseSettings):
    """Publish tool settings."""

    cache_dir_name: str = Field(
        default="obj",
        description="Build-local cache directory, relative to the manifest's directory"
    )
    default_configuration: Configuration = Field(
        default=Configuration.RELEASE,
        description="Configuration used when -c is not given"
    )
    strict_restore: bool = Field(
        default=False,
        description="Fail restore when a dependency is missing or out of range"
    )
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_BUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_build_settings() -> BuildSettings:
    """Get cached build settings."""
    return BuildSettings()
