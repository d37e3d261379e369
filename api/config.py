"""Settings management for the Docsmith API.

This module provides centralized configuration management using pydantic-settings.
All configuration is loaded from environment variables with sensible defaults.
"""

import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: Name of the application.
        app_version: Application version.
        debug: Enable debug mode.
        log_level: Logging level.
        log_json: Render logs as JSON lines.

        neo4j_uri: Neo4j connection URI.
        neo4j_user: Neo4j username.
        neo4j_password: Neo4j password.
        neo4j_database: Neo4j database name.

        workspace_base_dir: Directory holding per-run workspaces.
        clone_depth: Shallow clone depth, None for full history.
        clone_timeout_seconds: Time budget of one clone.
        run_timeout_seconds: Time budget of one pipeline run, None for unlimited.
        supersede_inflight: Cancel older runs of a project on a newer push.
        history_size: Number of run outcomes kept in memory.

        api_prefix: API route prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="Docsmith API", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    # Neo4j settings
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI",
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(default="password", description="Neo4j password")
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")

    # Ingestion settings
    workspace_base_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "docsmith",
        description="Directory holding per-run workspaces",
    )
    clone_depth: int | None = Field(
        default=1,
        ge=1,
        description="Shallow clone depth, None for full history",
    )
    clone_timeout_seconds: int = Field(
        default=300,
        gt=0,
        description="Time budget of one clone in seconds",
    )
    run_timeout_seconds: float | None = Field(
        default=900.0,
        gt=0,
        description="Time budget of one pipeline run in seconds",
    )
    supersede_inflight: bool = Field(
        default=False,
        description="Cancel older unfinished runs of a project on a newer push",
    )
    history_size: int = Field(
        default=100,
        ge=1,
        description="Number of run outcomes kept in memory",
    )

    # API settings
    api_prefix: str = Field(default="/api/v1", description="API route prefix")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are loaded once and reused.

    Returns:
        The application settings instance.
    """
    return Settings()
