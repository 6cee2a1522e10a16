"""
Configuration Settings.

This module defines the toolgate configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MANIFEST_PATH = ".toolgate/mcp_config.json"
DEFAULT_AGENT_MARKER = "TOOLGATE_AGENT"


class Settings(BaseSettings):
    """
    toolgate settings model.

    All properties are automatically bound from environment variables and .env file.
    Components take explicit arguments; this model only supplies their defaults.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Workspace
    # =====================================================================
    workspace_root: Optional[str] = Field(
        default=None,
        description="Absolute workspace root every file and command is confined to",
        alias="TOOLGATE_WORKSPACE_ROOT",
    )
    mcp_manifest_path: str = Field(
        default=DEFAULT_MANIFEST_PATH,
        description="Workspace-relative path of the MCP provider manifest",
        alias="TOOLGATE_MCP_MANIFEST",
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="TOOLGATE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="TOOLGATE_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="TOOLGATE_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Also write DEBUG logs to <log_file_dir>/toolgate.log",
        alias="TOOLGATE_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Execution
    # =====================================================================
    agent_marker_env: str = Field(
        default=DEFAULT_AGENT_MARKER,
        description="Environment variable set to '1' for every agent-driven shell command",
        alias="TOOLGATE_AGENT_MARKER",
    )
    confirmation_timeout_seconds: Optional[float] = Field(
        default=300.0,
        gt=0,
        description="How long to wait for a human decision before treating it as a denial (None waits forever)",
        alias="TOOLGATE_CONFIRM_TIMEOUT",
    )
    command_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Cancel shell commands that run longer than this (None disables)",
        alias="TOOLGATE_COMMAND_TIMEOUT",
    )
    confirm_file_reads: bool = Field(
        default=True,
        description="Require human confirmation before read_file returns content",
        alias="TOOLGATE_CONFIRM_READS",
    )
    max_read_bytes: int = Field(
        default=2_000_000,
        ge=1,
        description="Refuse to read files larger than this many bytes",
        alias="TOOLGATE_MAX_READ_BYTES",
    )

    # =====================================================================
    # MCP providers
    # =====================================================================
    provider_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-provider timeout for fan-out listing requests",
        alias="TOOLGATE_PROVIDER_TIMEOUT",
    )


settings = Settings()
