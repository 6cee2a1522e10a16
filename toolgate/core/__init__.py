"""
Core utilities and configuration for toolgate.

This package provides settings loading and logging configuration shared by
the execution and MCP subpackages.
"""

from toolgate.core.config import Settings, settings
from toolgate.core.logging_config import get_logger, setup_logging

__all__ = ["Settings", "settings", "get_logger", "setup_logging"]
