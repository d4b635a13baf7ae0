# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# ============================================================================
"""
Configuration Module

Provides startup configuration for the registry monitor.
"""

from core.config.settings import (
    ConfigError,
    MonitorConfig,
    RuntimeConfig,
    build_arg_parser,
    env_name,
    parse_listen,
    SUCCESS_INTERVAL_SEC,
    FAILURE_INTERVAL_SEC,
)

__all__ = [
    "ConfigError",
    "MonitorConfig",
    "RuntimeConfig",
    "build_arg_parser",
    "env_name",
    "parse_listen",
    "SUCCESS_INTERVAL_SEC",
    "FAILURE_INTERVAL_SEC",
]
