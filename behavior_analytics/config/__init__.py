"""
Configuration management for the behavior analytics engine.

Loads settings from environment variables and an optional .env file.
"""

from behavior_analytics.config.settings import EngineConfig, Settings, get_settings  # noqa: F401

__all__ = ["EngineConfig", "Settings", "get_settings"]
