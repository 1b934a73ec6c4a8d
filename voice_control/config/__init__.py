"""
Configuration package for the Voice Control Assistant.

This package provides centralized configuration management for the application,
loading settings from environment variables with appropriate validation.
"""

from voice_control.config.settings import Settings

# Create a singleton instance of Settings to be imported by other modules
settings = Settings()

__all__ = ["settings"]
