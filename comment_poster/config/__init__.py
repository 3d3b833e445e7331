"""
Configuration package for the PR comment poster.
"""

from .settings import Settings, SettingsProtocol, DEFAULT_TAG, PLATFORMS, BEHAVIORS

__all__ = ["Settings", "SettingsProtocol", "DEFAULT_TAG", "PLATFORMS", "BEHAVIORS"]
