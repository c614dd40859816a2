"""
Configuration management for the storefront API.
"""

from storefront.config.logging import configure_logging
from storefront.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
