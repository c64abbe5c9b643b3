"""Configuration module for the lending ledger."""

from lending_ledger.config.logging import configure_logging
from lending_ledger.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging"]
