"""
ConfigSync CLI Module.

Provides command-line interface for ConfigSync operations.
"""

from configsync.cli.main import main, cli

__all__ = ["main", "cli"]
