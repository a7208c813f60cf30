"""
skatos - namespaced key/value store for secrets and configuration values

A command line tool that keeps short text values in named databases on the
local disk and derives reproducible .env files, shell export lines and JSON
backups from them. Entries can be imported once from the skate CLI.
"""

__version__ = "0.1.0"

from .core import main

__all__ = ["main", "__version__"]
