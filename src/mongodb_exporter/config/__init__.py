"""
Exporter configuration.

- Pydantic-based settings (environment variables, .env files)
- Declaration files overlaying the built-in flattening declarations
"""

from mongodb_exporter.config.loader import (
    DeclarationFile,
    get_declarations_path,
    load_declarations,
    parse_declarations,
)
from mongodb_exporter.config.settings import Settings, get_settings, split_list

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "split_list",
    # Declarations
    "DeclarationFile",
    "get_declarations_path",
    "load_declarations",
    "parse_declarations",
]
