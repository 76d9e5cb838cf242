"""
Declaration file loading.

Search order:
1. Explicit path (--declarations flag or MONGODB_EXPORTER_DECLARATIONS_FILE)
2. .mongodb_exporter/declarations.yaml (working directory)
3. ~/.mongodb_exporter/declarations.yaml (user home)
4. Built-in declarations only

A file is merged on top of the built-in table; its policies replace built-in
ones for the same path and its rename rules take precedence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mongodb_exporter.core.errors import ConfigurationError
from mongodb_exporter.flatten.compat import RenameRule
from mongodb_exporter.flatten.declarations import default_declarations
from mongodb_exporter.flatten.dispatch import TimestampUnit
from mongodb_exporter.flatten.models import MetricKind
from mongodb_exporter.flatten.paths import ArrayPolicy, DeclarationTable, FieldPolicy

logger = structlog.get_logger()

CONFIG_DIR = ".mongodb_exporter"
DECLARATIONS_FILE = "declarations.yaml"


class _Entry(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FieldEntry(_Entry):
    path: list[str] = Field(min_length=1)
    label: str | None = None
    drop: bool = False
    kind: MetricKind | None = None
    timestamp_unit: TimestampUnit | None = None

    def to_policy(self) -> FieldPolicy:
        return FieldPolicy(
            path=tuple(self.path),
            label=self.label,
            drop=self.drop,
            kind=self.kind,
            timestamp_unit=self.timestamp_unit,
        )


class ArrayEntry(_Entry):
    path: list[str] = Field(min_length=1)
    key_field: str
    label: str
    extra_labels: dict[str, str] = Field(default_factory=dict)

    def to_policy(self) -> ArrayPolicy:
        return ArrayPolicy(
            path=tuple(self.path),
            label=self.label,
            key_field=self.key_field,
            extra_labels=tuple(self.extra_labels.items()),
        )


class RenameEntry(_Entry):
    legacy_name: str = Field(min_length=1)
    match: list[str] = Field(min_length=1)
    prefix: bool = False
    suffix_label: str | None = None
    suffix_mapping: dict[str, str] = Field(default_factory=dict)
    mapped_only: bool = False
    label_overrides: dict[str, str] = Field(default_factory=dict)
    kind: MetricKind | None = None

    def to_rule(self) -> RenameRule:
        return RenameRule.create(
            self.legacy_name,
            self.match,
            prefix=self.prefix,
            label_overrides=self.label_overrides,
            suffix_label=self.suffix_label,
            suffix_mapping=self.suffix_mapping,
            mapped_only=self.mapped_only,
            kind=self.kind,
        )


class DeclarationFile(_Entry):
    """Schema of a declaration file."""

    version: Literal[1] = 1
    fields: list[FieldEntry] = Field(default_factory=list)
    arrays: list[ArrayEntry] = Field(default_factory=list)
    renames: list[RenameEntry] = Field(default_factory=list)

    def to_table(self) -> DeclarationTable:
        return DeclarationTable(
            fields=tuple(entry.to_policy() for entry in self.fields),
            arrays=tuple(entry.to_policy() for entry in self.arrays),
            renames=tuple(entry.to_rule() for entry in self.renames),
            version=self.version,
        )


def get_declarations_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the declaration file to use.

    Returns:
        Path to the declaration file or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        return None

    cwd_file = Path.cwd() / CONFIG_DIR / DECLARATIONS_FILE
    if cwd_file.exists():
        return cwd_file

    home_file = Path.home() / CONFIG_DIR / DECLARATIONS_FILE
    if home_file.exists():
        return home_file

    return None


def parse_declarations(text: str, source: str = "<string>") -> DeclarationTable:
    """Parse and validate declaration file content.

    Raises:
        ConfigurationError: if the YAML is malformed or fails validation
    """
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in declaration file {source}", details={"error": str(e)}
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Declaration file {source} must contain a mapping")

    try:
        return DeclarationFile.model_validate(data).to_table()
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid declaration file {source}", details={"error": str(e)}
        ) from e


def load_declarations(explicit_path: str | Path | None = None) -> DeclarationTable:
    """Built-in declarations, overlaid with the declaration file if one is found.

    Raises:
        ConfigurationError: if an explicit path does not exist or a file is invalid
    """
    builtin = default_declarations()
    path = get_declarations_path(explicit_path)

    if path is None:
        if explicit_path:
            raise ConfigurationError(
                f"Declaration file not found: {explicit_path}",
                details={"path": str(explicit_path)},
            )
        return builtin

    table = parse_declarations(path.read_text(encoding="utf-8"), source=str(path))
    logger.info(
        "loaded_declarations",
        path=str(path),
        fields=len(table.fields),
        arrays=len(table.arrays),
        renames=len(table.renames),
    )
    return builtin.merged(table)
