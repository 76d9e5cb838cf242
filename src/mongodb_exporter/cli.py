"""
Command-line interface.

    mongodb-exporter serve          run the HTTP exporter
    mongodb-exporter scrape         run one scrape and print the result
    mongodb-exporter declarations   validate and show the declaration table
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Sequence

from rich.console import Console
from rich.table import Table

from mongodb_exporter import __version__
from mongodb_exporter.config import Settings, load_declarations
from mongodb_exporter.core.errors import main_with_error_handling
from mongodb_exporter.exporter import Exporter
from mongodb_exporter.flatten.models import MetricSample
from mongodb_exporter.flatten.paths import DeclarationTable
from mongodb_exporter.logging import configure_logging

console = Console()

# flag dest -> Settings field
SETTINGS_FLAGS = (
    "mongodb_uri",
    "web_listen_address",
    "web_telemetry_path",
    "compatible_mode",
    "global_conn_pool",
    "collstats_colls",
    "indexstats_colls",
    "discovering_mode",
    "declarations_file",
    "scrape_timeout",
    "log_level",
)


def _exporter_flags() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--mongodb.uri", dest="mongodb_uri", help="MongoDB connection URI")
    parent.add_argument(
        "--web.listen-address", dest="web_listen_address", help="Address to listen on (host:port)"
    )
    parent.add_argument(
        "--web.telemetry-path", dest="web_telemetry_path", help="Path under which to expose metrics"
    )
    parent.add_argument(
        "--compatible-mode",
        dest="compatible_mode",
        action="store_true",
        default=None,
        help="Expose legacy metric names",
    )
    parent.add_argument(
        "--no-global-conn-pool",
        dest="global_conn_pool",
        action="store_false",
        default=None,
        help="Open a new connection for every scrape",
    )
    parent.add_argument(
        "--collstats-colls", dest="collstats_colls", help="Comma-separated db.collection list"
    )
    parent.add_argument(
        "--indexstats-colls", dest="indexstats_colls", help="Comma-separated db.collection list"
    )
    parent.add_argument(
        "--discovering-mode",
        dest="discovering_mode",
        action="store_true",
        default=None,
        help="Discover databases and collections to collect stats from",
    )
    parent.add_argument(
        "--declarations", dest="declarations_file", help="Path to a declaration file"
    )
    parent.add_argument(
        "--scrape-timeout", dest="scrape_timeout", type=float, help="Scrape deadline in seconds"
    )
    parent.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level",
    )
    return parent


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongodb-exporter", description="Prometheus exporter for MongoDB"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")
    flags = _exporter_flags()

    subparsers.add_parser("serve", parents=[flags], help="Serve metrics over HTTP")

    scrape_parser = subparsers.add_parser(
        "scrape", parents=[flags], help="Run one scrape and print the metrics"
    )
    scrape_parser.add_argument(
        "--table", action="store_true", help="Print samples as a table instead of text format"
    )
    scrape_parser.add_argument(
        "--strict", action="store_true", help="Fail on duplicate series or over-deep documents"
    )

    declarations_parser = subparsers.add_parser(
        "declarations", help="Validate and show the effective declaration table"
    )
    declarations_parser.add_argument("--file", dest="declarations_file", default=None)
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    overrides: dict[str, Any] = {}
    for name in SETTINGS_FLAGS:
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    return Settings(**overrides)


@main_with_error_handling()
def serve_command(settings: Settings) -> int:
    import uvicorn

    from mongodb_exporter.api.main import create_app

    exporter = Exporter(settings)
    host, port = settings.listen_host_port
    uvicorn.run(create_app(exporter), host=host, port=port, log_config=None)
    return 0


@main_with_error_handling()
def scrape_command(settings: Settings, *, table: bool = False, strict: bool = False) -> int:
    exporter = Exporter(settings, strict=strict)
    try:
        if table:
            print_samples(exporter.samples())
        else:
            sys.stdout.write(exporter.scrape().decode("utf-8"))
    finally:
        exporter.close()
    return 0


@main_with_error_handling()
def declarations_command(path: str | None = None) -> int:
    print_declarations(load_declarations(path))
    return 0


def print_samples(samples: Sequence[MetricSample]) -> None:
    table = Table(title=f"{len(samples)} samples", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Labels")
    table.add_column("Kind")
    table.add_column("Value", justify="right")
    for sample in samples:
        labels = ", ".join(f"{key}={value}" for key, value in sample.labels.items())
        table.add_row(sample.name, labels, sample.kind.value, f"{sample.value:g}")
    console.print(table)


def print_declarations(declarations: DeclarationTable) -> None:
    fields = Table(title="Fields", show_header=True, header_style="bold")
    for column in ("Path", "Label", "Drop", "Kind", "Timestamp unit"):
        fields.add_column(column)
    for policy in declarations.fields:
        fields.add_row(
            ".".join(policy.path),
            policy.label or "",
            "yes" if policy.drop else "",
            policy.kind.value if policy.kind else "",
            policy.timestamp_unit.value if policy.timestamp_unit else "",
        )

    arrays = Table(title="Arrays", show_header=True, header_style="bold")
    for column in ("Path", "Label", "Key field", "Extra labels"):
        arrays.add_column(column)
    for array in declarations.arrays:
        arrays.add_row(
            ".".join(array.path),
            array.label,
            array.key_field,
            ", ".join(f"{label}={source}" for label, source in array.extra_labels),
        )

    renames = Table(title="Renames", show_header=True, header_style="bold")
    for column in ("Legacy name", "Match", "Prefix", "Suffix label"):
        renames.add_column(column)
    for rule in declarations.renames:
        renames.add_row(
            rule.legacy_name,
            ".".join(rule.match_path),
            "yes" if rule.prefix else "",
            rule.suffix_label or "",
        )

    console.print(f"[bold]Declarations version {declarations.version}[/bold]")
    console.print(fields)
    console.print(arrays)
    console.print(renames)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "declarations":
        configure_logging("WARNING", json_output=False)
        return declarations_command(args.declarations_file)

    if args.command in {"serve", "scrape"}:
        settings = settings_from_args(args)
        if args.command == "serve":
            configure_logging(settings.log_level, json_output=settings.log_json)
            return serve_command(settings)
        # keep stdout clean for the exposition text
        configure_logging(args.log_level or "WARNING", json_output=False)
        return scrape_command(settings, table=args.table, strict=args.strict)

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
