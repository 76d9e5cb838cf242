"""Core exporter primitives."""
