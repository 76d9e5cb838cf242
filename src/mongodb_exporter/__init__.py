"""
MongoDB exporter for Prometheus.

Flattens the diagnostic documents returned by MongoDB administrative commands
into labeled numeric samples and serves them to a pull-based scraper.
"""

__version__ = "0.1.0"
