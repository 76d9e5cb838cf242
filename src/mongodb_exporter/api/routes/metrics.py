from __future__ import annotations

import structlog
from fastapi import Depends, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST

from mongodb_exporter.api.deps import get_exporter
from mongodb_exporter.core.errors import ConnectivityError, ExporterError
from mongodb_exporter.exporter import Exporter

logger = structlog.get_logger()

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"


def scrape_timeout(request: Request) -> float | None:
    """Deadline announced by the scraper, if any."""
    header = request.headers.get(SCRAPE_TIMEOUT_HEADER)
    if not header:
        return None
    try:
        seconds = float(header)
    except ValueError:
        logger.warning("invalid_scrape_timeout_header", value=header)
        return None
    return seconds if seconds > 0 else None


def metrics_endpoint(
    request: Request,
    exporter: Exporter = Depends(get_exporter),  # noqa: B008
) -> Response:
    """Run one scrape and return the text exposition format."""
    try:
        body = exporter.scrape(timeout=scrape_timeout(request))
    except ExporterError as e:
        logger.error("scrape_failed", error_type=type(e).__name__, error=e.message)
        if isinstance(e, ConnectivityError):
            reason = "cannot connect to MongoDB"
        else:
            reason = "scrape failed"
        return Response(
            content=f"{reason}: {e.message}\n",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            media_type="text/plain",
        )
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)
