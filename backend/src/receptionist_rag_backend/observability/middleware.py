"""FastAPI wiring for request metrics and the Prometheus /metrics endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter

from fastapi import FastAPI, Request, Response
from fastapi.routing import APIRoute
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.routing import Match
import structlog

from .metrics import get_metrics_registry, record_http_request

logger = structlog.get_logger(__name__)

# Unmatched paths share one label so scanners cannot blow up cardinality.
UNMATCHED_ROUTE = "unmatched"


@dataclass(frozen=True)
class MetricsConfig:
    """Where and whether metrics are exposed.

    Attributes:
        enabled: Mount /metrics and time requests
        path: URL path for the scrape endpoint
    """

    enabled: bool = True
    path: str = "/metrics"


def _route_template(request: Request) -> str:
    """Full path template of the app route serving ``request``.

    The app router holds included routes with their prefixes applied, so the
    template is stable across routers that share a local path.
    """
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


def install_metrics(app: FastAPI, config: MetricsConfig) -> None:
    """Time every API request and mount the scrape endpoint."""
    if not config.enabled:
        logger.info("prometheus_metrics_disabled")
        return

    @app.middleware("http")
    async def time_requests(request: Request, call_next):
        started = perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            route = _route_template(request)
            if route != config.path:
                record_http_request(
                    request.method, route, status, perf_counter() - started
                )

    async def metrics_endpoint() -> Response:
        """Serve Prometheus metrics in text format."""
        return Response(
            content=generate_latest(get_metrics_registry()),
            media_type=CONTENT_TYPE_LATEST,
        )

    app.routes.append(
        APIRoute(
            path=config.path,
            endpoint=metrics_endpoint,
            methods=["GET"],
            name="prometheus_metrics",
            tags=["observability"],
            summary="Prometheus metrics endpoint",
        )
    )
    logger.info("prometheus_metrics_endpoint_mounted", path=config.path)
