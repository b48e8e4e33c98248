"""Tests for per-route HTTP request metrics."""

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from receptionist_rag_backend.observability import (
    MetricsConfig,
    get_metrics_registry,
    install_metrics,
)


def _count(method: str, route: str, status: str):
    return get_metrics_registry().get_sample_value(
        "http_request_duration_seconds_count",
        {"method": method, "route": route, "status": status},
    )


def _app() -> FastAPI:
    router = APIRouter()

    @router.get("/bookings/{booking_id}")
    def read_booking(booking_id: str) -> dict:
        return {"id": booking_id}

    app = FastAPI()
    app.include_router(router, prefix="/north")
    app.include_router(router, prefix="/south")
    install_metrics(app, MetricsConfig())
    return app


def test_routes_labelled_with_prefixed_template() -> None:
    client = TestClient(_app())

    client.get("/north/bookings/1")
    client.get("/north/bookings/2")
    client.get("/south/bookings/3")

    assert _count("GET", "/north/bookings/{booking_id}", "200") == 2.0
    assert _count("GET", "/south/bookings/{booking_id}", "200") == 1.0


def test_unknown_paths_share_one_label() -> None:
    client = TestClient(_app())
    before = _count("GET", "unmatched", "404") or 0.0

    client.get("/west/bookings/1")
    client.get("/nowhere")

    assert _count("GET", "unmatched", "404") == before + 2.0


def test_scrape_endpoint_is_not_timed() -> None:
    client = TestClient(_app())

    response = client.get("/metrics")

    assert response.status_code == 200
    assert _count("GET", "/metrics", "200") is None
