"""Observability package for Prometheus metrics.

This package provides:
- Prometheus metric definitions for message processing and feedback
- Request timing and the /metrics endpoint
"""

from .metrics import (
    # Counters
    CHAT_MESSAGES_TOTAL,
    RETRIEVAL_FAILURES_TOTAL,
    GENERATION_FAILURES_TOTAL,
    INTERACTION_LOG_FAILURES_TOTAL,
    EXAMPLE_USAGE_UPDATE_FAILURES_TOTAL,
    FEEDBACK_SUBMISSIONS_TOTAL,
    EXAMPLE_PROMOTIONS_TOTAL,
    # Histograms
    GENERATION_LATENCY_SECONDS,
    RESPONSE_CONFIDENCE,
    HTTP_REQUEST_DURATION_SECONDS,
    # Helper functions
    record_chat_message,
    record_retrieval_failure,
    record_generation_failure,
    record_generation_latency,
    record_interaction_log_failure,
    record_usage_update_failure,
    record_feedback,
    record_promotion,
    record_http_request,
    get_metrics_registry,
)
from .middleware import (
    install_metrics,
    MetricsConfig,
)

__all__ = [
    "CHAT_MESSAGES_TOTAL",
    "RETRIEVAL_FAILURES_TOTAL",
    "GENERATION_FAILURES_TOTAL",
    "INTERACTION_LOG_FAILURES_TOTAL",
    "EXAMPLE_USAGE_UPDATE_FAILURES_TOTAL",
    "FEEDBACK_SUBMISSIONS_TOTAL",
    "EXAMPLE_PROMOTIONS_TOTAL",
    "GENERATION_LATENCY_SECONDS",
    "RESPONSE_CONFIDENCE",
    "HTTP_REQUEST_DURATION_SECONDS",
    "record_chat_message",
    "record_retrieval_failure",
    "record_generation_failure",
    "record_generation_latency",
    "record_interaction_log_failure",
    "record_usage_update_failure",
    "record_feedback",
    "record_promotion",
    "record_http_request",
    "get_metrics_registry",
    "install_metrics",
    "MetricsConfig",
]
