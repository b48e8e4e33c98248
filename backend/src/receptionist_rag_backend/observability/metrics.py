"""Prometheus metric definitions for the response engine.

This module defines the counters and histograms for message processing,
generation, the interaction log and the feedback loop. Helper functions keep
label handling in one place so call sites stay one line.
"""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    REGISTRY,
)
import structlog

logger = structlog.get_logger(__name__)

# Default registry (can be overridden for testing)
_registry: CollectorRegistry = REGISTRY


def get_metrics_registry() -> CollectorRegistry:
    """Get the current metrics registry.

    Returns:
        The CollectorRegistry used for all metrics
    """
    return _registry


# =============================================================================
# Counter Metrics
# =============================================================================

CHAT_MESSAGES_TOTAL = Counter(
    "chat_messages_total",
    "Total number of processed chat messages",
    labelnames=["strategy", "language"],
    registry=_registry,
)
"""Counter for processed messages.

Labels:
    strategy: direct_reuse|rag_augmented|search_fallback
    language: Language code the message was answered in
"""

RETRIEVAL_FAILURES_TOTAL = Counter(
    "retrieval_failures_total",
    "Retrieval failures downgraded to an empty candidate list",
    labelnames=["reason"],
    registry=_registry,
)
"""Counter for retrieval failures.

Labels:
    reason: embedding|storage|timeout|unexpected
"""

GENERATION_FAILURES_TOTAL = Counter(
    "generation_failures_total",
    "Total number of failed completion calls",
    labelnames=["provider", "kind"],
    registry=_registry,
)
"""Counter for completion failures.

Labels:
    provider: openai|perplexity
    kind: error|timeout|empty
"""

INTERACTION_LOG_FAILURES_TOTAL = Counter(
    "interaction_log_failures_total",
    "Interaction records that could not be persisted",
    registry=_registry,
)

EXAMPLE_USAGE_UPDATE_FAILURES_TOTAL = Counter(
    "example_usage_update_failures_total",
    "Usage increments that failed after a response was produced",
    registry=_registry,
)

FEEDBACK_SUBMISSIONS_TOTAL = Counter(
    "feedback_submissions_total",
    "Total number of feedback submissions",
    labelnames=["helpful"],
    registry=_registry,
)
"""Counter for feedback submissions.

Labels:
    helpful: true|false|unknown
"""

EXAMPLE_PROMOTIONS_TOTAL = Counter(
    "example_promotions_total",
    "Interactions promoted into the example store",
    labelnames=["trigger"],
    registry=_registry,
)
"""Counter for promotions.

Labels:
    trigger: auto|manual
"""

# =============================================================================
# Histogram Metrics
# =============================================================================

# Latency buckets in seconds: 50ms .. 30s
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0)

GENERATION_LATENCY_SECONDS = Histogram(
    "generation_latency_seconds",
    "Completion call latency in seconds",
    labelnames=["provider"],
    buckets=LATENCY_BUCKETS,
    registry=_registry,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by route template",
    labelnames=["method", "route", "status"],
    buckets=LATENCY_BUCKETS,
    registry=_registry,
)

# Score buckets: 0-1 range in 0.1 increments
SCORE_BUCKETS = (0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0)

RESPONSE_CONFIDENCE = Histogram(
    "response_confidence",
    "Confidence score attached to replies",
    labelnames=["strategy"],
    buckets=SCORE_BUCKETS,
    registry=_registry,
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_chat_message(strategy: str, language: str, confidence: float) -> None:
    """Record one processed message and the confidence it was answered with."""
    CHAT_MESSAGES_TOTAL.labels(strategy=strategy, language=language).inc()
    RESPONSE_CONFIDENCE.labels(strategy=strategy).observe(confidence)


def record_retrieval_failure(reason: str) -> None:
    RETRIEVAL_FAILURES_TOTAL.labels(reason=reason).inc()


def record_generation_failure(provider: str, kind: str) -> None:
    GENERATION_FAILURES_TOTAL.labels(provider=provider, kind=kind).inc()


def record_generation_latency(provider: str, seconds: float) -> None:
    GENERATION_LATENCY_SECONDS.labels(provider=provider).observe(seconds)


def record_interaction_log_failure() -> None:
    INTERACTION_LOG_FAILURES_TOTAL.inc()


def record_usage_update_failure() -> None:
    EXAMPLE_USAGE_UPDATE_FAILURES_TOTAL.inc()


def record_feedback(helpful: bool | None) -> None:
    label = "unknown" if helpful is None else str(helpful).lower()
    FEEDBACK_SUBMISSIONS_TOTAL.labels(helpful=label).inc()


def record_promotion(trigger: str) -> None:
    EXAMPLE_PROMOTIONS_TOTAL.labels(trigger=trigger).inc()


def record_http_request(method: str, route: str, status: int, seconds: float) -> None:
    HTTP_REQUEST_DURATION_SECONDS.labels(
        method=method, route=route, status=str(status)
    ).observe(seconds)
