"""
Observability infrastructure for the genome SOM
Provides structured logging, metrics, tracing and health status
"""

import logging
import time
import uuid
import psutil
import structlog
from typing import Dict, Any, Mapping, Optional, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)


# Prometheus Metrics
REQUESTS_TOTAL = Counter(
    "genome_som_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "genome_som_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

TRAINING_DURATION = Histogram(
    "genome_som_training_duration_seconds",
    "Map training duration in seconds",
    ["dimension_sizes"],
)

TRAINING_ITERATIONS = Counter(
    "genome_som_training_iterations_total", "Total training updates applied"
)

INDEX_BUILD_DURATION = Histogram(
    "genome_som_index_build_duration_seconds",
    "Search index build duration in seconds",
)

INDEXED_ENTITIES = Gauge(
    "genome_som_indexed_entities", "Number of entities in the last built index"
)

MOVIE_SEARCHES = Counter("genome_som_movie_searches_total", "Total movie searches")

TAG_SEARCHES = Counter(
    "genome_som_tag_searches_total", "Total tag searches", ["method"]
)

SYSTEM_MEMORY_USAGE = Gauge(
    "genome_som_system_memory_usage_bytes", "System memory usage in bytes"
)

SYSTEM_CPU_USAGE = Gauge(
    "genome_som_system_cpu_usage_percent", "System CPU usage percentage"
)

OPERATION_DURATION = Histogram(
    "genome_som_operation_duration_seconds",
    "Duration of traced operations in seconds",
    ["operation", "outcome"],
)

CORRELATION_HEADER = "x-correlation-id"

# Correlation id of the request being served, if any
current_correlation_id: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


class CorrelationIDProcessor:
    """Stamp log entries with the correlation id of the current request"""

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault(
            "correlation_id", current_correlation_id.get() or "unknown"
        )
        return event_dict


def setup_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure structlog for the CLI (console output) or the API (JSON lines)

    Raises:
        ValueError: If the log level is not a standard logging level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            CorrelationIDProcessor(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)


def get_correlation_id() -> str:
    """Correlation id of the current request, or a fresh one outside requests"""
    return current_correlation_id.get() or str(uuid.uuid4())


@contextmanager
def trace_operation(operation_name: str, **extra_context):
    """
    Log the start and end of an operation and time it

    The duration is recorded in ``genome_som_operation_duration_seconds``
    labelled by operation and outcome. Exceptions are logged and re-raised.
    """
    logger = structlog.get_logger().bind(
        operation=operation_name, correlation_id=get_correlation_id(), **extra_context
    )
    start_time = time.time()
    logger.debug("Operation started")

    try:
        yield logger
    except Exception as e:
        duration = time.time() - start_time
        OPERATION_DURATION.labels(operation=operation_name, outcome="error").observe(
            duration
        )
        logger.error(
            "Operation failed",
            duration_seconds=duration,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    duration = time.time() - start_time
    OPERATION_DURATION.labels(operation=operation_name, outcome="ok").observe(
        duration
    )
    logger.info("Operation completed", duration_seconds=duration)


def update_system_metrics():
    """Update system-level metrics"""
    try:
        memory_info = psutil.virtual_memory()
        SYSTEM_MEMORY_USAGE.set(memory_info.used)

        cpu_percent = psutil.cpu_percent(interval=None)
        SYSTEM_CPU_USAGE.set(cpu_percent)

    except (psutil.Error, OSError) as e:
        logger = structlog.get_logger()
        logger.error("Failed to update system metrics", error=str(e))


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format"""
    update_system_metrics()
    return generate_latest()


def log_request_metrics(method: str, endpoint: str, status_code: int, duration: float):
    """Log request metrics to Prometheus"""
    REQUESTS_TOTAL.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)


def log_training_metrics(
    dimension_sizes: Sequence[int], duration: float, iterations: int
):
    """Log training metrics to Prometheus"""
    label = "x".join(str(size) for size in dimension_sizes)
    TRAINING_DURATION.labels(dimension_sizes=label).observe(duration)
    TRAINING_ITERATIONS.inc(iterations)


def log_index_metrics(duration: float, entities: int):
    """Log index build metrics to Prometheus"""
    INDEX_BUILD_DURATION.observe(duration)
    INDEXED_ENTITIES.set(entities)


def log_search_metrics(kind: str, method: str = None):
    """Log a movie or tag search to Prometheus"""
    if kind == "movies":
        MOVIE_SEARCHES.inc()
    else:
        TAG_SEARCHES.labels(method=method or "unknown").inc()


class RequestTracingMiddleware:
    """
    ASGI middleware giving every HTTP request a correlation id

    A caller supplied ``x-correlation-id`` header is kept, otherwise a new id
    is generated. Handlers read it from ``scope["correlation_id"]`` and log
    entries made while the request is served carry it. The response echoes it
    in the same header.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers") or []).get(CORRELATION_HEADER.encode())
        correlation_id = incoming.decode("latin-1") if incoming else str(uuid.uuid4())
        scope["correlation_id"] = correlation_id

        async def send_with_correlation_id(message):
            if message["type"] == "http.response.start":
                headers = [
                    (name, value)
                    for name, value in message.get("headers", [])
                    if name.lower() != CORRELATION_HEADER.encode()
                ]
                headers.append((CORRELATION_HEADER.encode(), correlation_id.encode()))
                message["headers"] = headers
            await send(message)

        token = current_correlation_id.set(correlation_id)
        try:
            await self.app(scope, receive, send_with_correlation_id)
        finally:
            current_correlation_id.reset(token)


def describe_engine(engine) -> Dict[str, Any]:
    """Map shape and index size behind a movie or tag search engine"""
    index = engine.index
    return {
        "dimension_sizes": list(index.map.dimension_sizes),
        "n_features": index.map.n_features,
        "distance_function": index.map.distance_function.value,
        "tags": len(index.tags),
        "indexed_entities": index.entity_count,
    }


def get_health_status(engines: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Health of the host and the search engines currently served

    The status is ``healthy`` when engines are loaded, ``degraded`` when none
    are (search endpoints answer 503) and ``unhealthy`` when host statistics
    cannot be read.
    """
    engines = engines or {}
    try:
        memory_info = psutil.virtual_memory()
        disk_info = psutil.disk_usage("/")
    except (psutil.Error, OSError) as e:
        return {"status": "unhealthy", "timestamp": time.time(), "error": str(e)}

    return {
        "status": "healthy" if engines else "degraded",
        "timestamp": time.time(),
        "system": {
            "memory": {
                "total": memory_info.total,
                "available": memory_info.available,
                "percentage": memory_info.percent,
            },
            "cpu": {"usage_percent": psutil.cpu_percent(interval=None)},
            "disk": {"free": disk_info.free, "percentage": disk_info.percent},
        },
        "engines": {
            kind: describe_engine(engine) for kind, engine in sorted(engines.items())
        },
    }


__all__ = [
    "CONTENT_TYPE_LATEST",
    "CORRELATION_HEADER",
    "setup_logging",
    "trace_operation",
    "get_correlation_id",
    "get_metrics",
    "get_health_status",
    "describe_engine",
    "log_request_metrics",
    "log_training_metrics",
    "log_index_metrics",
    "log_search_metrics",
    "RequestTracingMiddleware",
]
