"""Prometheus metrics collection.

This module defines and manages Prometheus metrics for monitoring
request rates, acquisitions, strategy fallbacks, exports, and errors.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("clipper", "Clipper application information")

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Acquisition metrics
acquisitions_total = Counter(
    "acquisitions_total",
    "Total acquisitions by winning strategy and status",
    ["strategy", "status"],
)

acquisition_duration_seconds = Histogram(
    "acquisition_duration_seconds",
    "Acquisition duration in seconds",
    ["strategy"],
    buckets=[5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0],
)

strategy_failures_total = Counter(
    "acquisition_strategy_failures_total",
    "Acquisition strategies that failed or were unusable",
    ["strategy", "outcome"],
)

fetched_bytes_total = Counter(
    "fetched_bytes_total",
    "Bytes written by the stream fetcher",
)

# Export metrics
exports_total = Counter(
    "exports_total",
    "Total clip exports by quality tier and status",
    ["quality", "status"],
)

export_duration_seconds = Histogram(
    "export_duration_seconds",
    "Clip export duration in seconds",
    ["quality"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors by error code and endpoint",
    ["error_code", "endpoint"],
)


class MetricsCollector:
    """Centralized metrics collection and update helper.

    Provides static methods for recording various metrics throughout
    the application in a consistent manner.
    """

    @staticmethod
    def record_request(
        method: str,
        endpoint: str,
        status: int,
        duration: float,
    ) -> None:
        """Record HTTP request metrics.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: Normalized endpoint path.
            status: HTTP response status code.
            duration: Request duration in seconds.
        """
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

    @staticmethod
    def record_acquisition(strategy: str, status: str, duration: float) -> None:
        """Record a finished acquisition.

        Args:
            strategy: Strategy that produced the file, or 'none' on failure.
            status: 'success', 'failed' or 'cancelled'.
            duration: Acquisition duration in seconds.
        """
        acquisitions_total.labels(strategy=strategy, status=status).inc()
        acquisition_duration_seconds.labels(strategy=strategy).observe(duration)

    @staticmethod
    def record_strategy_failure(strategy: str, outcome: str) -> None:
        """Record a strategy that did not produce a file.

        Args:
            strategy: Strategy name.
            outcome: 'unusable' or 'failed'.
        """
        strategy_failures_total.labels(strategy=strategy, outcome=outcome).inc()

    @staticmethod
    def record_fetched_bytes(size: int) -> None:
        if size > 0:
            fetched_bytes_total.inc(size)

    @staticmethod
    def record_export(quality: str, status: str, duration: float) -> None:
        """Record a finished export.

        Args:
            quality: Quality tier name.
            status: 'success', 'failed' or 'cancelled'.
            duration: Export duration in seconds.
        """
        exports_total.labels(quality=quality, status=status).inc()
        export_duration_seconds.labels(quality=quality).observe(duration)

    @staticmethod
    def record_error(error_code: str, endpoint: str) -> None:
        """Record an error occurrence.

        Args:
            error_code: Error code from ErrorCode class.
            endpoint: Endpoint where the error occurred.
        """
        errors_total.labels(error_code=error_code, endpoint=endpoint).inc()


def initialize_metrics(version: str) -> None:
    """Initialize application metrics with version information.

    Should be called during application startup.

    Args:
        version: Application version string.
    """
    app_info.info({"version": version})
