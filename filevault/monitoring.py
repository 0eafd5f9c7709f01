import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry import trace


logger = logging.getLogger(__name__)


class MetricsCollector:
    def __init__(self) -> None:
        self.meter = metrics.get_meter(__name__)
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        self.http_requests_total = self.meter.create_counter(
            name="http_requests_total", description="Total number of HTTP requests", unit="1"
        )

        self.http_request_duration = self.meter.create_histogram(
            name="http_request_duration_seconds", description="HTTP request duration in seconds", unit="s"
        )

        self.file_operations_total = self.meter.create_counter(
            name="file_operations_total", description="Active namespace operations by type", unit="1"
        )

        self.bytes_uploaded = self.meter.create_counter(
            name="bytes_uploaded_total", description="Total bytes uploaded", unit="bytes"
        )

        self.trash_operations_total = self.meter.create_counter(
            name="trash_operations_total", description="Trash lifecycle operations by type and outcome", unit="1"
        )

        self.trash_sweep_deleted_total = self.meter.create_counter(
            name="trash_sweep_deleted_total", description="Expired trash objects permanently deleted", unit="1"
        )

        self.trash_sweep_duration = self.meter.create_histogram(
            name="trash_sweep_duration_seconds", description="Duration of a trash sweep pass", unit="s"
        )

    def record_http_request(self, method: str, handler: str, status_code: int, duration: float) -> None:
        attributes = {"method": method, "handler": handler, "status_code": str(status_code)}
        self.http_requests_total.add(1, attributes=attributes)
        self.http_request_duration.record(duration, attributes=attributes)

    def record_file_operation(self, operation: str, success: bool, size_bytes: int = 0) -> None:
        self.file_operations_total.add(1, attributes={"operation": operation, "success": str(success).lower()})
        if success and size_bytes > 0:
            self.bytes_uploaded.add(size_bytes)

    def record_trash_operation(self, operation: str, status: str) -> None:
        self.trash_operations_total.add(1, attributes={"operation": operation, "status": status})

    def record_trash_sweep(self, deleted: int, duration: Optional[float] = None, dry_run: bool = False) -> None:
        attributes = {"dry_run": str(dry_run).lower()}
        if deleted > 0 and not dry_run:
            self.trash_sweep_deleted_total.add(deleted, attributes=attributes)
        if duration is not None:
            self.trash_sweep_duration.record(duration, attributes=attributes)


class NullMetricsCollector:
    def record_http_request(self, *args: object, **kwargs: object) -> None:
        pass

    def record_file_operation(self, *args: object, **kwargs: object) -> None:
        pass

    def record_trash_operation(self, *args: object, **kwargs: object) -> None:
        pass

    def record_trash_sweep(self, *args: object, **kwargs: object) -> None:
        pass


_metrics_collector: MetricsCollector | NullMetricsCollector = NullMetricsCollector()


def get_metrics_collector() -> MetricsCollector | NullMetricsCollector:
    return _metrics_collector


def set_metrics_collector(collector: MetricsCollector | NullMetricsCollector) -> None:
    global _metrics_collector
    _metrics_collector = collector


def enrich_span_with_user_info(
    user_id: Optional[str] = None,
    bucket_name: Optional[str] = None,
    object_key: Optional[str] = None,
) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        if user_id:
            span.set_attribute("filevault.user_id", user_id)
        if bucket_name:
            span.set_attribute("filevault.bucket", bucket_name)
        if object_key:
            span.set_attribute("filevault.key", object_key)
