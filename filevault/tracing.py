from functools import wraps
from typing import Any
from typing import Callable
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Span
from opentelemetry.trace import Status
from opentelemetry.trace import StatusCode


tracer = trace.get_tracer(__name__)


def set_span_attributes(span: Optional[Span], attributes: dict[str, Any]) -> None:
    """Set several attributes at once, skipping None values and non-recording spans."""
    if span is None:
        return
    if span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)


def trace_operation(operation_name: str) -> Callable[[Callable], Callable]:
    """
    Decorator wrapping an async lifecycle operation in a span.

    The first positional argument after ``self`` named ``user_id`` (or the keyword
    of the same name) is attached to the span. Exceptions are recorded with
    their type and re-raised unchanged.

    Example usage:
        @trace_operation("move_to_trash")
        async def move_to_trash(self, user_id: str, file_name: str) -> OperationResult:
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            user_id = kwargs.get("user_id")
            if user_id is None and len(args) > 1 and isinstance(args[1], str):
                user_id = args[1]

            with tracer.start_as_current_span(f"filevault.{operation_name}") as span:
                set_span_attributes(span, {"filevault.operation": operation_name, "filevault.user_id": user_id})
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    set_span_attributes(
                        span,
                        {
                            "error": True,
                            "error.type": type(e).__name__,
                            "error.kind": getattr(e, "kind", None),
                        },
                    )
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator
