# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Per-request telemetry for the OData client.

Every logical request (one CRUD call, one query page, one ``$batch`` POST, one
async-operation poll) runs inside :meth:`TelemetryManager.trace_request`. The
manager logs the outcome, dispatches to user hooks and, when the
``opentelemetry-api`` package is installed and tracing is enabled, records a
client span carrying the operation name, entity set and client request ID.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Protocol, Union, runtime_checkable

from ..common.constants import (
    OTEL_ATTR_HTTP_METHOD,
    OTEL_ATTR_HTTP_STATUS_CODE,
    OTEL_ATTR_HTTP_URL,
    OTEL_ATTR_ODATA_ENTITY_SET,
    OTEL_ATTR_ODATA_OPERATION,
    OTEL_ATTR_ODATA_REQUEST_ID,
)

# Optional OpenTelemetry imports
try:
    from opentelemetry import trace
    from opentelemetry.trace import Status, StatusCode

    _OTEL_AVAILABLE = True
except ImportError:
    _OTEL_AVAILABLE = False
    trace = None  # type: ignore
    Status = None  # type: ignore
    StatusCode = None  # type: ignore

logger = logging.getLogger(__name__)

_INSTRUMENTATION_NAME = "odata_client"


@dataclass(frozen=True)
class TelemetryConfig:
    """
    Opt-in observability settings, passed as ``ODataConfig(telemetry=...)``.

    :param enable_tracing: Emit OpenTelemetry client spans (needs the ``telemetry`` extra).
    :param enable_logging: Log one line per request under ``logger_name``.
    :param log_level: Level applied to ``logger_name`` when logging is enabled.
    :param logger_name: Logger that receives the per-request lines.
    :param hooks: Objects implementing any subset of :class:`TelemetryHook`.

    Example::

        config = ODataConfig(telemetry=TelemetryConfig(enable_logging=True, log_level="DEBUG"))
    """

    enable_tracing: bool = False
    enable_logging: bool = False

    log_level: str = "WARNING"
    logger_name: str = "odata_client"

    hooks: List["TelemetryHook"] = field(default_factory=list)


@dataclass
class RequestContext:
    """What hooks see about a request before it is sent."""

    client_request_id: str
    method: str
    url: str
    operation: str  # "query.get", "batch.execute", "async.get", ...
    entity_set: Optional[str] = None
    start_time: float = field(default_factory=time.perf_counter)
    # Free-form state shared between a hook's start and end callbacks
    custom_data: Dict[str, Any] = field(default_factory=dict)
    _span: Any = field(default=None, repr=False)


@dataclass
class ResponseContext:
    status_code: int
    duration_ms: float
    response_size: Optional[int] = None
    error: Optional[Exception] = None


@runtime_checkable
class TelemetryHook(Protocol):
    """
    Callbacks invoked around each request. Implement only the ones you need;
    an exception raised by a hook is logged and never fails the request.

    Example::

        class TimingHook:
            def on_request_end(self, request, response):
                print(request.operation, request.entity_set, response.duration_ms)
    """

    def on_request_start(self, context: RequestContext) -> None: ...

    def on_request_end(self, request: RequestContext, response: ResponseContext) -> None: ...

    def on_request_error(self, request: RequestContext, error: Exception) -> None: ...

    def get_additional_headers(self) -> Dict[str, str]: ...


class TelemetryManager:
    """
    Runs logging, hooks and tracing for each request.

    Internal; built by :func:`create_telemetry_manager` from the client configuration.
    """

    def __init__(self, config: Optional[TelemetryConfig] = None) -> None:
        self._config = config or TelemetryConfig()
        self._hooks = list(self._config.hooks)
        self._tracer = trace.get_tracer(_INSTRUMENTATION_NAME) if self.is_tracing_enabled else None
        self._request_logger: Optional[logging.Logger] = None
        if self._config.enable_logging:
            self._request_logger = logging.getLogger(self._config.logger_name)
            self._request_logger.setLevel(getattr(logging, self._config.log_level.upper()))

    @property
    def is_tracing_enabled(self) -> bool:
        return self._config.enable_tracing and _OTEL_AVAILABLE

    def _start_span(self, ctx: RequestContext) -> Any:
        if self._tracer is None:
            return None
        name = f"OData {ctx.operation}" + (f" {ctx.entity_set}" if ctx.entity_set else "")
        attributes = {
            OTEL_ATTR_ODATA_OPERATION: ctx.operation,
            OTEL_ATTR_HTTP_METHOD: ctx.method,
            OTEL_ATTR_HTTP_URL: ctx.url,
            OTEL_ATTR_ODATA_REQUEST_ID: ctx.client_request_id,
        }
        if ctx.entity_set:
            attributes[OTEL_ATTR_ODATA_ENTITY_SET] = ctx.entity_set
        return self._tracer.start_span(name, kind=trace.SpanKind.CLIENT, attributes=attributes)

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        entity_set: Optional[str] = None,
    ) -> Generator[RequestContext, None, None]:
        """
        Scope one logical request.

        Call :meth:`record_response` inside the block once the final response arrives.
        An exception escaping the block marks the span as failed, is logged and
        reaches ``on_request_error`` hooks before it propagates.
        """
        ctx = RequestContext(
            client_request_id=client_request_id,
            method=method,
            url=url,
            operation=operation,
            entity_set=entity_set,
        )
        self._dispatch("on_request_start", ctx)
        ctx._span = self._start_span(ctx)
        try:
            yield ctx
        except Exception as exc:
            if ctx._span is not None:
                ctx._span.set_status(Status(StatusCode.ERROR, str(exc)))
                ctx._span.record_exception(exc)
            if self._request_logger is not None:
                self._request_logger.warning(
                    "%s %s failed: %s", ctx.operation, ctx.method, exc,
                    extra={"client_request_id": ctx.client_request_id},
                )
            self._dispatch("on_request_error", ctx, exc)
            raise
        finally:
            if ctx._span is not None:
                ctx._span.end()

    def record_response(
        self,
        ctx: RequestContext,
        status_code: int,
        response_size: Optional[int] = None,
        error: Optional[Exception] = None,
    ) -> None:
        """Log the final status of ``ctx`` and pass it to ``on_request_end`` hooks."""
        response = ResponseContext(
            status_code=status_code,
            duration_ms=(time.perf_counter() - ctx.start_time) * 1000,
            response_size=response_size,
            error=error,
        )
        if ctx._span is not None:
            ctx._span.set_attribute(OTEL_ATTR_HTTP_STATUS_CODE, status_code)
        if self._request_logger is not None:
            self._request_logger.log(
                logging.WARNING if status_code >= 400 else logging.DEBUG,
                "%s %s %s %.1fms",
                ctx.operation,
                ctx.method,
                status_code,
                response.duration_ms,
                extra={"client_request_id": ctx.client_request_id},
            )
        self._dispatch("on_request_end", ctx, response)

    def _dispatch(self, name: str, *args: Any) -> None:
        for hook in self._hooks:
            callback = getattr(hook, name, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as exc:
                logger.warning("Telemetry hook %s.%s raised: %s", type(hook).__name__, name, exc)

    def get_additional_headers(self) -> Dict[str, str]:
        """Merge the headers contributed by all hooks, later hooks winning."""
        headers: Dict[str, str] = {}
        for hook in self._hooks:
            callback = getattr(hook, "get_additional_headers", None)
            if callback is None:
                continue
            try:
                headers.update(callback() or {})
            except Exception as exc:
                logger.warning("Telemetry hook %s.get_additional_headers raised: %s", type(hook).__name__, exc)
        return headers


class NoOpTelemetryManager:
    """Stand-in used when telemetry is disabled."""

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        entity_set: Optional[str] = None,
    ) -> Generator[RequestContext, None, None]:
        yield RequestContext(client_request_id, method, url, operation, entity_set)

    def record_response(self, *args: Any, **kwargs: Any) -> None:
        pass

    def get_additional_headers(self) -> Dict[str, str]:
        return {}


def create_telemetry_manager(
    config: Optional[TelemetryConfig],
) -> Union[TelemetryManager, NoOpTelemetryManager]:
    """Return a :class:`TelemetryManager` when anything is enabled, else the no-op manager."""
    if config is None or not (config.enable_tracing or config.enable_logging or config.hooks):
        return NoOpTelemetryManager()
    return TelemetryManager(config)


__all__ = [
    "TelemetryConfig",
    "TelemetryHook",
    "TelemetryManager",
    "NoOpTelemetryManager",
    "RequestContext",
    "ResponseContext",
    "create_telemetry_manager",
]
