# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Structured exception hierarchy for the OData client.

Every error raised by the package derives from :class:`ODataError`, which carries
a stable ``code`` and optional ``subcode`` (see ``_error_codes``) so callers can
branch on failures without parsing messages.
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, Optional


class ODataError(Exception):
    """Base structured error for the OData client."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        subcode: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        source: Optional[str] = None,
        is_transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.status_code = status_code
        self.details = details or {}
        self.source = source or "client"
        self.is_transient = is_transient
        self.timestamp = _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "subcode": self.subcode,
            "status_code": self.status_code,
            "details": self.details,
            "source": self.source,
            "is_transient": self.is_transient,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(code={self.code!r}, subcode={self.subcode!r}, message={self.message!r})"


class ValidationError(ODataError):
    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="validation_error", subcode=subcode, details=details, source="client")


class UnsupportedExpressionError(ODataError):
    """Raised when a predicate tree contains a node, operator or method with no OData rendering."""

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="unsupported_expression", subcode=subcode, details=details, source="client")


class DeserializationError(ODataError):
    def __init__(self, message: str, *, target_type: Any = None, details: Optional[Dict[str, Any]] = None):
        d = details or {}
        if target_type is not None:
            d["target_type"] = getattr(target_type, "__name__", repr(target_type))
        super().__init__(message, code="deserialization_error", details=d, source="client")


class OperationCancelledError(ODataError):
    def __init__(self, message: str = "The operation was cancelled."):
        super().__init__(message, code="operation_cancelled", source="client")


class HttpError(ODataError):
    """
    Non-success HTTP response from the service.

    :param message: Human readable description.
    :param status_code: HTTP status of the final response.
    :param request_url: URL of the failed request.
    :param response_body: Raw response body text, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        *,
        request_url: Optional[str] = None,
        response_body: Optional[str] = None,
        is_transient: bool = False,
        subcode: Optional[str] = None,
        service_error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        d = details or {}
        if request_url is not None:
            d["request_url"] = request_url
        if service_error_code is not None:
            d["service_error_code"] = service_error_code
        if response_body:
            d["body_excerpt"] = response_body[:200]
        if retry_after is not None:
            d["retry_after"] = retry_after
        super().__init__(
            message,
            code="http_error",
            subcode=subcode,
            status_code=status_code,
            details=d,
            source="server",
            is_transient=is_transient,
        )
        self.request_url = request_url
        self.response_body = response_body


class NotFoundError(HttpError):
    pass


class UnauthorizedError(HttpError):
    pass


class ForbiddenError(HttpError):
    pass


class ConcurrencyError(HttpError):
    """
    Optimistic concurrency conflict (HTTP 412 Precondition Failed).

    :param request_etag: The ETag sent in ``If-Match``.
    :param current_etag: The ETag the service reported for the current entity version, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        request_url: Optional[str] = None,
        response_body: Optional[str] = None,
        request_etag: Optional[str] = None,
        current_etag: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            412,
            request_url=request_url,
            response_body=response_body,
            subcode="http_412",
            details={"request_etag": request_etag, "current_etag": current_etag},
        )
        self.request_etag = request_etag
        self.current_etag = current_etag


class AsyncOperationError(ODataError):
    """A long-running operation reached the ``FAILED`` state."""

    def __init__(self, message: str, *, monitor_url: Optional[str] = None, error_details: Optional[str] = None):
        super().__init__(
            message,
            code="async_operation_failed",
            details={"monitor_url": monitor_url, "error_details": error_details},
            source="server",
        )
        self.monitor_url = monitor_url
        self.error_details = error_details


class AsyncOperationTimeoutError(ODataError):
    def __init__(self, message: str, *, monitor_url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(
            message,
            code="async_operation_timeout",
            details={"monitor_url": monitor_url, "timeout": timeout},
            source="client",
            is_transient=True,
        )
        self.monitor_url = monitor_url
        self.timeout = timeout


__all__ = [
    "ODataError",
    "ValidationError",
    "UnsupportedExpressionError",
    "DeserializationError",
    "OperationCancelledError",
    "HttpError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConcurrencyError",
    "AsyncOperationError",
    "AsyncOperationTimeoutError",
]
