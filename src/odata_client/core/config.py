# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from .telemetry import TelemetryConfig


@dataclass(frozen=True)
class ODataConfig:
    """
    Configuration settings for OData client operations.

    :param http_retries: Maximum number of retry attempts for HTTP requests (default: 5).
    :type http_retries: int or None
    :param http_backoff: Base delay in seconds for exponential backoff (default: 0.5).
    :type http_backoff: float or None
    :param http_max_backoff: Maximum delay between retry attempts in seconds (default: 60.0).
    :type http_max_backoff: float or None
    :param http_timeout: Request timeout in seconds (default: method-dependent).
    :type http_timeout: float or None
    :param http_jitter: Whether to add jitter to retry delays to prevent thundering herd (default: True).
    :type http_jitter: bool or None
    :param http_retry_transient_errors: Whether to retry transient HTTP errors like 429, 502, 503, 504 (default: True).
    :type http_retry_transient_errors: bool or None
    :param poll_interval: Delay in seconds between polls of a long-running operation (default: 5.0).
    :type poll_interval: float
    :param auth_scope: Token scope requested from the credential. Defaults to ``"{base_url}/.default"``.
    :type auth_scope: str or None
    :param default_headers: Extra headers sent with every request (for example ``Accept-Language``).
    :type default_headers: dict[str, str]
    :param telemetry: Optional telemetry settings. ``None`` disables telemetry.
    :type telemetry: ~odata_client.core.telemetry.TelemetryConfig or None
    """

    # HTTP retry and resilience configuration
    http_retries: Optional[int] = None
    http_backoff: Optional[float] = None
    http_max_backoff: Optional[float] = None
    http_timeout: Optional[float] = None
    http_jitter: Optional[bool] = None
    http_retry_transient_errors: Optional[bool] = None

    # Long-running operations
    poll_interval: float = 5.0

    auth_scope: Optional[str] = None
    default_headers: Dict[str, str] = field(default_factory=dict)
    telemetry: Optional["TelemetryConfig"] = None

    @classmethod
    def from_env(cls) -> "ODataConfig":
        """
        Create a configuration instance with default settings.

        :return: Configuration instance with default values.
        :rtype: ~odata_client.core.config.ODataConfig
        """
        # Environment-free defaults
        return cls(
            http_retries=None,  # Will default to 5 in _HttpClient
            http_backoff=None,  # Will default to 0.5 in _HttpClient
            http_max_backoff=None,  # Will default to 60.0 in _HttpClient
            http_timeout=None,  # Will use method-dependent defaults in _HttpClient
            http_jitter=None,  # Will default to True in _HttpClient
            http_retry_transient_errors=None,  # Will default to True in _HttpClient
            poll_interval=5.0,
        )
