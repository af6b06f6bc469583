# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import Optional

import requests

from azure.core.credentials import TokenCredential

from .core._auth import _AuthManager
from .core.config import ODataConfig
from .data._odata import _ODataClient
from .operations.actions import ActionOperations
from .operations.batch import BatchOperations
from .operations.query import QueryOperations
from .operations.records import RecordOperations


class ODataClient:
    """
    High-level client for OData v4 services.

    The client provides a small, stable interface over an OData service root. It
    handles authentication via Azure Identity credentials (or none, for anonymous
    services) and delegates HTTP operations to an internal
    :class:`~odata_client.data._odata._ODataClient`.

    **Context Manager Support (Recommended)**:
        Using the client as a context manager ensures proper resource cleanup
        and enables connection pooling::

            with ODataClient("https://services.example.com/odata") as client:
                page = client.query.builder("Products").top(5).execute()
            # Resources automatically cleaned up

    **Without Context Manager**:
        Resources are created lazily on first use. Call ``close()`` when done::

            client = ODataClient(base_url, credential)
            try:
                client.records.get("Products", 1)
            finally:
                client.close()

    Operations are organized under namespaces:

    - ``client.query``: Query builder, paging and function calls
    - ``client.records``: Single-entity CRUD with ETag concurrency
    - ``client.batch``: ``$batch`` requests with changesets
    - ``client.actions``: Long-running actions (``Prefer: respond-async``)

    :param base_url: Service root URL, for example ``"https://services.example.com/odata"``.
        Trailing slash is automatically removed.
    :type base_url: :class:`str`
    :param credential: Optional Azure Identity credential for bearer authentication.
    :type credential: ~azure.core.credentials.TokenCredential or None
    :param config: Optional configuration for timeouts, retries, polling and telemetry.
        If not provided, defaults are loaded from :meth:`~odata_client.core.config.ODataConfig.from_env`.
    :type config: ~odata_client.core.config.ODataConfig or None

    :raises ValueError: If ``base_url`` is missing or empty after trimming.
    :raises TypeError: If ``credential`` does not implement ``TokenCredential``.
    """

    def __init__(
        self,
        base_url: str,
        credential: Optional[TokenCredential] = None,
        config: Optional[ODataConfig] = None,
    ) -> None:
        self.auth = _AuthManager(credential) if credential is not None else None
        self._base_url = (base_url or "").rstrip("/")
        if not self._base_url:
            raise ValueError("base_url is required.")
        self._config = config or ODataConfig.from_env()
        self._odata: Optional[_ODataClient] = None
        self._session: Optional[requests.Session] = None
        self._owns_session: bool = False

        # Initialize operation namespaces
        self.records = RecordOperations(self)
        self.query = QueryOperations(self)
        self.batch = BatchOperations(self)
        self.actions = ActionOperations(self)

    def __enter__(self) -> "ODataClient":
        """
        Enter the context manager.

        Creates an HTTP session for connection pooling. All operations within
        the context will reuse this session.

        :return: The client instance.
        :rtype: ODataClient
        """
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Explicitly close the client and release resources.

        Closes the HTTP session (if any) and the internal OData client.
        Safe to call multiple times.
        """
        if self._odata is not None:
            self._odata.close()
            self._odata = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
            self._owns_session = False

    def _get_odata(self) -> _ODataClient:
        """
        Get or create the internal OData client instance.

        Construction is deferred until the first API call. When a session exists
        (from the context manager), it is passed to the OData client for pooling.

        :rtype: ~odata_client.data._odata._ODataClient
        """
        if self._odata is None:
            self._odata = _ODataClient(
                self.auth,
                self._base_url,
                self._config,
                session=self._session,
            )
        return self._odata


__all__ = ["ODataClient"]
