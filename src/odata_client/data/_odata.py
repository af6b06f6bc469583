# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from ..async_operation import AsyncOperation, AsyncOperationResult
from ..batch.decoder import decode_batch_response
from ..batch.encoder import encode_batch
from ..batch.models import BatchBuilder, BatchResponse
from ..common.constants import (
    ANNOTATION_COUNT,
    ANNOTATION_DELTA_LINK,
    ANNOTATION_ETAG,
    ANNOTATION_ID,
    ANNOTATION_NEXT_LINK,
    ANNOTATION_ODATA_REMOVED,
    ANNOTATION_PREFIX,
    ANNOTATION_REMOVED,
    CONTENT_TYPE_JSON,
    HEADER_CLIENT_REQUEST_ID,
    HEADER_ETAG,
    HEADER_IF_MATCH,
    HEADER_LOCATION,
    HEADER_ODATA_MAX_VERSION,
    HEADER_ODATA_VERSION,
    HEADER_PREFER,
    ODATA_VERSION,
    PREFER_RESPOND_ASYNC,
)
from ..core._auth import _AuthManager
from ..core._error_codes import PROTOCOL_HTML_RESPONSE, PROTOCOL_MISSING_LOCATION, TRANSIENT_STATUS, http_subcode
from ..core._http import _HttpClient
from ..core.cancellation import CancellationToken
from ..core.config import ODataConfig
from ..core.errors import (
    ConcurrencyError,
    ForbiddenError,
    HttpError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.results import CrossJoinResponse, CrossJoinRow, DeletedEntity, DeltaResponse, EntityResult, ODataResponse
from ..core.serialization import JsonCodec, default_codec
from ..core.telemetry import create_telemetry_manager
from ..query.builder import QueryBuilder
from ..query.crossjoin import CrossJoinBuilder
from ..query.literals import format_key

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
}


def _looks_like_html(response: requests.Response) -> bool:
    content_type = (response.headers.get("Content-Type") or "").lower()
    if "text/html" in content_type:
        return True
    head = (response.text or "")[:64].lstrip().lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def _removed_marker(item: Any) -> Optional[Dict[str, Any]]:
    """Return the removal annotation of a delta tombstone, or ``None`` for a regular entity."""
    if not isinstance(item, dict):
        return None
    for name in (ANNOTATION_REMOVED, ANNOTATION_ODATA_REMOVED):
        if name in item:
            marker = item[name]
            return marker if isinstance(marker, dict) else {}
    return None


def _service_error(response: requests.Response) -> Tuple[Optional[str], Optional[str]]:
    """Extract ``(code, message)`` from an OData ``{"error": {...}}`` body, if present."""
    try:
        payload = response.json()
    except ValueError:
        return None, None
    if not isinstance(payload, dict):
        return None, None
    error = payload.get("error")
    if not isinstance(error, dict):
        return None, None
    code = error.get("code")
    message = error.get("message")
    return (str(code) if code else None), (str(message) if message else None)


class _ODataClient:
    """
    Low-level OData v4 client: request plumbing, CRUD, queries, ``$batch`` and
    ``respond-async`` calls.

    This class is internal; use :class:`~odata_client.client.ODataClient`.

    :param auth: Token helper, or ``None`` for anonymous services.
    :param base_url: Service root URL.
    :param config: Client configuration.
    :param session: Optional session for connection pooling.
    """

    def __init__(
        self,
        auth: Optional[_AuthManager],
        base_url: str,
        config: Optional[ODataConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth = auth
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("base_url is required.")
        self.config = config or ODataConfig.from_env()
        self._http = _HttpClient(
            retries=self.config.http_retries,
            backoff=self.config.http_backoff,
            timeout=self.config.http_timeout,
            max_backoff=self.config.http_max_backoff,
            jitter=self.config.http_jitter,
            retry_transient_errors=self.config.http_retry_transient_errors,
            session=session,
        )
        self._telemetry = create_telemetry_manager(self.config.telemetry)
        self._codec: JsonCodec = default_codec()

    # ----------------------------------------------------------- plumbing

    def close(self) -> None:
        self._http.close()

    def _scope(self) -> str:
        return self.config.auth_scope or f"{self.base_url}/.default"

    def _headers(self) -> Dict[str, str]:
        """Build standard OData headers, with bearer auth when a credential is configured."""
        headers = {
            "Accept": CONTENT_TYPE_JSON,
            HEADER_ODATA_MAX_VERSION: ODATA_VERSION,
            HEADER_ODATA_VERSION: ODATA_VERSION,
        }
        if self.auth is not None:
            token = self.auth._acquire_token(self._scope()).access_token
            headers["Authorization"] = f"Bearer {token}"
        headers.update(self.config.default_headers)
        headers.update(self._telemetry.get_additional_headers())
        return headers

    def _url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        entity_set: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> Tuple[requests.Response, str]:
        """
        Send one logical request (retries included) under a telemetry scope.

        :return: The final response and the generated client request ID.
        """
        full_url = self._url(url)
        merged = self._headers()
        if headers:
            merged.update(headers)
        client_request_id = str(uuid.uuid4())
        merged[HEADER_CLIENT_REQUEST_ID] = client_request_id
        with self._telemetry.trace_request(
            operation, method.upper(), full_url, client_request_id, entity_set
        ) as ctx:
            response = self._http._request(
                method, full_url, headers=merged, cancellation_token=cancellation_token, **kwargs
            )
            self._telemetry.record_response(ctx, response.status_code, len(response.content or b""))
        return response, client_request_id

    def _send(
        self, method: str, url: str, cancellation_token: Optional[CancellationToken] = None
    ) -> requests.Response:
        """Bare send used by :class:`~odata_client.async_operation.AsyncOperation` polls."""
        response, _ = self._request(
            method, url, operation=f"async.{method.lower()}", cancellation_token=cancellation_token
        )
        return response

    def _ensure_success(
        self,
        response: requests.Response,
        url: str,
        request_etag: Optional[str] = None,
    ) -> None:
        """
        Map a non-success response to the error hierarchy.

        :raises ~odata_client.core.errors.ConcurrencyError: On 412.
        :raises ~odata_client.core.errors.HttpError: On any other non-2xx status, or
            an HTML body on a success status.
        """
        status = response.status_code
        body = response.text or None
        if 200 <= status < 300:
            if body and _looks_like_html(response):
                raise HttpError(
                    "Service returned an HTML page instead of an OData response. "
                    "Check the service URL and any proxy in between.",
                    status,
                    request_url=url,
                    response_body=body,
                    subcode=PROTOCOL_HTML_RESPONSE,
                )
            return

        service_code, service_message = _service_error(response)
        message = f"HTTP {status}: {service_message or response.reason or 'request failed'}"

        if status == 412:
            raise ConcurrencyError(
                message,
                request_url=url,
                response_body=body,
                request_etag=request_etag,
                current_etag=response.headers.get(HEADER_ETAG),
            )

        retry_after = None
        if "Retry-After" in response.headers:
            try:
                retry_after = int(response.headers["Retry-After"])
            except (TypeError, ValueError):
                retry_after = None

        error_cls = _STATUS_ERRORS.get(status, HttpError)
        raise error_cls(
            message,
            status,
            request_url=url,
            response_body=body,
            is_transient=status in TRANSIENT_STATUS or status >= 500,
            subcode=http_subcode(status),
            service_error_code=service_code,
            retry_after=retry_after,
        )

    def _entity_path(self, entity_set: str, key: Any) -> str:
        return f"{entity_set}({format_key(key)})"

    def _etag_of(self, response: requests.Response, payload: Any = None) -> Optional[str]:
        etag = response.headers.get(HEADER_ETAG)
        if etag:
            return etag
        if isinstance(payload, dict):
            value = payload.get(ANNOTATION_ETAG)
            return str(value) if value else None
        return None

    def _parse_json(self, response: requests.Response) -> Any:
        text = response.text
        if not text or not text.strip():
            return None
        return self._codec.decode(text)

    # -------------------------------------------------------------- CRUD

    def _get(
        self,
        entity_set: str,
        key: Any,
        select: Optional[str] = None,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """Retrieve a single entity by key."""
        url = self._entity_path(entity_set, key)
        params = {"$select": select} if select else None
        response, request_id = self._request(
            "get",
            url,
            operation="records.get",
            entity_set=entity_set,
            params=params,
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, url)
        payload = self._parse_json(response)
        return EntityResult(
            client_request_id=request_id,
            entity=self._codec.bind(payload, result_type),
            etag=self._etag_of(response, payload),
            status_code=response.status_code,
        )

    def _create(
        self,
        entity_set: str,
        entity: Any,
        result_type: Any = None,
        return_representation: bool = True,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """POST a new entity; the created representation is bound when the service returns it."""
        headers = {"Content-Type": CONTENT_TYPE_JSON}
        if return_representation:
            headers[HEADER_PREFER] = "return=representation"
        response, request_id = self._request(
            "post",
            entity_set,
            operation="records.create",
            entity_set=entity_set,
            headers=headers,
            data=self._codec.encode(entity),
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, entity_set)
        payload = self._parse_json(response)
        return EntityResult(
            client_request_id=request_id,
            entity=self._codec.bind(payload, result_type),
            etag=self._etag_of(response, payload),
            status_code=response.status_code,
        )

    def _update(
        self,
        entity_set: str,
        key: Any,
        patch: Any,
        etag: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """PATCH an entity; ``etag`` is sent as ``If-Match`` and a 412 raises ``ConcurrencyError``."""
        url = self._entity_path(entity_set, key)
        headers = {"Content-Type": CONTENT_TYPE_JSON}
        if etag:
            headers[HEADER_IF_MATCH] = etag
        response, request_id = self._request(
            "patch",
            url,
            operation="records.update",
            entity_set=entity_set,
            headers=headers,
            data=self._codec.encode(patch),
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, url, request_etag=etag)
        payload = self._parse_json(response)
        return EntityResult(
            client_request_id=request_id,
            entity=payload,
            etag=self._etag_of(response, payload),
            status_code=response.status_code,
        )

    def _delete(
        self,
        entity_set: str,
        key: Any,
        etag: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """DELETE an entity, conditionally when ``etag`` is given."""
        url = self._entity_path(entity_set, key)
        headers = {HEADER_IF_MATCH: etag} if etag else None
        response, request_id = self._request(
            "delete",
            url,
            operation="records.delete",
            entity_set=entity_set,
            headers=headers,
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, url, request_etag=etag)
        return EntityResult(client_request_id=request_id, status_code=response.status_code)

    # ------------------------------------------------------------ queries

    def _to_page(
        self,
        response: requests.Response,
        request_id: str,
        result_type: Any,
    ) -> ODataResponse:
        payload = self._parse_json(response)
        etag = response.headers.get(HEADER_ETAG)
        if isinstance(payload, dict) and isinstance(payload.get("value"), list):
            entries = [item for item in payload["value"] if _removed_marker(item) is None]
            if len(entries) != len(payload["value"]):
                logger.debug(
                    "Skipped %d removed entries in page; read delta links with get_delta()",
                    len(payload["value"]) - len(entries),
                )
            items = [self._codec.bind(item, result_type) for item in entries]
            count = payload.get(ANNOTATION_COUNT)
            return ODataResponse(
                client_request_id=request_id,
                value=items,
                count=int(count) if count is not None else None,
                next_link=payload.get(ANNOTATION_NEXT_LINK),
                delta_link=payload.get(ANNOTATION_DELTA_LINK),
                etag=etag,
            )
        if payload is None:
            return ODataResponse(client_request_id=request_id, etag=etag)
        # Single entity (key addressing)
        return ODataResponse(
            client_request_id=request_id,
            value=[self._codec.bind(payload, result_type)],
            etag=self._etag_of(response, payload),
        )

    def _query(
        self,
        builder: QueryBuilder,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> ODataResponse:
        """Execute a query descriptor and return the first page."""
        url = builder.build_url()
        response, request_id = self._request(
            "get",
            url,
            operation="query.get",
            entity_set=builder.entity_set,
            headers=builder.headers,
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, url)
        return self._to_page(response, request_id, result_type)

    def _query_pages(
        self,
        builder: QueryBuilder,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Iterator[ODataResponse]:
        """Yield pages, following ``@odata.nextLink`` until the service stops sending one."""
        page = self._query(builder, result_type, cancellation_token)
        yield page
        while page.next_link:
            next_link = page.next_link
            response, request_id = self._request(
                "get",
                next_link,
                operation="query.next_page",
                entity_set=builder.entity_set,
                headers=builder.headers,
                cancellation_token=cancellation_token,
            )
            self._ensure_success(response, next_link)
            page = self._to_page(response, request_id, result_type)
            yield page

    # -------------------------------------------------------------- delta

    def _to_delta_page(self, response: requests.Response, request_id: str, result_type: Any) -> DeltaResponse:
        payload = self._parse_json(response)
        if not isinstance(payload, dict):
            return DeltaResponse(client_request_id=request_id)
        value: List[Any] = []
        deleted: List[DeletedEntity] = []
        for item in payload.get("value") or []:
            marker = _removed_marker(item)
            if marker is None:
                value.append(self._codec.bind(item, result_type))
                continue
            entity_id = item.get(ANNOTATION_ID, item.get("id"))
            deleted.append(
                DeletedEntity(
                    id=str(entity_id) if entity_id is not None else None,
                    reason=marker.get("reason"),
                )
            )
            logger.debug("Delta entry removed: %s (%s)", entity_id, marker.get("reason"))
        count = payload.get(ANNOTATION_COUNT)
        return DeltaResponse(
            client_request_id=request_id,
            value=value,
            deleted=deleted,
            count=int(count) if count is not None else None,
            next_link=payload.get(ANNOTATION_NEXT_LINK),
            delta_link=payload.get(ANNOTATION_DELTA_LINK),
        )

    def _get_delta(
        self,
        delta_link: str,
        result_type: Any = None,
        headers: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> DeltaResponse:
        """Read one page of changes from a delta (or delta next) link."""
        response, request_id = self._request(
            "get",
            delta_link,
            operation="query.delta",
            headers=headers,
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, delta_link)
        page = self._to_delta_page(response, request_id, result_type)
        logger.debug("Delta page: %d changed, %d removed", len(page.value), len(page.deleted))
        return page

    def _get_all_delta(
        self,
        delta_link: str,
        result_type: Any = None,
        headers: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> DeltaResponse:
        """
        Follow next links through every page of a delta.

        The count of the first page that reports one is kept, along with the last
        delta link seen.
        """
        value: List[Any] = []
        deleted: List[DeletedEntity] = []
        count: Optional[int] = None
        final_delta_link: Optional[str] = None
        request_id: Optional[str] = None
        url: Optional[str] = delta_link
        while url:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            page = self._get_delta(url, result_type, headers, cancellation_token)
            request_id = request_id or page.client_request_id
            value.extend(page.value)
            deleted.extend(page.deleted)
            if count is None:
                count = page.count
            if page.delta_link:
                final_delta_link = page.delta_link
            url = page.next_link
        return DeltaResponse(
            client_request_id=request_id,
            value=value,
            deleted=deleted,
            count=count,
            delta_link=final_delta_link,
        )

    # ---------------------------------------------------------- crossjoin

    def _to_crossjoin_page(self, response: requests.Response, request_id: str) -> CrossJoinResponse:
        payload = self._parse_json(response)
        if not isinstance(payload, dict):
            return CrossJoinResponse(client_request_id=request_id)
        rows = [
            CrossJoinRow({name: value for name, value in item.items() if not name.startswith("@")})
            for item in payload.get("value") or []
            if isinstance(item, dict)
        ]
        count = payload.get(ANNOTATION_COUNT)
        return CrossJoinResponse(
            client_request_id=request_id,
            value=rows,
            count=int(count) if count is not None else None,
            next_link=payload.get(ANNOTATION_NEXT_LINK),
        )

    def _crossjoin_pages(
        self,
        builder: CrossJoinBuilder,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Iterator[CrossJoinResponse]:
        url: Optional[str] = builder.build_url()
        while url:
            response, request_id = self._request(
                "get",
                url,
                operation="query.crossjoin",
                headers=builder.headers,
                cancellation_token=cancellation_token,
            )
            self._ensure_success(response, url)
            page = self._to_crossjoin_page(response, request_id)
            yield page
            url = page.next_link

    def _get_crossjoin(
        self,
        builder: CrossJoinBuilder,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> CrossJoinResponse:
        """Execute a ``$crossjoin`` and return its first page."""
        return next(self._crossjoin_pages(builder, cancellation_token))

    def _get_all_crossjoin(
        self,
        builder: CrossJoinBuilder,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> CrossJoinResponse:
        """Collect the rows of every page; the first reported count is kept."""
        rows: List[CrossJoinRow] = []
        count: Optional[int] = None
        request_id: Optional[str] = None
        for page in self._crossjoin_pages(builder, cancellation_token):
            request_id = request_id or page.client_request_id
            rows.extend(page.value)
            if count is None:
                count = page.count
        return CrossJoinResponse(client_request_id=request_id, value=rows, count=count)

    def _call_function(
        self,
        builder: QueryBuilder,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Invoke a bound or unbound function described by ``builder``.

        Primitive and collection results arrive wrapped as ``{"value": ...}``; the
        wrapper is removed before binding.
        """
        url = builder.build_url()
        response, _ = self._request(
            "get",
            url,
            operation="query.function",
            entity_set=builder.entity_set,
            headers=builder.headers,
            cancellation_token=cancellation_token,
        )
        self._ensure_success(response, url)
        payload = self._parse_json(response)
        if isinstance(payload, dict) and "value" in payload:
            properties = [name for name in payload if not name.startswith(ANNOTATION_PREFIX)]
            if properties == ["value"]:
                payload = payload["value"]
        return self._codec.bind(payload, result_type)

    # -------------------------------------------------------------- batch

    def _post_batch(
        self,
        batch: BatchBuilder,
        prefer_async: bool,
        cancellation_token: Optional[CancellationToken],
    ) -> requests.Response:
        encoded = encode_batch(batch, self._codec)
        headers = {"Content-Type": encoded.content_type}
        if prefer_async:
            headers[HEADER_PREFER] = PREFER_RESPOND_ASYNC
        response, _ = self._request(
            "post",
            "$batch",
            operation="batch.execute",
            headers=headers,
            data=encoded.body,
            cancellation_token=cancellation_token,
        )
        return response

    def _decode_batch(self, response: requests.Response, batch: BatchBuilder) -> BatchResponse:
        return decode_batch_response(
            response.content,
            response.headers.get("Content-Type"),
            batch.all_operations(),
            self._codec,
        )

    def _execute_batch(
        self,
        batch: BatchBuilder,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> BatchResponse:
        """Send the batch as one ``$batch`` request and decode the per-operation results."""
        response = self._post_batch(batch, False, cancellation_token)
        self._ensure_success(response, "$batch")
        result = self._decode_batch(response, batch)
        logger.debug("Batch executed: %d result(s), %d failed", len(result), len(result.failed_results))
        return result

    def _execute_batch_async(
        self,
        batch: BatchBuilder,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> AsyncOperationResult:
        """Send the batch with ``Prefer: respond-async``."""
        response = self._post_batch(batch, True, cancellation_token)
        if response.status_code == 202:
            return AsyncOperationResult(
                is_async=True,
                operation=self._async_operation(
                    response,
                    "$batch",
                    result_decoder=lambda r: self._decode_batch(r, batch),
                ),
            )
        self._ensure_success(response, "$batch")
        return AsyncOperationResult(is_async=False, synchronous_result=self._decode_batch(response, batch))

    # ------------------------------------------------------ long-running

    def _async_operation(
        self,
        response: requests.Response,
        url: str,
        result_type: Any = None,
        result_decoder: Any = None,
    ) -> AsyncOperation:
        location = response.headers.get(HEADER_LOCATION)
        if not location:
            raise HttpError(
                "Service accepted the request asynchronously but sent no Location header.",
                response.status_code,
                request_url=url,
                response_body=response.text or None,
                subcode=PROTOCOL_MISSING_LOCATION,
            )
        monitor_url = urljoin(self.base_url + "/", location)
        logger.debug("Async operation started, monitor URL: %s", monitor_url)
        return AsyncOperation(
            self._send,
            monitor_url,
            result_type=result_type,
            poll_interval=self.config.poll_interval,
            codec=self._codec,
            result_decoder=result_decoder,
        )

    def _call_with_prefer_async(
        self,
        action_url: str,
        parameters: Any = None,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> AsyncOperationResult:
        """
        POST an action with ``Prefer: respond-async``.

        A 202 yields an :class:`AsyncOperation` over the ``Location`` monitor URL;
        any other success is returned as the synchronous result.
        """
        headers = {HEADER_PREFER: PREFER_RESPOND_ASYNC, "Content-Type": CONTENT_TYPE_JSON}
        body = self._codec.encode(parameters if parameters is not None else {})
        response, _ = self._request(
            "post",
            action_url,
            operation="actions.call",
            headers=headers,
            data=body,
            cancellation_token=cancellation_token,
        )
        if response.status_code == 202:
            return AsyncOperationResult(
                is_async=True,
                operation=self._async_operation(response, action_url, result_type=result_type),
            )
        self._ensure_success(response, action_url)
        return AsyncOperationResult(
            is_async=False,
            synchronous_result=self._codec.decode(response.text, result_type),
        )


__all__ = ["_ODataClient"]
