# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Decode ``$batch`` responses into per-operation results.

Multipart responses are split on their boundary, changesets are decoded
recursively and each embedded HTTP response becomes a
:class:`~odata_client.batch.models.BatchOperationResult`. Responses without a
boundary are read as JSON batches (``{"responses": [{"id", "status", "body"}]}``).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.errors import DeserializationError
from ..core.serialization import JsonCodec, default_codec
from .models import BatchOperation, BatchOperationResult, BatchResponse

logger = logging.getLogger(__name__)

_BOUNDARY_RE = re.compile(r"boundary=([^;\s]+)", re.IGNORECASE)
_STATUS_RE = re.compile(r"HTTP/\d\.\d\s+(\d{3})[ \t]*([^\r\n]*)")
_CONTENT_ID_RE = re.compile(r"Content-ID:\s*(\S+)", re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\r?\n\r?\n")


def extract_boundary(content_type: Optional[str]) -> Optional[str]:
    match = _BOUNDARY_RE.search(content_type or "")
    if not match:
        return None
    return match.group(1).strip('"')


def _is_empty_part(part: str) -> bool:
    stripped = part.strip()
    return not stripped or stripped == "--"


class _Correlator:
    """Tracks the positional index and resolves parts to operations."""

    def __init__(self, operations: List[BatchOperation]) -> None:
        self.operations = operations
        self.by_id: Dict[str, BatchOperation] = {op.id: op for op in operations}
        self.index = 0

    def resolve(self, content_id: Optional[str]) -> Tuple[str, Optional[BatchOperation]]:
        positional = self.operations[self.index] if self.index < len(self.operations) else None
        if content_id:
            return content_id, self.by_id.get(content_id, positional)
        return (positional.id if positional else ""), positional


def _parse_headers(block: str) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for line in block.splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip():
            headers[name.strip()] = value.strip()
    return headers


def _bind_result(
    result: BatchOperationResult,
    operation: Optional[BatchOperation],
    body: Any,
    codec: JsonCodec,
    parsed: bool = False,
) -> None:
    if operation is None or operation.result_type is None or not result.is_success:
        return
    if body is None or body == "":
        return
    try:
        if not parsed:
            result.result = codec.decode(body, operation.result_type)
        else:
            result.result = codec.bind(body, operation.result_type)
    except DeserializationError as exc:
        logger.warning("Could not deserialize batch result for operation %s: %s", result.operation_id, exc)


def _finish(result: BatchOperationResult, operation: Optional[BatchOperation]) -> None:
    if operation is not None:
        result.request_etag = operation.etag
    if not result.is_success and result.response_body:
        result.error_message = result.response_body


def _parse_leaf(part: str, correlator: _Correlator, codec: JsonCodec) -> Optional[BatchOperationResult]:
    status = _STATUS_RE.search(part)
    if status is None:
        return None

    # MIME headers come before the status line; response headers and body follow it
    mime_headers = part[: status.start()]
    after_status = part[status.end():]
    split = _BLANK_LINE_RE.search(after_status)
    if split is None:
        header_block, body = after_status, ""
    else:
        header_block, body = after_status[: split.start()], after_status[split.end():]
    body = body.strip()

    id_match = _CONTENT_ID_RE.search(mime_headers) or _CONTENT_ID_RE.search(header_block)
    operation_id, operation = correlator.resolve(id_match.group(1) if id_match else None)

    result = BatchOperationResult(
        operation_id=operation_id,
        status_code=int(status.group(1)),
        response_body=body or None,
        headers=_parse_headers(header_block),
    )
    _bind_result(result, operation, body, codec)
    _finish(result, operation)
    correlator.index += 1
    return result


def _parse_parts(text: str, boundary: str, correlator: _Correlator, codec: JsonCodec, out: List[BatchOperationResult]) -> None:
    for part in text.split(f"--{boundary}"):
        if _is_empty_part(part):
            continue
        split = _BLANK_LINE_RE.search(part)
        part_headers = part[: split.start()] if split else part
        if "multipart/mixed" in part_headers.lower():
            nested = extract_boundary(part_headers)
            if nested is None:
                logger.warning("Changeset part without boundary skipped")
                continue
            _parse_parts(part[split.end():] if split else part, nested, correlator, codec, out)
        elif "HTTP/" in part:
            result = _parse_leaf(part, correlator, codec)
            if result is not None:
                out.append(result)


def _decode_json_batch(text: str, operations: List[BatchOperation], codec: JsonCodec) -> BatchResponse:
    response = BatchResponse()
    try:
        document = json.loads(text) if text.strip() else {}
    except ValueError as exc:
        logger.warning("Could not parse JSON batch response: %s", exc)
        return response
    entries = document.get("responses") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        return response

    correlator = _Correlator(operations)
    for entry in entries:
        entry = entry if isinstance(entry, dict) else {}
        raw_id = entry.get("id")
        operation_id, operation = correlator.resolve(str(raw_id) if raw_id is not None else None)
        try:
            status_code = int(entry.get("status", 0))
        except (TypeError, ValueError):
            status_code = 0
        body = entry.get("body")
        result = BatchOperationResult(
            operation_id=operation_id,
            status_code=status_code,
            response_body=json.dumps(body) if "body" in entry else None,
            headers={str(k): str(v) for k, v in (entry.get("headers") or {}).items()},
        )
        _bind_result(result, operation, body, codec, parsed=True)
        _finish(result, operation)
        response.results.append(result)
        correlator.index += 1
    return response


def decode_batch_response(
    body: Union[str, bytes],
    content_type: Optional[str],
    operations: List[BatchOperation],
    codec: Optional[JsonCodec] = None,
) -> BatchResponse:
    """
    Decode a ``$batch`` response body.

    Results are correlated to ``operations`` (flattened, in wire order) by
    ``Content-ID`` when present, else by position. A failed operation never fails
    the batch: its status and raw body are recorded and ``error_message`` is set.
    Successful bodies are bound to the operation's ``result_type``; a binding
    failure is logged and leaves ``result`` as ``None``.

    :param body: Raw response body.
    :param content_type: Response ``Content-Type`` header.
    :param operations: Operations of the batch that was sent, flattened.
    :param codec: JSON codec used to bind results.
    :rtype: ~odata_client.batch.models.BatchResponse
    """
    codec = codec or default_codec()
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else (body or "")

    boundary = extract_boundary(content_type)
    if boundary is None:
        logger.debug("No boundary in batch Content-Type %r; reading JSON batch", content_type)
        return _decode_json_batch(text, operations, codec)

    results: List[BatchOperationResult] = []
    _parse_parts(text, boundary, _Correlator(operations), codec, results)
    logger.debug("Decoded %d batch result(s)", len(results))
    return BatchResponse(results)


__all__ = ["decode_batch_response", "extract_boundary"]
