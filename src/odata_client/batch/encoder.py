# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Encode a batch as a ``multipart/mixed`` request body."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from ..common.constants import (
    CONTENT_TYPE_HTTP,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_MULTIPART_MIXED,
    HEADER_CONTENT_ID,
    HEADER_IF_MATCH,
)
from ..core.serialization import JsonCodec, default_codec
from .models import BatchBuilder, BatchOperation, BatchOperationType, Changeset

logger = logging.getLogger(__name__)

CRLF = "\r\n"


@dataclass(frozen=True)
class EncodedBatch:
    """Wire form of a batch: the body and the boundary that frames it."""

    body: bytes
    boundary: str

    @property
    def content_type(self) -> str:
        return f"{CONTENT_TYPE_MULTIPART_MIXED}; boundary={self.boundary}"


def new_boundary(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _operation_lines(operation: BatchOperation, codec: JsonCodec) -> List[str]:
    lines = [
        f"Content-Type: {CONTENT_TYPE_HTTP}",
        "Content-Transfer-Encoding: binary",
        "",
        f"{operation.method} {operation.url} HTTP/1.1",
        f"{HEADER_CONTENT_ID}: {operation.id}",
    ]
    for name, value in operation.headers.items():
        lines.append(f"{name}: {value}")
    if operation.etag and operation.operation_type in (BatchOperationType.UPDATE, BatchOperationType.DELETE):
        lines.append(f"{HEADER_IF_MATCH}: {operation.etag}")

    if operation.body is not None:
        lines.append(f"Content-Type: {CONTENT_TYPE_JSON}")
        lines.append("")
        lines.append(codec.encode_text(operation.body))
    else:
        lines.append("")
        lines.append("")
    return lines


def _changeset_lines(changeset: Changeset, codec: JsonCodec) -> List[str]:
    boundary = new_boundary("changeset")
    lines = [f"Content-Type: {CONTENT_TYPE_MULTIPART_MIXED}; boundary={boundary}", ""]
    for operation in changeset.operations:
        lines.append(f"--{boundary}")
        lines.extend(_operation_lines(operation, codec))
    lines.append(f"--{boundary}--")
    lines.append("")
    return lines


def encode_batch(
    batch: BatchBuilder,
    codec: Optional[JsonCodec] = None,
    boundary: Optional[str] = None,
) -> EncodedBatch:
    """
    Encode all batch items, in insertion order, as one multipart body.

    Each call draws a fresh ``batch_<hex>`` boundary (unless one is given) and a fresh
    ``changeset_<hex>`` boundary per changeset. Empty changesets are skipped.
    Lines are CRLF-terminated.

    :param batch: The batch to encode.
    :param codec: JSON codec for operation bodies.
    :param boundary: Override for the outer boundary.
    :return: Body bytes and the boundary for the request ``Content-Type``.
    :rtype: EncodedBatch

    Example::

        encoded = encode_batch(batch)
        session.post(f"{root}/$batch", data=encoded.body,
                     headers={"Content-Type": encoded.content_type})
    """
    codec = codec or default_codec()
    boundary = boundary or new_boundary("batch")
    lines: List[str] = []
    for item in batch.items:
        if isinstance(item, Changeset):
            if not item.operations:
                continue
            lines.append(f"--{boundary}")
            lines.extend(_changeset_lines(item, codec))
        else:
            lines.append(f"--{boundary}")
            lines.extend(_operation_lines(item, codec))
    lines.append(f"--{boundary}--")
    lines.append("")

    logger.debug("Encoded batch with %d item(s), boundary %s", len(batch.items), boundary)
    return EncodedBatch(CRLF.join(lines).encode("utf-8"), boundary)


__all__ = ["EncodedBatch", "encode_batch", "new_boundary"]
