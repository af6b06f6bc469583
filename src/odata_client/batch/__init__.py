# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData ``$batch`` support: batch/changeset models, the multipart encoder and the
response decoder.
"""

from .decoder import decode_batch_response
from .encoder import EncodedBatch, encode_batch
from .models import (
    BatchBuilder,
    BatchOperation,
    BatchOperationResult,
    BatchOperationType,
    BatchResponse,
    Changeset,
    ChangesetBuilder,
)

__all__ = [
    "BatchBuilder",
    "BatchOperation",
    "BatchOperationResult",
    "BatchOperationType",
    "BatchResponse",
    "Changeset",
    "ChangesetBuilder",
    "EncodedBatch",
    "encode_batch",
    "decode_batch_response",
]
