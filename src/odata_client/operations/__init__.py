# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the OData client.

This module contains the operation namespace classes that organize
related operations under intuitive namespaces:
- RecordOperations: CRUD operations on single entities
- QueryOperations: Query descriptors, paging and function calls
- BatchOperations: ``$batch`` requests
- ActionOperations: Long-running actions with ``Prefer: respond-async``
"""

__all__ = []
