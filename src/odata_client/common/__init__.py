# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared protocol constants for the OData client.
"""

__all__ = []
