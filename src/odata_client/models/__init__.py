# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity model helpers for the OData client.

- :class:`~odata_client.models.open_type.OpenType`: Mixin for dataclass entities that keep
  properties the class does not declare.

Note:
    This ``__init__.py`` does NOT import/export models. Import directly from the
    specific module files.
"""

__all__ = []
