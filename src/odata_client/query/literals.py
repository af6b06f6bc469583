# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData v4 literal formatting.

Renders Python values as URI literals for ``$filter`` expressions, entity keys
and function parameters.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Sequence, Tuple, Union

from ..core._error_codes import VALIDATION_KEY_REQUIRED
from ..core.errors import ValidationError


def quote_string(value: str) -> str:
    """Single-quote ``value``, doubling embedded single quotes (``O'Brien`` -> ``'O''Brien'``)."""
    return "'" + value.replace("'", "''") + "'"


def format_datetime(value: _dt.datetime) -> str:
    """
    Render a datetime as ``yyyy-MM-ddTHH:mm:ssZ``.

    Timezone-aware values are converted to UTC; naive values are taken as UTC.
    Sub-second precision is dropped.
    """
    if value.tzinfo is not None:
        value = value.astimezone(_dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_number(value: Union[int, float, Decimal]) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return {"nan": "NaN", "inf": "INF", "-inf": "-INF"}[repr(value)]
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    return str(int(value))


def format_literal(value: Any) -> str:
    """
    Format a value as an OData literal.

    ============================  ==========================
    Python value                  Literal
    ============================  ==========================
    ``None``                      ``null``
    ``str``                       ``'text'`` (quotes doubled)
    ``bool``                      ``true`` / ``false``
    ``datetime``                  ``2024-01-15T10:30:00Z``
    ``date``                      ``2024-01-15``
    ``UUID``                      bare hyphenated form
    ``Enum``                      ``'MemberName'``
    ``int`` / ``float`` / Decimal invariant numeric text
    ============================  ==========================

    Values of any other type render as their quoted ``str()``.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return quote_string(value.name)
    if isinstance(value, str):
        return quote_string(value)
    if isinstance(value, (int, float, Decimal)):
        return format_number(value)
    if isinstance(value, _dt.datetime):
        return format_datetime(value)
    if isinstance(value, _dt.date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return quote_string(str(value))


def format_key(key: Any) -> str:
    """
    Format an entity key for the ``EntitySet(key)`` segment.

    Integers and UUIDs are unquoted, strings are quoted, a mapping renders as a
    composite key (``OrderId=1,ItemId=2``) and any other value uses its ``str()``.

    :raises ~odata_client.core.errors.ValidationError: If ``key`` is ``None`` or an empty mapping.
    """
    if key is None:
        raise ValidationError("Entity key must not be None.", subcode=VALIDATION_KEY_REQUIRED)
    if isinstance(key, Mapping):
        if not key:
            raise ValidationError("Composite key must have at least one part.", subcode=VALIDATION_KEY_REQUIRED)
        return ",".join(f"{name}={format_key(part)}" for name, part in key.items())
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, int):
        return str(key)
    if isinstance(key, uuid.UUID):
        return str(key)
    if isinstance(key, str):
        return quote_string(key)
    return str(key)


def to_lower_camel(name: str) -> str:
    """``MaxResults`` -> ``maxResults``; ``max_results`` -> ``maxResults``."""
    if "_" in name:
        head, *rest = [p for p in name.split("_") if p]
        return head[:1].lower() + head[1:] + "".join(p[:1].upper() + p[1:] for p in rest)
    return name[:1].lower() + name[1:]


def _format_array_element(value: Any) -> str:
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, str):
        return value
    return format_literal(value)


def format_function_parameter(value: Any) -> str:
    """Scalars use :func:`format_literal`; sequences render ``[a,b]`` with unquoted string elements."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ",".join(_format_array_element(v) for v in value) + "]"
    return format_literal(value)


ParameterSource = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], Any]


def _parameter_pairs(parameters: ParameterSource) -> List[Tuple[str, Any]]:
    if parameters is None:
        return []
    if isinstance(parameters, Mapping):
        return list(parameters.items())
    if dataclasses.is_dataclass(parameters) and not isinstance(parameters, type):
        return [(f.name, getattr(parameters, f.name)) for f in dataclasses.fields(parameters)]
    if isinstance(parameters, Sequence) and not isinstance(parameters, (str, bytes)):
        return [(str(name), value) for name, value in parameters]
    return [(name, value) for name, value in vars(parameters).items() if not name.startswith("_")]


def format_function_parameters(parameters: ParameterSource) -> str:
    """
    Render a function parameter list: ``name1=value1,name2=value2``.

    Names are converted to lower camel case and ``None`` values are skipped.
    ``parameters`` may be a mapping, a list of ``(name, value)`` pairs, a dataclass
    instance or a plain object.
    """
    return ",".join(
        f"{to_lower_camel(name)}={format_function_parameter(value)}"
        for name, value in _parameter_pairs(parameters)
        if value is not None
    )


__all__ = [
    "quote_string",
    "format_datetime",
    "format_literal",
    "format_key",
    "format_function_parameter",
    "format_function_parameters",
    "to_lower_camel",
]
