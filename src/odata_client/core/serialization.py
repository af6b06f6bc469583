# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
JSON codec used for request bodies, batch parts and typed results.

Encoding understands dataclasses, mappings, sequences, ``datetime``/``date``,
``UUID``, ``Enum`` and ``Decimal``. Decoding maps JSON objects onto a declared
result type: builtin containers, ``List[T]``, classes exposing ``from_dict``, or
dataclasses (field names matched case-insensitively with underscores ignored, so
``unit_price`` binds ``UnitPrice``). ``@odata.*`` annotations are dropped and
unknown properties land in the :class:`~odata_client.models.open_type.OpenType`
bag when the target supports one.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import json
import typing
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..common.constants import ANNOTATION_PREFIX
from ..models.open_type import OpenType
from .errors import DeserializationError


def _normalize_name(name: str) -> str:
    return name.replace("_", "").lower()


def _format_datetime(value: _dt.datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(_dt.timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


class JsonCodec:
    """
    Encode Python values to JSON bytes and decode JSON into declared result types.

    :param skip_none: Omit dataclass fields whose value is ``None`` when encoding.
    :type skip_none: :class:`bool`
    """

    def __init__(self, skip_none: bool = False) -> None:
        self.skip_none = skip_none

    # ------------------------------------------------------------------ encode

    def to_jsonable(self, value: Any) -> Any:
        """Convert ``value`` into plain JSON-compatible Python structures."""
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, _dt.datetime):
            return _format_datetime(value)
        if isinstance(value, _dt.date):
            return value.isoformat()
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, Decimal):
            return float(value)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            out: Dict[str, Any] = {}
            for f in dataclasses.fields(value):
                v = getattr(value, f.name)
                if v is None and self.skip_none:
                    continue
                out[f.metadata.get("odata_name", f.name)] = self.to_jsonable(v)
            if isinstance(value, OpenType):
                for k, v in value.dynamic_properties.items():
                    out.setdefault(k, self.to_jsonable(v))
            return out
        if isinstance(value, dict):
            return {str(k): self.to_jsonable(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.to_jsonable(v) for v in value]
        if hasattr(value, "to_dict"):
            return self.to_jsonable(value.to_dict())
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    def encode(self, value: Any) -> bytes:
        return json.dumps(self.to_jsonable(value), separators=(",", ":")).encode("utf-8")

    def encode_text(self, value: Any) -> str:
        return json.dumps(self.to_jsonable(value), separators=(",", ":"))

    # ------------------------------------------------------------------ decode

    def decode(self, data: Union[str, bytes, None], target_type: Any = None) -> Any:
        """
        Parse ``data`` as JSON and bind it to ``target_type``.

        :param data: JSON text or UTF-8 bytes. Empty input decodes to ``None``.
        :param target_type: Result type; ``None`` returns the parsed JSON unchanged.
        :raises ~odata_client.core.errors.DeserializationError: On invalid JSON or a shape mismatch.
        """
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        if not data.strip():
            return None
        try:
            parsed = json.loads(data)
        except ValueError as exc:
            raise DeserializationError(f"Invalid JSON: {exc}", target_type=target_type) from exc
        return self.bind(parsed, target_type)

    def bind(self, value: Any, target_type: Any) -> Any:
        """Bind already-parsed JSON to ``target_type``."""
        if target_type is None or target_type is Any or target_type is object:
            return value
        if value is None:
            return None
        try:
            return self._bind(value, target_type)
        except DeserializationError:
            raise
        except (TypeError, ValueError, KeyError) as exc:
            raise DeserializationError(str(exc), target_type=target_type) from exc

    def _bind(self, value: Any, target_type: Any) -> Any:
        origin = typing.get_origin(target_type)
        if origin in (list, typing.List):
            (item_type,) = typing.get_args(target_type) or (None,)
            items = value.get("value") if isinstance(value, dict) and "value" in value else value
            if not isinstance(items, list):
                raise DeserializationError("Expected a JSON array", target_type=target_type)
            return [self.bind(v, item_type) for v in items]
        if origin is Union:
            args = [a for a in typing.get_args(target_type) if a is not type(None)]
            return self.bind(value, args[0]) if len(args) == 1 else value
        if origin in (dict, typing.Dict):
            if not isinstance(value, dict):
                raise DeserializationError("Expected a JSON object", target_type=target_type)
            return value

        if target_type in (dict, list, str, bool):
            if not isinstance(value, target_type):
                raise DeserializationError(
                    f"Expected {target_type.__name__}, got {type(value).__name__}", target_type=target_type
                )
            return value
        if target_type in (int, float, Decimal):
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise DeserializationError(f"Expected a number, got {type(value).__name__}", target_type=target_type)
            return target_type(value)
        if target_type is uuid.UUID:
            return uuid.UUID(str(value))
        if target_type is _dt.datetime:
            return _dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        if target_type is _dt.date:
            return _dt.date.fromisoformat(str(value)[:10])
        if isinstance(target_type, type) and issubclass(target_type, Enum):
            return target_type[value] if isinstance(value, str) and value in target_type.__members__ else target_type(value)

        if isinstance(target_type, type) and hasattr(target_type, "from_dict"):
            return target_type.from_dict(value)
        if isinstance(target_type, type) and dataclasses.is_dataclass(target_type):
            if not isinstance(value, dict):
                raise DeserializationError(
                    f"Expected a JSON object for {target_type.__name__}", target_type=target_type
                )
            return self._bind_dataclass(value, target_type)
        raise DeserializationError(f"Cannot bind JSON to {target_type!r}", target_type=target_type)

    def _bind_dataclass(self, payload: Dict[str, Any], cls: type) -> Any:
        try:
            hints = typing.get_type_hints(cls)
        except NameError:
            # Unresolvable forward references: bind raw JSON values
            hints = {}
        by_name: Dict[str, dataclasses.Field] = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            by_name[_normalize_name(f.metadata.get("odata_name", f.name))] = f
            by_name.setdefault(_normalize_name(f.name), f)

        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, raw in payload.items():
            if ANNOTATION_PREFIX in key:
                continue
            f = by_name.get(_normalize_name(key))
            if f is None:
                extra[key] = raw
                continue
            kwargs[f.name] = self.bind(raw, hints.get(f.name))

        instance = cls(**kwargs)
        if extra and isinstance(instance, OpenType):
            instance.dynamic_properties.update(extra)
        return instance


_default_codec: Optional[JsonCodec] = None


def default_codec() -> JsonCodec:
    global _default_codec
    if _default_codec is None:
        _default_codec = JsonCodec()
    return _default_codec


__all__ = ["JsonCodec", "default_codec"]
