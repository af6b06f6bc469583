# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Mixin for entity classes that accept dynamic (undeclared) properties."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional


class OpenType:
    """
    Property bag for OData open types.

    Mix into an entity dataclass to keep properties the class does not declare.
    :class:`~odata_client.core.serialization.JsonCodec` fills the bag when decoding
    and merges it back into the payload when encoding.

    Example::

        @dataclass
        class Product(OpenType):
            id: int
            name: str

        product = codec.decode(b'{"id": 1, "name": "Pen", "Colour": "Blue"}', Product)
        product.get_dynamic("Colour")  # "Blue"
    """

    @property
    def dynamic_properties(self) -> Dict[str, Any]:
        bag = self.__dict__.get("_dynamic_properties")
        if bag is None:
            bag = {}
            # object.__setattr__ so frozen dataclasses can carry a bag too
            object.__setattr__(self, "_dynamic_properties", bag)
        return bag

    def get_dynamic(self, name: str, default: Optional[Any] = None) -> Any:
        return self.dynamic_properties.get(name, default)

    def set_dynamic(self, name: str, value: Any) -> None:
        self.dynamic_properties[name] = value

    def iter_dynamic(self) -> Iterator[str]:
        return iter(self.dynamic_properties)


__all__ = ["OpenType"]
