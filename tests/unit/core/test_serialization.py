# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for the JSON codec."""

import datetime as dt
import json
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

import pytest

from odata_client.core.errors import DeserializationError
from odata_client.core.serialization import JsonCodec, default_codec
from odata_client.models.open_type import OpenType


class Color(Enum):
    Red = 1
    Blue = 2


@dataclass
class Category:
    id: int
    name: str


@dataclass
class Product(OpenType):
    id: int
    name: str
    unit_price: Optional[Decimal] = None
    category: Optional[Category] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class Renamed:
    display_name: str = field(metadata={"odata_name": "Title"})


class Money:
    def __init__(self, amount):
        self.amount = amount

    @classmethod
    def from_dict(cls, data):
        return cls(data["Amount"])


class TestEncode:
    def setup_method(self):
        self.codec = JsonCodec()

    def test_scalars_and_special_types(self):
        value = {
            "when": dt.datetime(2024, 1, 2, 3, 4, 5),
            "day": dt.date(2024, 1, 2),
            "id": uuid.UUID("12345678-1234-1234-1234-123456789abc"),
            "price": Decimal("9.5"),
            "color": Color.Blue,
        }
        decoded = json.loads(self.codec.encode(value))
        assert decoded == {
            "when": "2024-01-02T03:04:05Z",
            "day": "2024-01-02",
            "id": "12345678-1234-1234-1234-123456789abc",
            "price": 9.5,
            "color": "Blue",
        }

    def test_aware_datetime_converted_to_utc(self):
        tz = dt.timezone(dt.timedelta(hours=2))
        text = self.codec.encode_text(dt.datetime(2024, 1, 2, 5, 0, 0, tzinfo=tz))
        assert text == '"2024-01-02T03:00:00Z"'

    def test_dataclass_with_open_type_properties(self):
        product = Product(id=1, name="Pen")
        product.set_dynamic("Colour", "Blue")
        assert json.loads(self.codec.encode(product)) == {
            "id": 1,
            "name": "Pen",
            "unit_price": None,
            "category": None,
            "tags": [],
            "Colour": "Blue",
        }

    def test_skip_none_and_odata_name(self):
        codec = JsonCodec(skip_none=True)
        assert json.loads(codec.encode(Product(id=1, name="Pen"))) == {"id": 1, "name": "Pen", "tags": []}
        assert json.loads(codec.encode(Renamed("Hello"))) == {"Title": "Hello"}

    def test_compact_output(self):
        assert self.codec.encode({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            self.codec.encode(object())


class TestDecode:
    def setup_method(self):
        self.codec = JsonCodec()

    def test_plain_json_when_no_type(self):
        assert self.codec.decode('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_empty_input_is_none(self):
        assert self.codec.decode("") is None
        assert self.codec.decode(b"  ") is None
        assert self.codec.decode(None, Product) is None

    def test_invalid_json_raises(self):
        with pytest.raises(DeserializationError):
            self.codec.decode("{not json", Product)

    def test_dataclass_tolerant_names_and_open_bag(self):
        payload = {
            "@odata.etag": 'W/"1"',
            "ID": 7,
            "Name": "Pen",
            "UnitPrice": 1.25,
            "Category": {"Id": 3, "Name": "Office"},
            "Tags": ["a", "b"],
            "Colour": "Blue",
        }
        product = self.codec.bind(payload, Product)
        assert product.id == 7
        assert product.name == "Pen"
        assert product.unit_price == Decimal("1.25")
        assert product.category == Category(3, "Office")
        assert product.tags == ["a", "b"]
        assert product.get_dynamic("Colour") == "Blue"
        assert "@odata.etag" not in product.dynamic_properties

    def test_list_of_dataclasses_from_value_wrapper(self):
        items = self.codec.decode('{"value": [{"Id": 1, "Name": "A"}, {"Id": 2, "Name": "B"}]}', List[Category])
        assert items == [Category(1, "A"), Category(2, "B")]

    def test_primitive_types(self):
        assert self.codec.bind("5", int) == 5
        assert self.codec.bind("12345678-1234-1234-1234-123456789abc", uuid.UUID) == uuid.UUID(
            "12345678-1234-1234-1234-123456789abc"
        )
        assert self.codec.bind("2024-01-02T03:04:05Z", dt.datetime) == dt.datetime(
            2024, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc
        )
        assert self.codec.bind("2024-01-02", dt.date) == dt.date(2024, 1, 2)
        assert self.codec.bind("Red", Color) is Color.Red
        assert self.codec.bind(2, Color) is Color.Blue
        assert self.codec.bind({"a": 1}, Dict[str, int]) == {"a": 1}

    def test_from_dict_hook(self):
        money = self.codec.bind({"Amount": 4}, Money)
        assert money.amount == 4

    def test_shape_mismatch_raises(self):
        with pytest.raises(DeserializationError):
            self.codec.bind([1, 2], Category)
        with pytest.raises(DeserializationError):
            self.codec.bind(True, int)
        with pytest.raises(DeserializationError):
            self.codec.bind({"value": 1}, List[int])

    def test_missing_required_field_raises(self):
        with pytest.raises(DeserializationError):
            self.codec.bind({"Id": 1}, Category)


def test_default_codec_is_shared():
    assert default_codec() is default_codec()
