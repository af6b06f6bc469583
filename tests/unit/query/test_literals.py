# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for OData literal formatting."""

import datetime as dt
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

import pytest

from odata_client.core.errors import ValidationError
from odata_client.query.literals import (
    format_function_parameters,
    format_key,
    format_literal,
    to_lower_camel,
)


class Status(Enum):
    Active = 1
    Archived = 2


class TestFormatLiteral:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "null"),
            (True, "true"),
            (False, "false"),
            ("abc", "'abc'"),
            ("O'Brien", "'O''Brien'"),
            (42, "42"),
            (-7, "-7"),
            (1.5, "1.5"),
            (100.0, "100"),
            (Decimal("19.990"), "19.990"),
            (Status.Active, "'Active'"),
            (dt.date(2024, 1, 15), "2024-01-15"),
            (uuid.UUID("0f8fad5b-d9cb-469f-a165-70867728950e"), "0f8fad5b-d9cb-469f-a165-70867728950e"),
        ],
    )
    def test_values(self, value, expected):
        assert format_literal(value) == expected

    def test_naive_datetime_is_utc(self):
        assert format_literal(dt.datetime(2024, 1, 15, 10, 30, 0, 123456)) == "2024-01-15T10:30:00Z"

    def test_aware_datetime_converted_to_utc(self):
        tz = dt.timezone(dt.timedelta(hours=-5))
        assert format_literal(dt.datetime(2024, 1, 15, 5, 30, tzinfo=tz)) == "2024-01-15T10:30:00Z"

    def test_special_floats(self):
        assert format_literal(float("nan")) == "NaN"
        assert format_literal(float("inf")) == "INF"
        assert format_literal(float("-inf")) == "-INF"

    def test_other_types_quoted(self):
        class Code:
            def __str__(self):
                return "A'1"

        assert format_literal(Code()) == "'A''1'"


class TestFormatKey:
    def test_scalar_keys(self):
        assert format_key(42) == "42"
        assert format_key("ALFKI") == "'ALFKI'"
        assert format_key(uuid.UUID("0f8fad5b-d9cb-469f-a165-70867728950e")) == "0f8fad5b-d9cb-469f-a165-70867728950e"

    def test_composite_key(self):
        assert format_key({"OrderId": 1, "Sku": "A-1"}) == "OrderId=1,Sku='A-1'"

    def test_none_key_rejected(self):
        with pytest.raises(ValidationError):
            format_key(None)

    def test_empty_composite_key_rejected(self):
        with pytest.raises(ValidationError):
            format_key({})


@dataclass
class SearchArgs:
    max_results: int
    category: Optional[str] = None
    statuses: tuple = ()


class TestFunctionParameters:
    def test_names_lower_camel_and_none_skipped(self):
        assert format_function_parameters({"MaxResults": 3, "Category": None, "Name": "Pen"}) == "maxResults=3,name='Pen'"

    def test_array_parameters_render_unquoted_strings(self):
        params = [("Ids", [1, 2, 3]), ("Tags", ["red", "blue"]), ("States", [Status.Active, Status.Archived])]
        assert format_function_parameters(params) == "ids=[1,2,3],tags=[red,blue],states=[Active,Archived]"

    def test_dataclass_parameters(self):
        assert format_function_parameters(SearchArgs(max_results=5, statuses=("a",))) == "maxResults=5,statuses=[a]"

    def test_no_parameters(self):
        assert format_function_parameters(None) == ""
        assert format_function_parameters({}) == ""

    def test_to_lower_camel(self):
        assert to_lower_camel("MaxResults") == "maxResults"
        assert to_lower_camel("max_results") == "maxResults"
        assert to_lower_camel("x") == "x"
