# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for result types in odata_client.core.results."""

from dataclasses import dataclass

import pytest

from odata_client.core.errors import DeserializationError
from odata_client.core.results import (
    CrossJoinResponse,
    CrossJoinRow,
    DeletedEntity,
    DeltaResponse,
    EntityResult,
    ODataResponse,
    OperationResult,
)


class TestOperationResult:
    def test_default_values(self):
        assert OperationResult().client_request_id is None

    def test_is_frozen(self):
        result = OperationResult(client_request_id="test")
        with pytest.raises(AttributeError):
            result.client_request_id = "new-value"  # type: ignore


class TestODataResponse:
    def test_collection_behaviour(self):
        page = ODataResponse(client_request_id="r1", value=[{"Id": 1}, {"Id": 2}], count=10)
        assert len(page) == 2
        assert page[1] == {"Id": 2}
        assert [item["Id"] for item in page] == [1, 2]
        assert page.count == 10

    def test_has_more_follows_next_link(self):
        assert ODataResponse().has_more is False
        assert ODataResponse(next_link="https://x/Products?$skiptoken=2").has_more is True

    def test_defaults(self):
        page = ODataResponse()
        assert page.value == []
        assert page.count is None
        assert page.delta_link is None
        assert page.etag is None


class TestEntityResult:
    def test_fields(self):
        result = EntityResult(client_request_id="r", entity={"Id": 1}, etag='W/"3"', status_code=200)
        assert result.entity == {"Id": 1}
        assert result.etag == 'W/"3"'
        assert result.status_code == 200
        assert isinstance(result, OperationResult)


class TestDeltaResponse:
    def test_defaults(self):
        delta = DeltaResponse()
        assert len(delta) == 0
        assert delta.deleted == []
        assert delta.delta_link is None

    def test_iterates_changed_entities_only(self):
        delta = DeltaResponse(value=[{"Id": 1}], deleted=[DeletedEntity("Products(2)", "deleted")])
        assert list(delta) == [{"Id": 1}]
        assert delta.deleted[0].reason == "deleted"


class TestCrossJoinRow:
    def test_get_entity_binding_failure(self):
        row = CrossJoinRow({"Products": "not an object"})

        @dataclass
        class Product:
            id: int

        with pytest.raises(DeserializationError):
            row.get_entity("Products", Product)

    def test_response_collection_behaviour(self):
        response = CrossJoinResponse(value=[CrossJoinRow({"A": {}}), CrossJoinRow({"B": {}})], count=2)
        assert len(response) == 2
        assert [row.has_entity("A") for row in response] == [True, False]
