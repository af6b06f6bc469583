# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for batch response decoding."""

import json
import re
from dataclasses import dataclass

import pytest

from odata_client.batch.decoder import decode_batch_response, extract_boundary
from odata_client.batch.encoder import encode_batch
from odata_client.batch.models import BatchBuilder
from odata_client.core.errors import ConcurrencyError


@dataclass
class Product:
    id: int
    name: str


def _part(status_line, body="", content_id=None, headers=()):
    lines = ["Content-Type: application/http", "Content-Transfer-Encoding: binary"]
    if content_id is not None:
        lines.append(f"Content-ID: {content_id}")
    lines += ["", status_line]
    lines += list(headers)
    lines += ["", body]
    return "\r\n".join(lines) + "\r\n"


def _multipart(boundary, parts):
    return "".join(f"--{boundary}\r\n{p}" for p in parts) + f"--{boundary}--\r\n"


def test_extract_boundary():
    assert extract_boundary("multipart/mixed; boundary=batchresponse_1") == "batchresponse_1"
    assert extract_boundary('multipart/mixed; boundary="quoted"') == "quoted"
    assert extract_boundary("application/json") is None
    assert extract_boundary(None) is None


def test_results_correlate_by_content_id_and_bind():
    batch = BatchBuilder()
    batch.get("Products", 1, result_type=Product, operation_id="a")
    batch.get("Products", 2, result_type=Product, operation_id="b")
    body = _multipart(
        "resp",
        [
            _part("HTTP/1.1 200 OK", json.dumps({"Id": 2, "Name": "Second"}), "b", ["ETag: W/\"2\""]),
            _part("HTTP/1.1 200 OK", json.dumps({"Id": 1, "Name": "First"}), "a"),
        ],
    )
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    assert [r.operation_id for r in response] == ["b", "a"]
    assert response[0].result == Product(2, "Second")
    assert response[0].etag == 'W/"2"'
    assert response[1].result == Product(1, "First")
    assert response.all_succeeded


def test_results_correlate_by_position_without_content_id():
    batch = BatchBuilder()
    first = batch.get("Products", 1, result_type=Product)
    second = batch.delete("Products", 2)
    body = _multipart(
        "resp",
        [
            _part("HTTP/1.1 200 OK", json.dumps({"id": 1, "name": "P"})),
            _part("HTTP/1.1 204 No Content"),
        ],
    )
    response = decode_batch_response(body.encode("utf-8"), "multipart/mixed; boundary=resp", batch.all_operations())

    assert [r.operation_id for r in response] == [first, second]
    assert response[0].result.name == "P"
    assert response[1].status_code == 204
    assert response[1].response_body is None


def test_failed_operation_does_not_fail_batch():
    batch = BatchBuilder()
    batch.get("Products", 1, result_type=Product, operation_id="a")
    batch.get("Products", 99, result_type=Product, operation_id="b")
    error = json.dumps({"error": {"code": "NotFound", "message": "gone"}})
    body = _multipart(
        "resp",
        [
            _part("HTTP/1.1 200 OK", json.dumps({"id": 1, "name": "P"}), "a"),
            _part("HTTP/1.1 404 Not Found", error, "b"),
        ],
    )
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    assert response.has_errors
    failed = response.get_by_id("b")
    assert failed.status_code == 404
    assert failed.result is None
    assert failed.error_message == error


def test_nested_changeset_is_flattened():
    batch = BatchBuilder()
    batch.get("Products", 1, operation_id="g")
    with batch.changeset() as cs:
        cs.create("Products", {"Name": "A"}, operation_id="c1")
        cs.delete("Products", 2, operation_id="c2")
    changeset = (
        "Content-Type: multipart/mixed; boundary=changesetresponse_1\r\n\r\n"
        + _multipart(
            "changesetresponse_1",
            [
                _part("HTTP/1.1 201 Created", json.dumps({"Id": 5}), "c1"),
                _part("HTTP/1.1 204 No Content", "", "c2"),
            ],
        )
    )
    body = _multipart("resp", [_part("HTTP/1.1 200 OK", "{}", "g"), changeset])
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    assert [(r.operation_id, r.status_code) for r in response] == [("g", 200), ("c1", 201), ("c2", 204)]


def test_concurrency_conflict_carries_etags():
    batch = BatchBuilder()
    batch.update("Products", 1, {"Name": "X"}, etag='W/"1"', operation_id="u")
    body = _multipart("resp", [_part("HTTP/1.1 412 Precondition Failed", "stale", "u", ['ETag: W/"4"'])])
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    result = response[0]
    assert result.is_concurrency_conflict
    assert result.request_etag == 'W/"1"'
    with pytest.raises(ConcurrencyError) as ei:
        result.raise_for_status()
    assert ei.value.current_etag == 'W/"4"'


def test_unbindable_body_leaves_result_empty():
    batch = BatchBuilder()
    batch.get("Products", 1, result_type=Product, operation_id="a")
    body = _multipart("resp", [_part("HTTP/1.1 200 OK", "not json", "a")])
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    assert response[0].is_success
    assert response[0].result is None
    assert response[0].response_body == "not json"


def test_json_batch_fallback():
    batch = BatchBuilder()
    batch.get("Products", 1, result_type=Product, operation_id="1")
    batch.delete("Products", 2, operation_id="2")
    document = {
        "responses": [
            {"id": "1", "status": 200, "headers": {"ETag": 'W/"1"'}, "body": {"Id": 1, "Name": "P"}},
            {"id": "2", "status": 404, "body": {"error": {"message": "gone"}}},
        ]
    }
    response = decode_batch_response(json.dumps(document), "application/json", batch.all_operations())

    assert response[0].result == Product(1, "P")
    assert response[0].etag == 'W/"1"'
    assert response[1].status_code == 404
    assert "gone" in response[1].error_message


def test_invalid_json_batch_is_empty():
    response = decode_batch_response("<html>", "application/json", [])
    assert len(response) == 0


def test_invalid_utf8_in_one_part_does_not_fail_batch():
    batch = BatchBuilder()
    batch.get("Products", 1, result_type=Product, operation_id="a")
    batch.get("Products", 2, result_type=Product, operation_id="b")
    body = _multipart(
        "resp",
        [
            _part("HTTP/1.1 200 OK", json.dumps({"id": 1, "name": "P"}), "a"),
            _part("HTTP/1.1 200 OK", "@@BAD@@", "b"),
        ],
    ).encode("utf-8").replace(b"@@BAD@@", b"\xff\xfe")
    response = decode_batch_response(body, "multipart/mixed; boundary=resp", batch.all_operations())

    assert len(response) == 2
    assert response.get_by_id("a").result == Product(1, "P")
    assert response.get_by_id("b").is_success
    assert response.get_by_id("b").result is None
    assert "�" in response.get_by_id("b").response_body


def _mixed_batch():
    batch = BatchBuilder()
    ids = [batch.get("Products", 1, result_type=Product), batch.get("Products", 404, result_type=Product)]
    with batch.changeset() as cs:
        ids.append(cs.create("Products", Product(0, "New")))
        ids.append(cs.delete("Products", 2, etag='W/"3"'))
    return batch, ids


def _mixed_response(content_ids):
    first, missing, created, deleted = content_ids
    changeset = "Content-Type: multipart/mixed; boundary=changesetresponse_9\r\n\r\n" + _multipart(
        "changesetresponse_9",
        [
            _part("HTTP/1.1 201 Created", json.dumps({"id": 7, "name": "New"}), created),
            _part("HTTP/1.1 204 No Content", "", deleted),
        ],
    )
    return _multipart(
        "batchresponse_9",
        [
            _part("HTTP/1.1 200 OK", json.dumps({"id": 1, "name": "First"}), first),
            _part("HTTP/1.1 404 Not Found", json.dumps({"error": {"message": "missing"}}), missing),
            changeset,
        ],
    )


def _assert_mixed_results(response, ids):
    assert [r.operation_id for r in response] == ids
    assert [r.status_code for r in response] == [200, 404, 201, 204]
    assert response[0].result == Product(1, "First")
    assert response[1].result is None
    assert "missing" in response[1].error_message
    assert response[2].result == Product(7, "New")
    assert response[3].result is None
    assert [r.operation_id for r in response.failed_results] == [ids[1]]


def test_encoded_batch_round_trips_with_content_ids():
    batch, ids = _mixed_batch()
    encoded = encode_batch(batch).body.decode("utf-8")
    assert re.findall(r"Content-ID: (\S+)", encoded) == ids

    body = _mixed_response(ids)
    response = decode_batch_response(body, "multipart/mixed; boundary=batchresponse_9", batch.all_operations())

    _assert_mixed_results(response, ids)


def test_encoded_batch_round_trips_by_position():
    batch, ids = _mixed_batch()
    encode_batch(batch)

    body = _mixed_response([None] * 4)
    assert "Content-ID" not in body
    response = decode_batch_response(body, "multipart/mixed; boundary=batchresponse_9", batch.all_operations())

    _assert_mixed_results(response, ids)
