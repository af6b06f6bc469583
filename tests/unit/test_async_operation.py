# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for AsyncOperation polling, cancellation and AsyncOperationResult."""

import itertools
from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import pytest

from odata_client.async_operation import AsyncOperation, AsyncOperationResult, AsyncOperationStatus
from odata_client.core.cancellation import CancellationToken
from odata_client.core.errors import (
    AsyncOperationError,
    AsyncOperationTimeoutError,
    OperationCancelledError,
)

from tests.conftest import make_response

MONITOR = "https://services.example.com/odata/operations/42"


@dataclass
class Report:
    total: int


def _operation(*responses, **kwargs):
    send = MagicMock(side_effect=list(responses))
    kwargs.setdefault("poll_interval", 0.0)
    return AsyncOperation(send, MONITOR, **kwargs), send


class TestPoll:
    def test_initial_state(self):
        op, send = _operation()
        assert op.status is AsyncOperationStatus.PENDING
        assert op.monitor_url == MONITOR
        assert not op.is_completed
        assert not op.is_terminal
        send.assert_not_called()

    def test_default_poll_interval(self):
        op = AsyncOperation(MagicMock(), MONITOR)
        assert op.poll_interval == 5.0

    def test_accepted_keeps_running(self):
        op, send = _operation(make_response(202))
        assert op.poll() is True
        assert op.status is AsyncOperationStatus.RUNNING
        send.assert_called_once_with("GET", MONITOR, cancellation_token=None)

    def test_accepted_adopts_new_location(self):
        op, send = _operation(make_response(202, headers={"Location": "/odata/operations/43"}))
        op.poll()
        assert op.monitor_url == "https://services.example.com/odata/operations/43"

    def test_success_binds_result(self):
        op, _ = _operation(make_response(200, {"total": 7}), result_type=Report)
        assert op.poll() is False
        assert op.status is AsyncOperationStatus.COMPLETED
        assert op.is_completed and op.is_terminal
        assert op.result == Report(total=7)

    def test_success_with_empty_body(self):
        op, _ = _operation(make_response(204))
        op.poll()
        assert op.status is AsyncOperationStatus.COMPLETED
        assert op.result is None

    def test_unbindable_result_is_logged(self, caplog):
        op, _ = _operation(make_response(200, "not json"), result_type=Report)
        with caplog.at_level("WARNING", logger="odata_client.async_operation"):
            op.poll()
        assert op.status is AsyncOperationStatus.COMPLETED
        assert op.result is None
        assert "Failed to deserialize" in caplog.text

    def test_error_status_fails(self):
        op, _ = _operation(make_response(500, "job exploded"))
        assert op.poll() is False
        assert op.status is AsyncOperationStatus.FAILED
        assert op.is_completed
        assert op.error_message == "job exploded"

    def test_terminal_poll_sends_nothing(self):
        op, send = _operation(make_response(200, {"total": 1}))
        op.poll()
        assert op.poll() is False
        assert send.call_count == 1

    def test_custom_result_decoder(self):
        op, _ = _operation(make_response(200, "raw"), result_decoder=lambda r: r.text.upper())
        op.poll()
        assert op.result == "RAW"


class TestWaitForCompletion:
    @patch("odata_client.core.cancellation.time.sleep")
    def test_accepted_then_done_polls_twice(self, mock_sleep):
        op, send = _operation(make_response(202), make_response(200, {"total": 3}), result_type=Report, poll_interval=2.0)
        assert op.wait_for_completion() == Report(total=3)
        assert send.call_count == 2
        assert all(c.args[0] == "GET" for c in send.call_args_list)
        mock_sleep.assert_called_once_with(2.0)

    @patch("odata_client.core.cancellation.time.sleep")
    def test_failure_raises(self, mock_sleep):
        op, _ = _operation(make_response(202), make_response(400, "bad input"))
        with pytest.raises(AsyncOperationError) as ei:
            op.wait_for_completion()
        assert ei.value.monitor_url == MONITOR
        assert ei.value.error_details == "bad input"

    @patch("odata_client.core.cancellation.time.sleep")
    @patch("odata_client.async_operation.time.monotonic", side_effect=itertools.count(0.0, 1.0))
    def test_timeout_raises(self, mock_monotonic, mock_sleep):
        op, send = _operation(*[make_response(202)] * 5, poll_interval=10.0)
        with pytest.raises(AsyncOperationTimeoutError) as ei:
            op.wait_for_completion(timeout=2.5)
        assert ei.value.timeout == 2.5
        assert op.status is AsyncOperationStatus.RUNNING
        assert send.call_count == 1
        # sleep is capped to the remaining time
        mock_sleep.assert_called_once_with(0.5)

    def test_cancelled_token_stops_before_polling(self):
        op, send = _operation(make_response(202))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            op.wait_for_completion(cancellation_token=token)
        send.assert_not_called()

    def test_cancelled_operation_raises(self):
        op, _ = _operation(make_response(204))
        assert op.try_cancel() is True
        with pytest.raises(OperationCancelledError):
            op.wait_for_completion()

    def test_already_completed_returns_result(self):
        op, send = _operation(make_response(200, {"total": 9}), result_type=Report)
        op.poll()
        assert op.wait_for_completion().total == 9
        assert send.call_count == 1


class TestTryCancel:
    def test_accepted(self):
        op, send = _operation(make_response(202), make_response(204))
        op.poll()
        assert op.try_cancel() is True
        assert op.status is AsyncOperationStatus.CANCELLED
        assert send.call_args.args == ("DELETE", MONITOR)

    def test_rejected(self):
        op, _ = _operation(make_response(409))
        assert op.try_cancel() is False
        assert op.status is AsyncOperationStatus.PENDING

    def test_terminal_sends_nothing(self):
        op, send = _operation(make_response(200, {}))
        op.poll()
        assert op.try_cancel() is False
        assert send.call_count == 1


class TestAsyncOperationResult:
    def test_synchronous_result(self):
        outcome = AsyncOperationResult(is_async=False, synchronous_result={"ok": True})
        assert outcome.get_result() == {"ok": True}
        assert repr(outcome) == "AsyncOperationResult(is_async=False)"

    @patch("odata_client.core.cancellation.time.sleep")
    def test_async_result_waits(self, mock_sleep):
        op, _ = _operation(make_response(202), make_response(200, {"total": 1}), result_type=Report)
        outcome = AsyncOperationResult(is_async=True, operation=op)
        assert repr(outcome) == "AsyncOperationResult(is_async=True, status=Pending)"
        assert outcome.get_result(timeout=60) == Report(total=1)
