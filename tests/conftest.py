# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and configuration for OData client tests.

This module provides common test fixtures, fake responses and configuration
that can be used across all test modules.
"""

import json

import pytest
import requests
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from odata_client.core.config import ODataConfig


def make_response(status_code=200, body=None, headers=None, reason=""):
    """Build a real ``requests.Response`` with the given status, body and headers."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    if body is None:
        content = b""
    elif isinstance(body, bytes):
        content = body
    elif isinstance(body, str):
        content = body.encode("utf-8")
    else:
        content = json.dumps(body).encode("utf-8")
    response._content = content
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


@pytest.fixture
def mock_credential():
    """TokenCredential that always returns the same token."""
    credential = MagicMock(spec=TokenCredential)
    credential.get_token.return_value = MagicMock(token="test_token_12345")
    return credential


@pytest.fixture
def test_config():
    """Test configuration with safe defaults (single attempt, no polling delay)."""
    return ODataConfig(http_retries=1, http_backoff=0.0, http_timeout=5, poll_interval=0.0)


@pytest.fixture
def sample_base_url():
    """Standard test service root."""
    return "https://services.example.com/odata"
