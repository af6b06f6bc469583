# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# HTTP subcode constants
HTTP_400 = "http_400"
HTTP_401 = "http_401"
HTTP_403 = "http_403"
HTTP_404 = "http_404"
HTTP_409 = "http_409"
HTTP_412 = "http_412"
HTTP_415 = "http_415"
HTTP_429 = "http_429"
HTTP_500 = "http_500"
HTTP_502 = "http_502"
HTTP_503 = "http_503"
HTTP_504 = "http_504"

ALL_HTTP_SUBCODES = {
    HTTP_400,
    HTTP_401,
    HTTP_403,
    HTTP_404,
    HTTP_409,
    HTTP_412,
    HTTP_415,
    HTTP_429,
    HTTP_500,
    HTTP_502,
    HTTP_503,
    HTTP_504,
}

TRANSIENT_STATUS = {429, 502, 503, 504}

# Validation subcodes
VALIDATION_KEY_REQUIRED = "validation_key_required"
VALIDATION_INVALID_PAGING = "validation_invalid_paging"
VALIDATION_INVALID_SELECTOR = "validation_invalid_selector"
VALIDATION_DUPLICATE_OPERATION_ID = "validation_duplicate_operation_id"
VALIDATION_CROSSJOIN_ENTITY_SETS = "validation_crossjoin_entity_sets"

# Query compilation subcodes
EXPRESSION_UNSUPPORTED_NODE = "expression_unsupported_node"
EXPRESSION_UNSUPPORTED_OPERATOR = "expression_unsupported_operator"
EXPRESSION_UNSUPPORTED_METHOD = "expression_unsupported_method"
EXPRESSION_UNBOUND_PARAMETER = "expression_unbound_parameter"

# Protocol subcodes
PROTOCOL_HTML_RESPONSE = "protocol_html_response"
PROTOCOL_MISSING_LOCATION = "protocol_missing_location"
PROTOCOL_INVALID_JSON = "protocol_invalid_json"


def http_subcode(status: int) -> str:
    """Return the ``http_<status>`` subcode for a status code."""
    return f"http_{status}"
