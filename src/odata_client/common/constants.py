# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Protocol constants for OData v4 requests and telemetry attribute names.
"""

# Headers
HEADER_ODATA_VERSION = "OData-Version"
HEADER_ODATA_MAX_VERSION = "OData-MaxVersion"
HEADER_PREFER = "Prefer"
HEADER_IF_MATCH = "If-Match"
HEADER_ETAG = "ETag"
HEADER_LOCATION = "Location"
HEADER_CONTENT_ID = "Content-ID"
HEADER_CLIENT_REQUEST_ID = "x-ms-client-request-id"

ODATA_VERSION = "4.0"

PREFER_RESPOND_ASYNC = "respond-async"

# Media types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_HTTP = "application/http"
CONTENT_TYPE_MULTIPART_MIXED = "multipart/mixed"

# JSON payload annotations
ANNOTATION_PREFIX = "@odata."
ANNOTATION_COUNT = "@odata.count"
ANNOTATION_NEXT_LINK = "@odata.nextLink"
ANNOTATION_DELTA_LINK = "@odata.deltaLink"
ANNOTATION_ETAG = "@odata.etag"
ANNOTATION_ID = "@odata.id"
ANNOTATION_REMOVED = "@removed"
ANNOTATION_ODATA_REMOVED = "@odata.removed"

# OpenTelemetry semantic-convention attribute names
OTEL_ATTR_HTTP_METHOD = "http.request.method"
OTEL_ATTR_HTTP_URL = "url.full"
OTEL_ATTR_HTTP_STATUS_CODE = "http.response.status_code"
OTEL_ATTR_ODATA_OPERATION = "odata.operation"
OTEL_ATTR_ODATA_ENTITY_SET = "odata.entity_set"
OTEL_ATTR_ODATA_REQUEST_ID = "odata.client_request_id"
