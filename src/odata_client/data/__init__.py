# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Low-level OData transport and protocol handling."""
