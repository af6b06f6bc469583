# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Azure Identity-based bearer token acquisition."""

from __future__ import annotations

from dataclasses import dataclass

from azure.core.credentials import TokenCredential


@dataclass
class _TokenPair:
    resource: str
    access_token: str


class _AuthManager:
    """
    Bearer-token helper over an :class:`~azure.core.credentials.TokenCredential`.

    :param credential: Credential used to acquire tokens.
    :type credential: ~azure.core.credentials.TokenCredential
    :raises TypeError: If ``credential`` does not implement ``TokenCredential``.
    """

    def __init__(self, credential: TokenCredential) -> None:
        if not isinstance(credential, TokenCredential):
            raise TypeError("credential must implement azure.core.credentials.TokenCredential.")
        self.credential: TokenCredential = credential

    def _acquire_token(self, scope: str) -> _TokenPair:
        token = self.credential.get_token(scope)
        return _TokenPair(resource=scope, access_token=token.token)
