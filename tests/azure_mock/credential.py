"""Mock managed identity credential.

Hands out fake tokens so client construction can be exercised without an
identity endpoint.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

TOKEN_VALIDITY = timedelta(hours=1)


class MockManagedIdentityCredential:
    """Stand-in for azure.identity.ManagedIdentityCredential.

    Records every scope requested so tests can assert on token usage.
    """

    def __init__(self, client_id: str | None = None) -> None:
        self.client_id = client_id
        self.requested_scopes: list[tuple[str, ...]] = []
        self.fail_with: str | None = None

    def get_token(self, *scopes: str, **_kwargs: Any) -> AccessToken:
        self.requested_scopes.append(scopes)
        if self.fail_with:
            raise ClientAuthenticationError(message=self.fail_with)

        identity = self.client_id or "system-assigned"
        expires_on = datetime.now(UTC) + TOKEN_VALIDITY
        return AccessToken(
            f"mock-token-{len(self.requested_scopes)}-{identity}", int(expires_on.timestamp())
        )

    def close(self) -> None:
        pass

    def __enter__(self) -> MockManagedIdentityCredential:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
