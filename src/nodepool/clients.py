"""Credentials and Azure client construction.

Authentication is secretless: the reconciler only ever runs as a managed
identity. Service principal secrets, certificates or passwords found in the
environment stop it before any Azure call is made.
"""

from __future__ import annotations

import logging
import os

from azure.core.credentials import TokenCredential
from azure.identity import ManagedIdentityCredential
from azure.mgmt.containerservice import ContainerServiceClient

from .config import Config

logger = logging.getLogger(__name__)

# Service principal and user credentials; any of these means a secret is in play
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)


class SecretlessViolationError(Exception):
    """Raised when credential material is found in the environment.

    Fatal: nothing may talk to Azure until the variable is removed.
    """

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to continue when credential environment variables are set.

    Raises:
        SecretlessViolationError: Naming the first offending variable.
    """
    offending = [name for name in FORBIDDEN_CREDENTIAL_ENV_VARS if os.environ.get(name)]
    if offending:
        env_var = offending[0]
        logger.critical(
            "Credential material found in environment",
            extra={"env_vars": offending, "action": "refused"},
        )
        raise SecretlessViolationError(
            f"{env_var} is set. Node pools are managed with a managed identity "
            "only; remove credential environment variables and assign a "
            "managed identity with access to the cluster instead."
        )


def get_managed_identity_credential(
    client_id: str | None = None,
) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment is secretless.

    Args:
        client_id: Client ID of a user-assigned managed identity. If None,
                   the system-assigned identity is used.

    Raises:
        SecretlessViolationError: If credential environment variables detected.
    """
    enforce_secretless_architecture()

    if not client_id:
        logger.info("Authenticating as the system-assigned identity")
        return ManagedIdentityCredential()

    # Only a prefix is logged; the full client ID identifies the principal
    logger.info(
        "Authenticating as a user-assigned identity",
        extra={"client_id_prefix": client_id[:8]},
    )
    return ManagedIdentityCredential(client_id=client_id)


def build_container_service_client(
    config: Config,
    credential: TokenCredential | None = None,
) -> ContainerServiceClient:
    """Build the client bundle handed to NodePoolReconciler.

    Args:
        config: Validated configuration.
        credential: Credential to use; defaults to the managed identity
            selected by config.
    """
    if credential is None:
        credential = get_managed_identity_credential(config.managed_identity_client_id)

    return ContainerServiceClient(
        credential=credential,
        subscription_id=config.subscription_id,
    )
