"""Azure Container Service mock for testing without Azure connectivity.

Key Features:
- In-memory managed clusters and agent pools
- Long-running operation pollers with controllable completion
- Failure injection at submit time or on operation completion
- Managed identity credential simulation

Usage:
    from azure_mock import MockContainerServiceClient

    client = MockContainerServiceClient()
    client.state.add_cluster()
    reconciler = NodePoolReconciler(client, config)
    await reconciler.create(cfg)
    assert client.state.pool_count == 1
"""

from .containerservice import (
    CLUSTER_NAME,
    RESOURCE_GROUP,
    SUBSCRIPTION_ID,
    MockContainerServiceClient,
    MockContainerServiceState,
    MockPoller,
    MockRequest,
    cluster_resource_id,
    pool_resource_id,
)
from .context import MockAzureContext
from .credential import MockManagedIdentityCredential

__all__ = [
    "CLUSTER_NAME",
    "RESOURCE_GROUP",
    "SUBSCRIPTION_ID",
    "MockAzureContext",
    "MockContainerServiceClient",
    "MockContainerServiceState",
    "MockManagedIdentityCredential",
    "MockPoller",
    "MockRequest",
    "cluster_resource_id",
    "pool_resource_id",
]
