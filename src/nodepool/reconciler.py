"""Lifecycle orchestration for node pools.

Each operation is a straight-line sequence of phases:

    create: Validate -> FetchParent -> CheckParentIsCompatible ->
            CheckNotAlreadyExists -> Translate -> Submit -> AwaitCompletion ->
            Reread -> Reflect
    update: ResolveIdentity -> Validate -> FetchPriorRemoteState ->
            ApplyDeclaredDeltas -> ReconcileAutoscaleConsistency -> Submit ->
            AwaitCompletion -> Reread -> Reflect
    read:   ResolveIdentity -> FetchParent -> FetchEntity -> Reflect
    delete: ResolveIdentity -> SubmitDelete -> AwaitCompletion

The Azure SDK is synchronous; every call runs in the default executor and is
bounded by the read budget. Long-running operations are awaited by polling
the poller without blocking a thread, bounded by the budget of the operation
kind. Nothing is retried here and nothing is compensated on timeout: the
remote operation may still finish server-side, and callers decide whether to
run the operation again using the error's `retryable` flag.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.mgmt.containerservice.models import AgentPool, ManagedCluster

from .config import Config, OperationKind
from .delta import build_update_payload
from .errors import (
    AlreadyExistsError,
    IncompatibleParentError,
    MissingIdentifierError,
    NotFoundError,
    OperationTimeoutError,
    RemoteTransportError,
    ValidationError,
)
from .identifiers import ClusterId, NodePoolId
from .models import NodePoolConfig, NodePoolState
from .provenance import OperationProvenance, Outcome, ProvenanceLogger, get_provenance_logger
from .reflector import reflect
from .translator import NODE_POOL_TYPE, build_create_payload
from .validator import validate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_not_found(error: HttpResponseError) -> bool:
    return isinstance(error, ResourceNotFoundError) or error.status_code == 404


def _not_found_as_none(fn: Callable[[], T]) -> Callable[[], T | None]:
    def call() -> T | None:
        try:
            return fn()
        except HttpResponseError as e:
            if _is_not_found(e):
                return None
            raise

    return call


def _has_scale_set_profile(cluster: ManagedCluster) -> bool:
    wanted = NODE_POOL_TYPE.value.lower()
    for profile in cluster.agent_pool_profiles or []:
        profile_type = getattr(profile.type, "value", profile.type)
        if profile_type and str(profile_type).lower() == wanted:
            return True
    return False


class NodePoolReconciler:
    """Drives create, read, update and delete of node pools against ARM.

    Holds no mutable state between operations; one instance can serve any
    number of concurrent operations on distinct pools.
    """

    def __init__(
        self,
        client: Any,
        config: Config,
        provenance_logger: ProvenanceLogger | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: A ContainerServiceClient, or anything exposing the same
                `managed_clusters` and `agent_pools` operations.
            config: Validated configuration.
            provenance_logger: Audit sink; defaults to the global logger.
        """
        self._client = client
        self._config = config
        self._provenance = provenance_logger or get_provenance_logger()

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def create(self, cfg: NodePoolConfig) -> NodePoolState:
        """Create the node pool declared by cfg.

        Raises:
            ValidationError: cfg violates a cross-field invariant.
            NotFoundError: The parent cluster does not exist.
            IncompatibleParentError: The parent cluster has no scale-set pool.
            AlreadyExistsError: A pool with the same identity exists.
            MissingIdentifierError: The created pool came back without an ID.
            RemoteTransportError: Any other failure talking to ARM.
        """
        cluster_id = ClusterId.parse(cfg.cluster_id)
        identity = NodePoolId.for_cluster(cluster_id, cfg.name)

        with self._track(OperationKind.CREATE, identity) as record:
            validate(cfg)

            cluster = await self._get_cluster(cluster_id)
            if cluster is None:
                raise NotFoundError(f"{cluster_id.describe()} was not found")

            if not _has_scale_set_profile(cluster):
                raise IncompatibleParentError(
                    f"The Default Node Pool for {cluster_id.describe()} must be a "
                    f"{NODE_POOL_TYPE.value} to attach multiple node pools"
                )

            existing = await self._get_pool(identity)
            if existing is not None and existing.id:
                raise AlreadyExistsError(existing.id)

            payload = build_create_payload(cfg)

            logger.info(
                "Creating node pool",
                extra={"pool_id": identity.id, "vm_size": cfg.vm_size, "count": payload.count},
            )
            poller = await self._call(
                lambda: self._client.agent_pools.begin_create_or_update(
                    identity.resource_group, identity.cluster_name, identity.name, payload
                ),
                "creating",
                identity.describe(),
            )
            await self._await_completion(poller, OperationKind.CREATE, identity)

            created = await self._get_pool(identity)
            if created is None or not created.id:
                raise MissingIdentifierError(f"Cannot read ID for {identity.describe()}")

            record.changed_fields = sorted(cfg.model_fields_set)
            return NodePoolState(
                id=identity.id,
                config=reflect(created, name=cfg.name, cluster_id=cfg.cluster_id),
            )

    async def read(self, pool_id: str) -> NodePoolState | None:
        """Read the current state of a node pool.

        Returns:
            The reflected state, or None when the pool or its parent cluster
            no longer exists and local state should be dropped.

        Raises:
            InvalidResourceIdError: pool_id is not a node pool ID.
            RemoteTransportError: Any failure other than "not found".
        """
        identity = NodePoolId.parse(pool_id)

        with self._track(OperationKind.READ, identity) as record:
            cluster = await self._get_cluster(identity.cluster)
            if cluster is None:
                logger.warning(
                    "Parent cluster was not found - removing node pool from state",
                    extra={"pool_id": identity.id, "cluster": identity.cluster_name},
                )
                record.outcome = Outcome.GONE
                return None

            pool = await self._get_pool(identity)
            if pool is None:
                logger.warning(
                    "Node pool was not found - removing from state",
                    extra={"pool_id": identity.id},
                )
                record.outcome = Outcome.GONE
                return None

            return NodePoolState(
                id=identity.id,
                config=reflect(pool, name=identity.name, cluster_id=identity.cluster.id),
            )

    async def update(
        self,
        pool_id: str,
        desired: NodePoolConfig,
        previous: NodePoolConfig | None = None,
    ) -> NodePoolState:
        """Apply desired to an existing node pool, sending only what changed.

        Args:
            pool_id: ID of the pool to update.
            desired: Configuration to converge to.
            previous: Configuration declared at the last successful apply. When
                omitted, the current remote state is used as the baseline.

        Raises:
            ValidationError: desired is invalid, targets a different pool, or
                changes an immutable field.
            NotFoundError: The pool does not exist.
            MissingIdentifierError: The updated pool came back without an ID.
            RemoteTransportError: Any other failure talking to ARM.
        """
        identity = NodePoolId.parse(pool_id)

        with self._track(OperationKind.UPDATE, identity) as record:
            validate(desired)
            self._check_identity(identity, desired)

            existing = await self._get_pool(identity)
            if existing is None:
                raise NotFoundError(f"{identity.describe()} was not found")

            if previous is None:
                previous = reflect(existing, name=identity.name, cluster_id=desired.cluster_id)

            delta = build_update_payload(existing, previous, desired)
            record.changed_fields = list(delta.changed_fields)

            if not delta.has_changes:
                logger.info("Node pool is up to date", extra={"pool_id": identity.id})
                record.outcome = Outcome.NO_CHANGES
                return NodePoolState(
                    id=identity.id,
                    config=reflect(existing, name=identity.name, cluster_id=desired.cluster_id),
                )

            logger.info(
                "Updating node pool",
                extra={"pool_id": identity.id, "changed_fields": delta.changed_fields},
            )
            poller = await self._call(
                lambda: self._client.agent_pools.begin_create_or_update(
                    identity.resource_group, identity.cluster_name, identity.name, delta.payload
                ),
                "updating",
                identity.describe(),
            )
            await self._await_completion(poller, OperationKind.UPDATE, identity)

            updated = await self._get_pool(identity)
            if updated is None or not updated.id:
                raise MissingIdentifierError(f"Cannot read ID for {identity.describe()}")

            return NodePoolState(
                id=identity.id,
                config=reflect(updated, name=identity.name, cluster_id=desired.cluster_id),
            )

    async def delete(self, pool_id: str) -> None:
        """Delete a node pool and wait for the deletion to finish.

        Raises:
            InvalidResourceIdError: pool_id is not a node pool ID.
            NotFoundError: The pool does not exist.
            RemoteTransportError: Any other failure talking to ARM.
        """
        identity = NodePoolId.parse(pool_id)

        with self._track(OperationKind.DELETE, identity):
            logger.info("Deleting node pool", extra={"pool_id": identity.id})
            poller = await self._call(
                _not_found_as_none(
                    lambda: self._client.agent_pools.begin_delete(
                        identity.resource_group, identity.cluster_name, identity.name
                    )
                ),
                "deleting",
                identity.describe(),
            )
            if poller is None:
                raise NotFoundError(f"{identity.describe()} was not found")

            await self._await_completion(poller, OperationKind.DELETE, identity)

    async def import_pool(self, raw_id: str) -> NodePoolState:
        """Bring an existing, unmanaged node pool under management.

        Raises:
            InvalidResourceIdError: raw_id is not a node pool ID.
            NotFoundError: The pool or its parent cluster does not exist.
        """
        identity = NodePoolId.parse(raw_id)
        state = await self.read(identity.id)
        if state is None:
            raise NotFoundError(f"{identity.describe()} was not found - nothing to import")
        return state

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_identity(identity: NodePoolId, desired: NodePoolConfig) -> None:
        violations: list[str] = []
        if desired.name != identity.name:
            violations.append(
                f"`name` {desired.name!r} does not match the node pool being updated "
                f"({identity.name!r})"
            )
        if ClusterId.parse(desired.cluster_id).id.lower() != identity.cluster.id.lower():
            violations.append(
                f"`cluster_id` {desired.cluster_id!r} does not match the node pool being "
                f"updated ({identity.cluster.id!r})"
            )
        if violations:
            raise ValidationError(violations, subject=f"update of {identity.describe()}")

    async def _get_cluster(self, cluster_id: ClusterId) -> ManagedCluster | None:
        return await self._call(
            _not_found_as_none(
                lambda: self._client.managed_clusters.get(
                    cluster_id.resource_group, cluster_id.name
                )
            ),
            "retrieving",
            cluster_id.describe(),
        )

    async def _get_pool(self, identity: NodePoolId) -> AgentPool | None:
        return await self._call(
            _not_found_as_none(
                lambda: self._client.agent_pools.get(
                    identity.resource_group, identity.cluster_name, identity.name
                )
            ),
            "retrieving",
            identity.describe(),
        )

    async def _call(self, fn: Callable[[], T], action: str, target: str) -> T:
        """Run a blocking SDK call in the default executor under the read budget.

        Raises:
            OperationTimeoutError: If the call exceeds the read budget.
            RemoteTransportError: If the SDK raises.
        """
        loop = asyncio.get_running_loop()
        timeout_seconds = self._config.timeout_for(OperationKind.READ)

        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, fn),
                timeout=timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                f"{action} {target} timed out",
                extra={"timeout_seconds": timeout_seconds},
            )
            raise OperationTimeoutError(action, target, timeout_seconds) from None
        except HttpResponseError as e:
            raise RemoteTransportError(action, target, e, status_code=e.status_code) from e
        except AzureError as e:
            raise RemoteTransportError(action, target, e) from e

    async def _await_completion(
        self, poller: Any, kind: OperationKind, identity: NodePoolId
    ) -> Any:
        """Wait for a long-running operation without holding a thread.

        Cancelling the awaiting task stops the wait immediately; the remote
        operation is left running.

        Raises:
            OperationTimeoutError: If the budget for kind elapses first.
            RemoteTransportError: If the operation finished in a failed state.
        """
        timeout_seconds = self._config.timeout_for(kind)
        action = f"waiting for {kind.value} of"

        async def _poll() -> Any:
            while not poller.done():
                await asyncio.sleep(self._config.poll_interval_seconds)
            return poller.result()

        try:
            return await asyncio.wait_for(_poll(), timeout=timeout_seconds)
        except TimeoutError:
            logger.error(
                f"{kind.value} of node pool timed out",
                extra={"pool_id": identity.id, "timeout_seconds": timeout_seconds},
            )
            raise OperationTimeoutError(action, identity.describe(), timeout_seconds) from None
        except HttpResponseError as e:
            raise RemoteTransportError(
                action, identity.describe(), e, status_code=e.status_code
            ) from e
        except AzureError as e:
            raise RemoteTransportError(action, identity.describe(), e) from e

    @contextmanager
    def _track(
        self, kind: OperationKind, identity: NodePoolId
    ) -> Iterator[OperationProvenance]:
        record = self._provenance.create_provenance(kind.value, identity.id)
        start = time.monotonic()
        try:
            yield record
        except (Exception, asyncio.CancelledError) as e:
            record.record_error(e)
            raise
        finally:
            record.duration_seconds = time.monotonic() - start
            if self._config.enable_audit_logging:
                self._provenance.log_provenance(record)
