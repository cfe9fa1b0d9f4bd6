"""Configuration management with validation.

Timeout budgets are distinct per operation kind: mutating operations wait on
long-running ARM operations that routinely take tens of minutes, reads should
return within a few minutes.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OperationKind(str, Enum):
    """Lifecycle operations performed against a node pool."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_CREATE_TIMEOUT_SECONDS = 60 * 60
DEFAULT_READ_TIMEOUT_SECONDS = 5 * 60
DEFAULT_UPDATE_TIMEOUT_SECONDS = 60 * 60
DEFAULT_DELETE_TIMEOUT_SECONDS = 60 * 60
MAX_TIMEOUT_SECONDS = 24 * 60 * 60

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
MAX_POLL_INTERVAL_SECONDS = 300.0

# Security constraints - enforced limits to prevent abuse
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"


def _default_state_dir() -> Path:
    return Path.home() / ".nodepool" / "state"


@dataclass(frozen=True)
class Config:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    # Required fields
    subscription_id: str

    # Identity - None selects the system-assigned managed identity
    managed_identity_client_id: str | None = None

    # Local state location
    state_dir: Path = field(default_factory=_default_state_dir)

    # Timing
    create_timeout_seconds: float = DEFAULT_CREATE_TIMEOUT_SECONDS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    update_timeout_seconds: float = DEFAULT_UPDATE_TIMEOUT_SECONDS
    delete_timeout_seconds: float = DEFAULT_DELETE_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS

    # Emit one provenance record per lifecycle operation
    enable_audit_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        for kind in OperationKind:
            timeout = self.timeout_for(kind)
            if not (0 < timeout <= MAX_TIMEOUT_SECONDS):
                errors.append(
                    f"{kind.value} timeout must be greater than 0 and at most "
                    f"{MAX_TIMEOUT_SECONDS} seconds: {timeout}"
                )

        if not (0 < self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS):
            errors.append(
                f"POLL_INTERVAL must be greater than 0 and at most "
                f"{MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if self.state_dir.exists() and not self.state_dir.is_dir():
            errors.append(f"State path is not a directory: {self.state_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    def timeout_for(self, kind: OperationKind) -> float:
        """Return the timeout budget in seconds for an operation kind."""
        match kind:
            case OperationKind.CREATE:
                return self.create_timeout_seconds
            case OperationKind.READ:
                return self.read_timeout_seconds
            case OperationKind.UPDATE:
                return self.update_timeout_seconds
            case OperationKind.DELETE:
                return self.delete_timeout_seconds
        raise ValueError(f"Unsupported operation kind: {kind}")

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription holding the clusters
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity (optional)
            NODEPOOL_STATE_DIR: Directory for local state (default: ~/.nodepool/state)
            NODEPOOL_CREATE_TIMEOUT: Create budget in seconds (default: 3600)
            NODEPOOL_READ_TIMEOUT: Read budget in seconds (default: 300)
            NODEPOOL_UPDATE_TIMEOUT: Update budget in seconds (default: 3600)
            NODEPOOL_DELETE_TIMEOUT: Delete budget in seconds (default: 3600)
            NODEPOOL_POLL_INTERVAL: Seconds between operation polls (default: 10)
            ENABLE_AUDIT_LOGGING: Emit provenance records (default: true)
        """

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        state_dir = os.environ.get("NODEPOOL_STATE_DIR")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            managed_identity_client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            state_dir=Path(state_dir).expanduser() if state_dir else _default_state_dir(),
            create_timeout_seconds=get_float(
                "NODEPOOL_CREATE_TIMEOUT", DEFAULT_CREATE_TIMEOUT_SECONDS
            ),
            read_timeout_seconds=get_float("NODEPOOL_READ_TIMEOUT", DEFAULT_READ_TIMEOUT_SECONDS),
            update_timeout_seconds=get_float(
                "NODEPOOL_UPDATE_TIMEOUT", DEFAULT_UPDATE_TIMEOUT_SECONDS
            ),
            delete_timeout_seconds=get_float(
                "NODEPOOL_DELETE_TIMEOUT", DEFAULT_DELETE_TIMEOUT_SECONDS
            ),
            poll_interval_seconds=get_float(
                "NODEPOOL_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            enable_audit_logging=get_bool("ENABLE_AUDIT_LOGGING", True),
        )
