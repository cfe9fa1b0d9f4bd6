"""Audit records for node pool lifecycle operations.

Every create, read, update, delete and import is stamped with one provenance
record answering:
- "Which pool was touched, and by which operation?"
- "Which fields did the operation change?"
- "Did it succeed, and if not, why?"
- "What version of the reconciler was running?"

Records are emitted as structured log entries so they can be queried once the
JSON log stream lands in Log Analytics.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from . import __version__

logger = logging.getLogger(__name__)

# Build pipelines may stamp a more precise version (e.g. a commit SHA)
OPERATOR_VERSION = os.environ.get("NODEPOOL_OPERATOR_VERSION", __version__)


class Outcome:
    """Outcome values recorded in provenance."""

    SUCCEEDED = "succeeded"
    NO_CHANGES = "no_changes"
    GONE = "gone"
    FAILED = "failed"


@dataclass
class OperationProvenance:
    """Provenance record for a single lifecycle operation."""

    operation: str
    pool_id: str

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    operator_version: str = OPERATOR_VERSION
    operator_instance_id: str = ""

    changed_fields: list[str] = field(default_factory=list)
    outcome: str = Outcome.SUCCEEDED

    duration_seconds: float = 0.0

    # Error tracking
    error: str | None = None
    error_type: str | None = None
    retryable: bool | None = None

    def record_error(self, error: BaseException) -> None:
        """Mark the record failed with the given error."""
        self.outcome = Outcome.FAILED
        self.error = str(error)
        self.error_type = type(error).__name__
        self.retryable = getattr(error, "retryable", None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result


class ProvenanceLogger:
    """Writes provenance records to the structured log."""

    def __init__(self) -> None:
        self._instance_id = os.environ.get("CONTAINER_INSTANCE_ID", "")

    def create_provenance(self, operation: str, pool_id: str) -> OperationProvenance:
        """Create a new provenance record for an operation about to start."""
        return OperationProvenance(
            operation=operation,
            pool_id=pool_id,
            operator_instance_id=self._instance_id,
        )

    def log_provenance(self, provenance: OperationProvenance) -> None:
        """Log a completed provenance record.

        Failed operations are logged at ERROR, everything else at INFO.
        """
        log_level = logging.ERROR if provenance.error else logging.INFO

        logger.log(
            log_level,
            "Node pool operation provenance",
            extra={
                "provenance": provenance.to_dict(),
                # Flatten key fields for easier querying
                "operation": provenance.operation,
                "pool_id": provenance.pool_id,
                "outcome": provenance.outcome,
                "changed_fields": provenance.changed_fields,
                "operator_version": provenance.operator_version,
                "duration_seconds": provenance.duration_seconds,
            },
        )


# Global singleton for provenance logging
_provenance_logger: ProvenanceLogger | None = None


def get_provenance_logger() -> ProvenanceLogger:
    """Get the global provenance logger instance."""
    global _provenance_logger
    if _provenance_logger is None:
        _provenance_logger = ProvenanceLogger()
    return _provenance_logger
