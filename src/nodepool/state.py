"""Local state for managed node pools.

One JSON document per pool, keyed by a hash of the lowercased pool ID so that
IDs differing only in ARM's inconsistent casing map to the same file. The
stored configuration is the one declared at the last successful apply; it is
the baseline the next update computes its delta against.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import NodePoolConfig, NodePoolState

logger = logging.getLogger(__name__)

STATE_FILE_SUFFIX = ".json"
STATE_FORMAT_VERSION = 1


class StateError(Exception):
    """Raised when a state file cannot be read or written."""

    pass


def _state_key(pool_id: str) -> str:
    return hashlib.sha256(pool_id.lower().encode("utf-8")).hexdigest()[:32]


class StateStore:
    """File-backed store of NodePoolState records."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def _path_for(self, pool_id: str) -> Path:
        return self._state_dir / f"{_state_key(pool_id)}{STATE_FILE_SUFFIX}"

    def save(self, state: NodePoolState) -> Path:
        """Write state, replacing any previous record for the same pool."""
        document: dict[str, Any] = {
            "version": STATE_FORMAT_VERSION,
            "id": state.id,
            "saved_at": datetime.now(UTC).isoformat(),
            "config": state.config.to_document(),
        }

        path = self._path_for(state.id)
        tmp_path = path.with_suffix(".tmp")
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StateError(f"Failed to write state for {state.id}: {e}") from e

        logger.debug("Saved node pool state", extra={"pool_id": state.id, "path": str(path)})
        return path

    def load(self, pool_id: str) -> NodePoolState | None:
        """Return the stored state for pool_id, or None if there is none."""
        path = self._path_for(pool_id)
        if not path.exists():
            return None
        return self._read(path)

    def drop(self, pool_id: str) -> bool:
        """Remove the stored state for pool_id. Returns whether anything was removed."""
        path = self._path_for(pool_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StateError(f"Failed to remove state for {pool_id}: {e}") from e

        logger.info("Dropped node pool state", extra={"pool_id": pool_id})
        return True

    def list_ids(self) -> list[str]:
        """IDs of all pools with stored state, sorted."""
        if not self._state_dir.is_dir():
            return []
        return sorted(
            self._read(path).id for path in self._state_dir.glob(f"*{STATE_FILE_SUFFIX}")
        )

    def _read(self, path: Path) -> NodePoolState:
        try:
            if path.stat().st_size > MAX_STATE_FILE_SIZE_BYTES:
                raise StateError(
                    f"State file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
                )
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StateError(f"Failed to read state file {path}: {e}") from e

        if not isinstance(document, dict) or "id" not in document or "config" not in document:
            raise StateError(f"Malformed state file: {path}")

        version = document.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateError(f"Unsupported state format version {version!r}: {path}")

        try:
            config = NodePoolConfig.model_validate(document["config"])
        except SchemaValidationError as e:
            raise StateError(f"Invalid configuration in state file {path}: {e}") from e

        return NodePoolState(id=document["id"], config=config)
