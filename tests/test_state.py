"""Tests for the local state store."""

import json
from pathlib import Path

import pytest

from nodepool.config import MAX_STATE_FILE_SIZE_BYTES
from nodepool.models import NodePoolConfig, NodePoolState
from nodepool.state import StateError, StateStore

CLUSTER_ID = (
    "/subscriptions/00000000-0000-0000-0000-000000000001/resourceGroups/rg-aks"
    "/providers/Microsoft.ContainerService/managedClusters/aks-prod"
)


def _state(name: str = "workers", **overrides: object) -> NodePoolState:
    document = {"name": name, "clusterId": CLUSTER_ID, "vmSize": "Standard_DS2_v2"}
    document.update(overrides)
    return NodePoolState(
        id=f"{CLUSTER_ID}/agentPools/{name}",
        config=NodePoolConfig.model_validate(document),
    )


class TestStateStore:
    """Tests for StateStore."""

    def test_save_and_load(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path / "state")
        state = _state(tags={"env": "prod"}, priority="Spot", maxBidPrice=-1)

        store.save(state)
        loaded = store.load(state.id)

        assert loaded == state

    def test_load_missing(self, tmp_path: Path) -> None:
        assert StateStore(tmp_path).load(_state().id) is None

    def test_lookup_ignores_id_casing(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        state = _state()
        store.save(state)

        assert store.load(state.id.upper()) == state

    def test_save_replaces(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        store.save(_state(nodeCount=1))
        store.save(_state(nodeCount=5))

        loaded = store.load(_state().id)

        assert loaded is not None
        assert loaded.config.node_count == 5
        assert len(list(tmp_path.glob("*.json"))) == 1

    def test_drop(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        state = _state()
        store.save(state)

        assert store.drop(state.id) is True
        assert store.drop(state.id) is False
        assert store.load(state.id) is None

    def test_list_ids(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        store.save(_state("workers"))
        store.save(_state("gpu"))

        assert store.list_ids() == sorted([_state("gpu").id, _state("workers").id])

    def test_list_ids_without_directory(self, tmp_path: Path) -> None:
        assert StateStore(tmp_path / "missing").list_ids() == []

    def test_corrupt_file(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        path = store.save(_state())
        path.write_text("{not json")

        with pytest.raises(StateError, match="Failed to read"):
            store.load(_state().id)

    def test_unknown_version(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        path = store.save(_state())
        document = json.loads(path.read_text())
        document["version"] = 99
        path.write_text(json.dumps(document))

        with pytest.raises(StateError, match="Unsupported state format"):
            store.load(_state().id)

    def test_oversized_file(self, tmp_path: Path) -> None:
        store = StateStore(tmp_path)
        path = store.save(_state())
        path.write_text(" " * (MAX_STATE_FILE_SIZE_BYTES + 1))

        with pytest.raises(StateError, match="exceeds maximum size"):
            store.load(_state().id)
