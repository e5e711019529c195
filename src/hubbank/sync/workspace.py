"""Workspace persistence: current settings, manual blocks and named snapshots."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from hubbank.schedule.simulation_config import SimulationParameters

from .manual_store import ManualBlockRepository

logger = logging.getLogger(__name__)

SETTINGS_KEY = "hubbank_settings"
MANUAL_BLOCKS_KEY = "hubbank_manual_blocks"
SNAPSHOTS_KEY = "hubbank_snapshots"

_SNAPSHOT_ID = re.compile(r"^snap-(\d+)$")


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, blob: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def save(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class JsonDirectoryStore:
    """One ``<key>.json`` file per key under ``root``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, key: str, blob: str) -> None:
        self._path(key).write_text(blob, encoding="utf-8")

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """A named copy of every hub's manual blocks plus the parameters in force."""

    id: str
    name: str
    timestamp: datetime
    manual_blocks: Dict[str, object]
    parameters: SimulationParameters

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp.isoformat(),
            "manualBlocks": self.manual_blocks,
            "parameters": self.parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "WorkspaceSnapshot":
        if not isinstance(data, Mapping):
            raise ValueError("Snapshot entry must be a mapping")
        missing = [key for key in ("id", "timestamp", "manualBlocks") if key not in data]
        if missing:
            raise ValueError(f"Snapshot entry is missing {', '.join(missing)}")
        try:
            timestamp = datetime.fromisoformat(str(data["timestamp"]))
        except ValueError as exc:
            raise ValueError(f"Invalid snapshot timestamp {data['timestamp']!r}") from exc
        manual_blocks = data["manualBlocks"]
        if not isinstance(manual_blocks, Mapping):
            raise ValueError("Snapshot 'manualBlocks' must be a mapping")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            timestamp=timestamp,
            manual_blocks=dict(manual_blocks),
            parameters=_parameters_from(data.get("parameters") or {}),
        )

    def repository(self) -> ManualBlockRepository:
        return ManualBlockRepository.from_dict(self.manual_blocks)


def _parameters_from(data: object) -> SimulationParameters:
    try:
        return SimulationParameters.from_mapping(data)
    except TypeError as exc:
        raise ValueError(f"Malformed simulation parameters: {exc}") from exc


def _decode(key: str, blob: Optional[str]) -> object:
    if blob is None:
        return None
    try:
        return json.loads(blob)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Stored value for {key!r} is not valid JSON") from exc


class WorkspaceManager:
    """
    Saves and restores the operator's workspace through a :class:`KeyValueStore`.

    The current state lives under two keys (settings and manual blocks);
    snapshots are kept as one list under a third key. Nothing here knows
    where the store keeps its data.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---------------------------------------------------------------- current
    def save_current(self, repository: ManualBlockRepository, parameters: SimulationParameters) -> None:
        self.store.save(SETTINGS_KEY, json.dumps(parameters.to_dict(), sort_keys=True))
        self.store.save(MANUAL_BLOCKS_KEY, json.dumps(repository.to_dict(), sort_keys=True))

    def load_current(self) -> Tuple[ManualBlockRepository, SimulationParameters]:
        """Return the saved workspace, or an empty one with default parameters."""
        settings = _decode(SETTINGS_KEY, self.store.load(SETTINGS_KEY))
        blocks = _decode(MANUAL_BLOCKS_KEY, self.store.load(MANUAL_BLOCKS_KEY))
        parameters = _parameters_from(settings) if settings is not None else SimulationParameters()
        repository = ManualBlockRepository.from_dict(blocks) if blocks is not None else ManualBlockRepository()
        return repository, parameters

    def reset(self) -> Tuple[ManualBlockRepository, SimulationParameters]:
        repository, parameters = ManualBlockRepository(), SimulationParameters()
        self.save_current(repository, parameters)
        logger.info("Workspace reset to defaults")
        return repository, parameters

    # -------------------------------------------------------------- snapshots
    def snapshots(self) -> List[WorkspaceSnapshot]:
        """All snapshots, newest first."""
        payload = _decode(SNAPSHOTS_KEY, self.store.load(SNAPSHOTS_KEY))
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ValueError("Stored snapshots must be a list")
        entries = [WorkspaceSnapshot.from_dict(item) for item in payload]
        return sorted(entries, key=lambda snap: snap.timestamp, reverse=True)

    def capture(
        self,
        name: str,
        repository: ManualBlockRepository,
        parameters: SimulationParameters,
    ) -> WorkspaceSnapshot:
        existing = self.snapshots()
        timestamp = self._clock()
        snapshot = WorkspaceSnapshot(
            id=self._next_snapshot_id(existing),
            name=name.strip() or timestamp.strftime("Scenario %Y-%m-%d %H:%M"),
            timestamp=timestamp,
            manual_blocks=repository.to_dict(),
            parameters=parameters,
        )
        self._write_snapshots([snapshot] + existing)
        logger.info("Captured snapshot %s (%s)", snapshot.id, snapshot.name)
        return snapshot

    def restore(self, snapshot_id: str) -> Tuple[ManualBlockRepository, SimulationParameters]:
        """Make a snapshot the current workspace and return it."""
        for snapshot in self.snapshots():
            if snapshot.id == snapshot_id:
                repository = snapshot.repository()
                self.save_current(repository, snapshot.parameters)
                logger.info("Restored snapshot %s (%s)", snapshot.id, snapshot.name)
                return repository, snapshot.parameters
        raise KeyError(f"Unknown snapshot {snapshot_id!r}")

    def delete(self, snapshot_id: str) -> bool:
        existing = self.snapshots()
        remaining = [snap for snap in existing if snap.id != snapshot_id]
        if len(remaining) == len(existing):
            return False
        self._write_snapshots(remaining)
        return True

    def _write_snapshots(self, snapshots: List[WorkspaceSnapshot]) -> None:
        self.store.save(SNAPSHOTS_KEY, json.dumps([snap.to_dict() for snap in snapshots], sort_keys=True))

    @staticmethod
    def _next_snapshot_id(existing: List[WorkspaceSnapshot]) -> str:
        highest = 0
        for snap in existing:
            match = _SNAPSHOT_ID.match(snap.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"snap-{highest + 1:04d}"


__all__ = [
    "InMemoryKeyValueStore",
    "JsonDirectoryStore",
    "KeyValueStore",
    "WorkspaceManager",
    "WorkspaceSnapshot",
]
