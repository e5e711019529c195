"""Manual edits, reciprocal hub synchronisation and workspace persistence."""

from .anchor_sync import AnchorState, AnchorSyncEngine
from .manual_store import HubKey, ManualBlockRepository, ManualBlockStore, hub_key
from .workspace import (
    InMemoryKeyValueStore,
    JsonDirectoryStore,
    KeyValueStore,
    WorkspaceManager,
    WorkspaceSnapshot,
)

__all__ = [
    "AnchorState",
    "AnchorSyncEngine",
    "HubKey",
    "InMemoryKeyValueStore",
    "JsonDirectoryStore",
    "KeyValueStore",
    "ManualBlockRepository",
    "ManualBlockStore",
    "WorkspaceManager",
    "WorkspaceSnapshot",
    "hub_key",
]
