"""Core module - Shared configuration and enums."""

from offlinesync.core.config import RemoteConfig
from offlinesync.core.types import ActionType, SyncPhase

__all__ = [
    # Config
    "RemoteConfig",
    # Types
    "ActionType",
    "SyncPhase",
]
