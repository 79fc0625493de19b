"""Shared types for offlinesync.

This module defines enums used by the sync engine and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncPhase(str, Enum):
    """Phase of a single sync cycle.

    A cycle always moves IDLE -> DRAINING -> REFRESHING -> IDLE.
    """

    IDLE = "idle"
    DRAINING = "draining"
    REFRESHING = "refreshing"


class ActionType(str, Enum):
    """Kind of deferred mutation held in the pending queue."""

    ADD = "ADD"
    DELETE = "DELETE"
