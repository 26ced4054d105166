"""Declaration status tracking: state machine, locks, tracker and sweep."""

from __future__ import annotations

from .locks import DeclarationLocks
from .scheduler import SweepScheduler
from .state_machine import ALLOWED_TRANSITIONS, allowed_targets, ensure_allowed, is_allowed
from .sweep import StatusSweep, SweepResult
from .tracker import PendingTransition, StatusTracker

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DeclarationLocks",
    "PendingTransition",
    "StatusSweep",
    "StatusTracker",
    "SweepResult",
    "SweepScheduler",
    "allowed_targets",
    "ensure_allowed",
    "is_allowed",
]
