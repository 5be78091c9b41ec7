"""Orchestrator - settings, batch guard and command routing."""

from .config import Settings
from .state_machine import BatchKind, BatchState, BatchStateMachine, BatchStatus

__all__ = [
    "BatchKind",
    "BatchState",
    "BatchStateMachine",
    "BatchStatus",
    "Settings",
]
