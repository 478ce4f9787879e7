"""Domain models for Switchboard."""

from .account import AccountBackup, AccountSummary, DecodedSession, ExportedAccountFile, ImportResult
from .results import OutcomeStatus, StepOutcome, SwitchReport
from .settings import AppSettings
from .snapshot import DiffResult, Snapshot, StoreChangedEvent, compute_diff
from .window_state import DEFAULT_WINDOW_STATE, WindowState

__all__ = [
    "AccountBackup",
    "AccountSummary",
    "AppSettings",
    "DEFAULT_WINDOW_STATE",
    "DecodedSession",
    "DiffResult",
    "ExportedAccountFile",
    "ImportResult",
    "OutcomeStatus",
    "Snapshot",
    "StepOutcome",
    "StoreChangedEvent",
    "SwitchReport",
    "WindowState",
    "compute_diff",
]
