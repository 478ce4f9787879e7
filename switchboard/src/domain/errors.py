"""
Error taxonomy for Switchboard.

Leaf operations (store access, process control, file I/O) raise these;
the orchestrator and command layer turn them into step outcomes or
user-facing messages.
"""


class SwitchboardError(Exception):
    """Base class for all Switchboard errors."""


class NotFoundError(SwitchboardError):
    """Something expected is absent. Callers often treat this as benign."""


class StoreNotFoundError(NotFoundError):
    """The Antigravity state database file does not exist."""


class KeyNotFoundError(NotFoundError):
    """A well-known key is missing from the state database."""


class AccountNotFoundError(NotFoundError):
    """No backup file exists for the requested account."""


class ProcessNotFoundError(NotFoundError):
    """No running Antigravity process matched."""


class ExecutableNotFoundError(NotFoundError):
    """The Antigravity executable could not be located."""


class StorageIOError(SwitchboardError):
    """Reading, writing or deleting a file failed for a reason other than absence."""


class DecodeError(SwitchboardError):
    """A value expected to be well-formed could not be decoded."""


class ValidationError(SwitchboardError):
    """Window geometry or a settings combination was rejected."""


class ProcessControlError(SwitchboardError):
    """Terminating or launching a process did not succeed."""


class BusyError(SwitchboardError):
    """Another account operation is already in progress."""
