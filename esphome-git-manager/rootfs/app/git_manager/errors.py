from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReconcileScenario


class GitManagerError(RuntimeError):
    """Base class for every fatal error raised by the add-on."""


class ConfigurationError(GitManagerError):
    """Raised when the options file is missing, unreadable or invalid."""


class RemoteUnavailableError(GitManagerError):
    """Raised when the remote repository cannot be queried."""


class LocalRepositoryError(GitManagerError):
    """Raised when the local path cannot be opened or populated as a repository."""


class RemoteMismatchError(GitManagerError):
    """Raised when an existing local repository tracks a different remote."""


class UnsupportedReconciliationError(GitManagerError):
    """Raised for local/remote combinations that need a human to resolve."""

    def __init__(self, scenario: ReconcileScenario, message: str) -> None:
        super().__init__(message)
        self.scenario = scenario


class SyncError(GitManagerError):
    """Raised when staging, committing or pushing fails during an iteration."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation
