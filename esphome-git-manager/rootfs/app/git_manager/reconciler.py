"""Startup reconciliation between the local configuration folder and the remote.

The reconciler runs exactly once before the sync loop starts. It decides which
of the :class:`ReconcileScenario` cases applies and either returns an open
:class:`LocalRepository` or raises a fatal, cause-chained error. The two
scenarios where both sides already hold data are deliberately unsupported.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

import git

from .config import REMOTE_NAME, TEMPORARY_IGNORE_RULES, Options
from .credentials import CredentialSource, redact_url
from .errors import (
    LocalRepositoryError,
    RemoteMismatchError,
    RemoteUnavailableError,
    UnsupportedReconciliationError,
)
from .git_client import LocalRepository, clone_repository, list_remote_refs, open_repository
from .models import ReconcileScenario

_LOGGER = logging.getLogger(__name__)

_UNSUPPORTED_MESSAGES = {
    ReconcileScenario.DIVERGENT_BOTH_EXIST: (
        "Initializing the local repository while files exist in both the local "
        "and remote is not yet implemented."
    ),
    ReconcileScenario.LOCAL_ONLY_NO_REMOTE: (
        "Initializing the local repository and pushing to an empty remote is "
        "not yet implemented."
    ),
}


def has_local_files(path: Path) -> bool:
    """True when ``path`` directly contains at least one regular file."""
    if not path.exists():
        return False
    return any(entry.is_file() for entry in path.iterdir())


def resolve_temp_root(configured: str | None = None) -> Path:
    candidate = configured or os.getenv("TEMP") or os.getenv("HOME")
    if candidate:
        root = Path(candidate)
        if not root.is_dir():
            raise LocalRepositoryError(f"Temporary directory {root} does not exist")
        return root
    return Path(tempfile.gettempdir())


def move_contents(source: Path, destination: Path) -> list[Path]:
    """Move every entry of ``source`` into ``destination`` without overwriting.

    All collisions are detected before anything is moved, so a failure leaves
    ``destination`` exactly as it was.
    """
    entries = sorted(source.iterdir())
    collisions = [entry.name for entry in entries if (destination / entry.name).exists()]
    if collisions:
        raise FileExistsError(
            f"Refusing to overwrite existing entries in {destination}: {', '.join(collisions)}"
        )
    moved = []
    for entry in entries:
        target = destination / entry.name
        shutil.move(str(entry), str(target))
        moved.append(target)
    return moved


def clone_into_existing(
    uri: str,
    local_path: Path,
    credentials: CredentialSource | None = None,
    temp_root: Path | None = None,
) -> None:
    """Clone ``uri`` next to ``local_path`` and move the result into it.

    The temporary clone is removed on every exit path.
    """
    with tempfile.TemporaryDirectory(prefix="git-manager-", dir=temp_root) as scratch:
        clone_dir = Path(scratch) / "repository"
        clone_repository(uri, clone_dir, credentials)
        move_contents(clone_dir, local_path)


class Reconciler:
    def __init__(self, options: Options, credentials: CredentialSource | None = None) -> None:
        self._options = options
        self._credentials = credentials
        self.scenario: ReconcileScenario | None = None

    @property
    def local_path(self) -> Path:
        return self._options.local_dir

    def reconcile(self) -> LocalRepository:
        uri = self._options.repository_uri
        _LOGGER.info("Validating environment:")
        _LOGGER.info("\tremote repository: %s", redact_url(uri))
        _LOGGER.info("\tlocal folder: %s", self.local_path)

        remote_has_refs = self._check_remote()
        repository = self._open_or_initialize(remote_has_refs)
        repository.add_temporary_ignore_rules(TEMPORARY_IGNORE_RULES)

        _LOGGER.info("Local repository validated (%s).", self.scenario.value)
        _LOGGER.info("\tbranch: %s", repository.branch)
        _LOGGER.info("\tcommit: %s", repository.tip)
        return repository

    def _check_remote(self) -> bool:
        uri = self._options.repository_uri
        _LOGGER.info("Checking remote repository...")
        try:
            refs = list_remote_refs(uri, self._credentials)
        except Exception as exc:
            raise RemoteUnavailableError(
                f"The specified remote repository uri [{redact_url(uri)}] is not valid or not accessible."
            ) from exc
        if refs:
            _LOGGER.info("\tRemote repository exists and is not empty.")
        else:
            _LOGGER.info("\tNo existing remote refs. Remote repository is empty.")
        return bool(refs)

    def _open_or_initialize(self, remote_has_refs: bool) -> LocalRepository:
        path = self.local_path
        _LOGGER.info("Checking local repository...")
        try:
            repository = open_repository(path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            _LOGGER.info("\tLocal repository not yet initialized.")
            return self._initialize(remote_has_refs)
        except Exception as exc:
            raise LocalRepositoryError(f"Failed to open local repository at path {path}") from exc

        _LOGGER.info("\tLocal repository exists.")
        self.scenario = ReconcileScenario.ALREADY_OPEN
        self._bind_remote(repository)
        return repository

    def _initialize(self, remote_has_refs: bool) -> LocalRepository:
        path = self.local_path
        try:
            local_files = has_local_files(path)
        except OSError as exc:
            raise LocalRepositoryError(f"Failed to inspect local path {path}") from exc

        self.scenario = ReconcileScenario.classify(local_files, remote_has_refs)
        if self.scenario in _UNSUPPORTED_MESSAGES:
            raise UnsupportedReconciliationError(
                self.scenario,
                f"{_UNSUPPORTED_MESSAGES[self.scenario]} (scenario: {self.scenario.value}, path: {path})",
            )

        _LOGGER.info("Initializing local repository...")
        _LOGGER.info("\tCloning remote repository into local path...")
        try:
            path.mkdir(parents=True, exist_ok=True)
            clone_into_existing(
                self._options.repository_uri,
                path,
                self._credentials,
                resolve_temp_root(self._options.temp_path),
            )
            return open_repository(path)
        except LocalRepositoryError:
            raise
        except Exception as exc:
            raise LocalRepositoryError(
                f"Failed to clone {redact_url(self._options.repository_uri)} into local path {path}"
            ) from exc

    def _bind_remote(self, repository: LocalRepository) -> None:
        expected = self._options.repository_uri
        current = repository.remote_url(REMOTE_NAME)
        if current is None:
            _LOGGER.info("\tAdding remote %s -> %s", REMOTE_NAME, redact_url(expected))
            repository.set_remote(expected)
            return
        if redact_url(current) == redact_url(expected):
            return
        if self._options.verify_remote:
            raise RemoteMismatchError(
                f"Local repository at {self.local_path} tracks {redact_url(current)}, "
                f"expected {redact_url(expected)}"
            )
        _LOGGER.warning(
            "Local repository tracks %s instead of %s; continuing because verifyRemote is off",
            redact_url(current),
            redact_url(expected),
        )
