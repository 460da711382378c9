from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import git

from .config import REMOTE_NAME
from .credentials import CredentialSource, authenticated_url, redact_url
from .errors import SyncError
from .models import FileChange

_LOGGER = logging.getLogger(__name__)

_STATUS_MAP = {
    "?": "added",
    "A": "added",
    "C": "added",
    "M": "modified",
    "T": "modified",
    "U": "modified",
    "D": "deleted",
    "R": "renamed",
}

# fail instead of waiting on a credential prompt
NO_PROMPT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def exclude_pathspecs(rule: str) -> list[str]:
    """Translate a gitignore-style rule into exclude pathspecs.

    Rules without an inner slash match at any depth, a trailing slash limits
    the rule to directories.
    """
    name = rule.strip("/")
    prefix = "" if "/" in rule.rstrip("/") else "**/"
    specs = [f":(exclude,glob){prefix}{name}/**"]
    if not rule.endswith("/"):
        specs.append(f":(exclude,glob){prefix}{name}")
    return specs


def list_remote_refs(uri: str, credentials: CredentialSource | None = None) -> list[str]:
    """Return the reference names advertised by ``uri``.

    Raises ``git.GitCommandError`` when the remote cannot be reached.
    """
    client = git.cmd.Git()
    client.update_environment(**NO_PROMPT_ENV)
    output = client.ls_remote(authenticated_url(uri, credentials))
    refs = []
    for line in output.splitlines():
        if "\t" not in line:
            continue
        _, name = line.split("\t", 1)
        refs.append(name.strip())
    return refs


def open_repository(path: Path) -> LocalRepository:
    """Open ``path`` as a working tree; GitPython errors propagate untouched."""
    return LocalRepository(git.Repo(path, search_parent_directories=False))


def clone_repository(
    uri: str, destination: Path, credentials: CredentialSource | None = None
) -> git.Repo:
    _LOGGER.info("Cloning %s into %s", redact_url(uri), destination)
    repo = git.Repo.clone_from(
        authenticated_url(uri, credentials), destination, env=NO_PROMPT_ENV
    )
    # never leave credentials in .git/config
    repo.remote(REMOTE_NAME).set_url(uri)
    return repo


def parse_porcelain(output: str) -> list[FileChange]:
    """Parse ``git status --porcelain -z`` output into file changes."""
    tokens = output.split("\0")
    changes: list[FileChange] = []
    index = 0
    while index < len(tokens):
        entry = tokens[index]
        index += 1
        if len(entry) < 4:
            continue
        code, path = entry[:2], entry[3:]
        if "R" in code or "C" in code:
            previous = tokens[index] if index < len(tokens) else None
            index += 1
            if "R" in code:
                changes.append(FileChange(path=path, change_type="renamed", previous_path=previous))
                continue
        changes.append(FileChange(path=path, change_type=_map_status(code)))
    return changes


def _map_status(code: str) -> str:
    primary = code[0] if code[0] not in {" ", "!"} else code[1]
    return _STATUS_MAP.get(primary, "modified")


class LocalRepository:
    """A git working tree owned by the sync loop."""

    def __init__(self, repo: git.Repo) -> None:
        self._repo = repo
        self._repo.git.update_environment(**NO_PROMPT_ENV)
        self._ignore_rules: list[str] = []

    @property
    def repo(self) -> git.Repo:
        return self._repo

    @property
    def working_dir(self) -> Path:
        return Path(self._repo.working_tree_dir)

    @property
    def ignore_rules(self) -> tuple[str, ...]:
        return tuple(self._ignore_rules)

    @property
    def branch(self) -> str:
        try:
            return self._repo.active_branch.name
        except TypeError:
            # detached HEAD
            return "HEAD"

    @property
    def is_detached(self) -> bool:
        return self._repo.head.is_detached

    @property
    def tip(self) -> str | None:
        try:
            return self._repo.head.commit.hexsha
        except ValueError:
            return None

    def remote_url(self, name: str = REMOTE_NAME) -> str | None:
        try:
            return self._repo.remote(name).url
        except ValueError:
            return None

    def set_remote(self, url: str, name: str = REMOTE_NAME) -> None:
        if self.remote_url(name) is None:
            self._repo.create_remote(name, url)
        else:
            self._repo.remote(name).set_url(url)

    def add_temporary_ignore_rules(self, rules: Iterable[str]) -> None:
        """Exclude ``rules`` from status and staging for the lifetime of this handle.

        The rules are applied as exclude pathspecs and never written to disk.
        """
        for rule in rules:
            if rule not in self._ignore_rules:
                self._ignore_rules.append(rule)

    def _pathspec(self) -> list[str]:
        excludes = [spec for rule in self._ignore_rules for spec in exclude_pathspecs(rule)]
        return ["--", ".", *excludes]

    def status(self) -> list[FileChange]:
        output = self._repo.git.status(
            "--porcelain", "-z", "--untracked-files=all", *self._pathspec()
        )
        return parse_porcelain(output)

    def stage_all(self) -> None:
        self._repo.git.add("--all", *self._pathspec())

    def commit(self, message: str, author: git.Actor, committer: git.Actor) -> git.Commit:
        return self._repo.index.commit(message, author=author, committer=committer)

    def push(self, credentials: CredentialSource | None = None, name: str = REMOTE_NAME) -> str:
        url = self.remote_url(name)
        if url is None:
            raise ValueError(f"Remote {name} is not configured")
        if self.is_detached:
            raise SyncError(
                "push", f"Refusing to push a detached HEAD in {self.working_dir}"
            )
        branch = self.branch
        self._repo.git.push(authenticated_url(url, credentials), f"HEAD:refs/heads/{branch}")
        return branch
