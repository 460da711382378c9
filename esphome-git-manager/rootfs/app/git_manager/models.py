from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

ChangeType = Literal["added", "modified", "deleted", "renamed"]


class ReconcileScenario(str, Enum):
    ALREADY_OPEN = "already_open"
    CLONE_INTO_EMPTY = "clone_into_empty"
    LOCAL_ONLY_NO_REMOTE = "local_only_no_remote"
    DIVERGENT_BOTH_EXIST = "divergent_both_exist"

    @classmethod
    def classify(cls, local_files_exist: bool, remote_has_refs: bool) -> ReconcileScenario:
        """Pick the scenario for a local path that is not yet a repository."""
        if not local_files_exist:
            return cls.CLONE_INTO_EMPTY
        if remote_has_refs:
            return cls.DIVERGENT_BOTH_EXIST
        return cls.LOCAL_ONLY_NO_REMOTE


class FileChange(BaseModel):
    path: str
    change_type: ChangeType
    previous_path: str | None = None


class CommitRecord(BaseModel):
    sha: str
    message: str
    author: str
    committer: str
    committed_at: datetime
    branch: str
    changes: list[FileChange] = Field(default_factory=list)
    pushed: bool = False


class StatusResponse(BaseModel):
    healthy: bool
    branch: str | None = None
    tip: str | None = None
    last_check: datetime | None = None
    last_commit: CommitRecord | None = None
    iterations: int = 0
    pending_reason: str | None = None
    error: str | None = None
