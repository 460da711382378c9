from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import git

from .config import COMMIT_MESSAGE, COMMITTER_SERVICE_NAME, Options
from .credentials import CredentialSource, StaticCredentials, redact_url
from .errors import SyncError
from .git_client import LocalRepository
from .models import CommitRecord, FileChange, StatusResponse

_LOGGER = logging.getLogger(__name__)


class GitManagerService:
    """Periodically commits everything under the tracked folder and pushes it.

    Failures while reading status, staging, committing or pushing are not
    retried: they propagate out of :meth:`run` and end the process.
    """

    def __init__(
        self,
        options: Options,
        repository: LocalRepository,
        credentials: CredentialSource | None = None,
    ) -> None:
        self.options = options
        self.repository = repository
        self.credentials = credentials or StaticCredentials.from_options(options)
        self.author = git.Actor(options.committer_name, options.committer_email)
        self.committer = git.Actor(COMMITTER_SERVICE_NAME, options.committer_email)
        self.status = StatusResponse(
            healthy=True, branch=repository.branch, tip=repository.tip
        )
        # one status → push sequence at a time, whoever calls trigger_sync
        self._sync_lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._wake = asyncio.Event()

    async def run(self) -> None:
        while not self._stop.is_set():
            await self._sleep()
            if self._stop.is_set():
                break
            await self.trigger_sync("scheduled")

    async def _sleep(self) -> None:
        wake = asyncio.create_task(self._wake.wait())
        stop = asyncio.create_task(self._stop.wait())
        try:
            await asyncio.wait(
                {wake, stop},
                timeout=self.options.check_period_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            wake.cancel()
            stop.cancel()
        self._wake.clear()

    def request_sync(self, reason: str = "manual") -> None:
        """Cut the current sleep short so the next iteration runs immediately."""
        self.status = self.status.model_copy(update={"pending_reason": reason})
        self._wake.set()

    async def trigger_sync(self, reason: str) -> CommitRecord | None:
        async with self._sync_lock:
            try:
                record = await asyncio.to_thread(self.sync_once)
            except Exception as exc:
                _LOGGER.error("Sync failed (%s): %s", reason, exc)
                self.status = self.status.model_copy(
                    update={"healthy": False, "pending_reason": None, "error": str(exc)}
                )
                raise
            update: dict[str, Any] = {
                "healthy": True,
                "branch": self.repository.branch,
                "tip": self.repository.tip,
                "last_check": datetime.now(timezone.utc),
                "iterations": self.status.iterations + 1,
                "pending_reason": None,
                "error": None,
            }
            if record is not None:
                update["last_commit"] = record
            self.status = self.status.model_copy(update=update)
            return record

    def sync_once(self) -> CommitRecord | None:
        """Run one status → stage → commit → push sequence."""
        _LOGGER.info("Looking for changes...")
        try:
            changes = self.repository.status()
        except Exception as exc:
            raise SyncError(
                "status", f"Failed to read status of {self.repository.working_dir}"
            ) from exc
        if not changes:
            _LOGGER.info("\tNo changes found.")
            return None

        staged = self._stage()
        commit = self._commit()
        record = CommitRecord(
            sha=commit.hexsha,
            message=COMMIT_MESSAGE,
            author=f"{self.author.name} <{self.author.email}>",
            committer=f"{self.committer.name} <{self.committer.email}>",
            committed_at=commit.committed_datetime,
            branch=self.repository.branch,
            changes=staged,
        )
        _LOGGER.info("\tCommitted %d changes as %s", len(staged), commit.hexsha)

        self._push()
        _LOGGER.info("\tPushed changes to remote repository.")
        return record.model_copy(update={"pushed": True})

    def _stage(self) -> list[FileChange]:
        try:
            self.repository.stage_all()
            staged = self.repository.status()
        except Exception as exc:
            raise SyncError(
                "stage", f"Failed to stage changes in {self.repository.working_dir}"
            ) from exc
        _LOGGER.info("\tItems staged for commit:")
        for change in staged:
            _LOGGER.info("\t\t%s %s", change.change_type, change.path)
        return staged

    def _commit(self) -> git.Commit:
        try:
            return self.repository.commit(COMMIT_MESSAGE, self.author, self.committer)
        except Exception as exc:
            raise SyncError(
                "commit", f"Failed to commit changes in {self.repository.working_dir}"
            ) from exc

    def _push(self) -> None:
        url = self.repository.remote_url() or self.options.repository_uri
        try:
            self.repository.push(self.credentials)
        except SyncError:
            raise
        except Exception as exc:
            raise SyncError("push", f"Failed to push to {redact_url(url)}") from exc

    def public_config(self) -> dict[str, Any]:
        data = self.options.model_dump(by_alias=True)
        if data.get("repositoryPassword"):
            data["repositoryPassword"] = "***redacted***"
        data["repositoryUri"] = redact_url(data["repositoryUri"])
        return data

    async def shutdown(self) -> None:
        self._stop.set()
