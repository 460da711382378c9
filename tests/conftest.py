"""Shared fixtures: bare remotes, seeded remotes and option factories."""

from pathlib import Path
from typing import Any, Callable

import git
import pytest

from git_manager.config import Options

TEST_ACTOR = git.Actor("Fixture Author", "fixture@example.com")


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """Creates an empty bare repository acting as the remote."""
    path = tmp_path / "remote.git"
    git.Repo.init(path, bare=True)
    return path


@pytest.fixture
def seeded_remote(tmp_path: Path, bare_remote: Path) -> Path:
    """Creates a bare remote holding a single commit with two files."""
    work = git.Repo.clone_from(str(bare_remote), tmp_path / "seed")
    work_dir = Path(work.working_tree_dir)
    (work_dir / "kitchen.yaml").write_text("esphome:\n  name: kitchen\n")
    (work_dir / "devices").mkdir()
    (work_dir / "devices" / "porch.yaml").write_text("esphome:\n  name: porch\n")
    work.index.add(["kitchen.yaml", "devices/porch.yaml"])
    work.index.commit("Initial configuration", author=TEST_ACTOR, committer=TEST_ACTOR)
    work.git.push("origin", f"HEAD:refs/heads/{work.active_branch.name}")
    return bare_remote


@pytest.fixture
def local_dir(tmp_path: Path) -> Path:
    path = tmp_path / "esphome"
    path.mkdir()
    return path


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    """Directory used as the parent of temporary clones."""
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def make_options(local_dir: Path, scratch_dir: Path) -> Callable[..., Options]:
    """Returns a factory building Options pointed at the test directories."""

    def _make(remote: Path | str, **overrides: Any) -> Options:
        values: dict[str, Any] = {
            "repository_uri": str(remote),
            "local_path": str(local_dir),
            "check_period_seconds": 1,
            "committer_name": "Jane Doe",
            "committer_email": "jane@example.com",
            "http_api_port": 0,
            "temp_path": str(scratch_dir),
        }
        values.update(overrides)
        return Options(**values)

    return _make


def snapshot(path: Path) -> dict[str, bytes | None]:
    """Maps every entry below ``path`` to its bytes (None for directories)."""
    return {
        str(entry.relative_to(path)): entry.read_bytes() if entry.is_file() else None
        for entry in sorted(path.rglob("*"))
    }
