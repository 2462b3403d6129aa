"""Shared pytest fixtures for shipcheck tests."""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

from shipcheck.preflight.commands import CommandOutcome, display_command
from shipcheck.preflight.models import FailureKind
from shipcheck.preflight.sync import SyncOutcome

Response = Tuple[int, str]


class ScriptedExecutor:
    """Executor double that answers from a script and records every call."""

    def __init__(
        self,
        script: Optional[Dict[str, Union[Response, List[Response]]]] = None,
        calls: Optional[List[str]] = None,
    ):
        self.script = script or {}
        self.calls = calls if calls is not None else []

    def run(self, command, timeout=None) -> CommandOutcome:
        shown = display_command(command)
        self.calls.append(shown)

        response = self.script.get(shown, (0, ""))
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        exit_code, output = response

        if exit_code == 0:
            failure = None
        elif exit_code == 127:
            failure = FailureKind.NOT_FOUND
        else:
            failure = FailureKind.EXIT_CODE
        return CommandOutcome(command=shown, exit_code=exit_code, output=output, failure=failure)


class FakeSyncer:
    """Branch sync double."""

    command = "git merge --no-edit origin/main"

    def __init__(self, ok: bool = True, calls: Optional[List[str]] = None, branch: str = "feature/login"):
        self.ok = ok
        self.calls = calls if calls is not None else []
        self.branch = branch

    def sync(self) -> SyncOutcome:
        self.calls.append("sync")
        if self.ok:
            outcome = CommandOutcome(self.command, 0, "Already up to date.\n")
            return SyncOutcome(self.command, self.branch, [outcome])
        outcome = CommandOutcome(
            self.command, 1, "CONFLICT (content): Merge conflict in app.py\n",
            failure=FailureKind.EXIT_CODE,
        )
        return SyncOutcome(self.command, self.branch, [outcome], failure=FailureKind.CONFLICT)


@pytest.fixture
def calls() -> List[str]:
    """Shared call log for the executor and syncer doubles."""
    return []


@pytest.fixture
def executor(calls) -> ScriptedExecutor:
    return ScriptedExecutor(calls=calls)


@pytest.fixture
def syncer(calls) -> FakeSyncer:
    return FakeSyncer(calls=calls)


# ============================================================
# Real git repositories
# ============================================================

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def git_env(tmp_path: Path) -> Dict[str, str]:
    """Environment isolating git from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    return {
        "HOME": str(home),
        "GIT_CONFIG_NOSYSTEM": "1",
        "GIT_AUTHOR_NAME": "Test Author",
        "GIT_AUTHOR_EMAIL": "author@example.com",
        "GIT_COMMITTER_NAME": "Test Author",
        "GIT_COMMITTER_EMAIL": "author@example.com",
        "GIT_EDITOR": "true",
    }


def git(repo: Path, env: Dict[str, str], *args: str) -> str:
    import os

    merged = dict(os.environ)
    merged.update(env)
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        env=merged,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def commit_file(repo: Path, env: Dict[str, str], name: str, content: str, message: str) -> None:
    (repo / name).write_text(content)
    git(repo, env, "add", name)
    git(repo, env, "commit", "-q", "-m", message)


@pytest.fixture
def git_repo(tmp_path: Path, git_env) -> Path:
    """
    A repository with ``main`` and a ``feature`` branch checked out.

    The feature branch is up to date with main.
    """
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, git_env, "init", "-q")
    git(repo, git_env, "checkout", "-q", "-b", "main")
    commit_file(repo, git_env, "app.py", "print('hello')\n", "initial")
    git(repo, git_env, "checkout", "-q", "-b", "feature")
    return repo
