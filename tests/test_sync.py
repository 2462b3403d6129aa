"""Tests for branch sync against real git repositories."""

from pathlib import Path

from shipcheck.config import SyncStrategy
from shipcheck.preflight.commands import CommandExecutor
from shipcheck.preflight.models import FailureKind
from shipcheck.preflight.sync import BranchSync

from conftest import commit_file, git, requires_git

pytestmark = requires_git


def make_sync(repo: Path, env, **kwargs) -> BranchSync:
    kwargs.setdefault("remote", None)
    return BranchSync(CommandExecutor(cwd=repo, env=env), **kwargs)


class TestBranchSync:
    """Syncing a feature branch with main."""

    def test_already_up_to_date(self, git_repo, git_env):
        outcome = make_sync(git_repo, git_env).sync()

        assert outcome.ok
        assert outcome.working_branch == "feature"
        assert outcome.command == "git merge --no-edit main"
        assert "$ git merge --no-edit main" in outcome.output

    def test_merge_brings_in_base_commits(self, git_repo, git_env):
        git(git_repo, git_env, "checkout", "-q", "main")
        commit_file(git_repo, git_env, "lib.py", "VALUE = 1\n", "add lib")
        git(git_repo, git_env, "checkout", "-q", "feature")
        commit_file(git_repo, git_env, "feature.py", "FLAG = True\n", "add feature")

        outcome = make_sync(git_repo, git_env).sync()

        assert outcome.ok
        assert (git_repo / "lib.py").exists()
        assert (git_repo / "feature.py").exists()

    def test_rebase(self, git_repo, git_env):
        git(git_repo, git_env, "checkout", "-q", "main")
        commit_file(git_repo, git_env, "lib.py", "VALUE = 1\n", "add lib")
        git(git_repo, git_env, "checkout", "-q", "feature")
        commit_file(git_repo, git_env, "feature.py", "FLAG = True\n", "add feature")

        outcome = make_sync(git_repo, git_env, strategy=SyncStrategy.REBASE).sync()

        assert outcome.ok
        assert outcome.command == "git rebase main"
        log = git(git_repo, git_env, "log", "--format=%s")
        assert log.splitlines()[:2] == ["add feature", "add lib"]

    def test_conflict_is_aborted(self, git_repo, git_env):
        git(git_repo, git_env, "checkout", "-q", "main")
        commit_file(git_repo, git_env, "app.py", "print('main')\n", "main change")
        git(git_repo, git_env, "checkout", "-q", "feature")
        commit_file(git_repo, git_env, "app.py", "print('feature')\n", "feature change")

        outcome = make_sync(git_repo, git_env).sync()

        assert not outcome.ok
        assert outcome.failure == FailureKind.CONFLICT
        assert not (git_repo / ".git" / "MERGE_HEAD").exists()
        assert (git_repo / "app.py").read_text() == "print('feature')\n"

    def test_checks_out_working_branch(self, git_repo, git_env):
        git(git_repo, git_env, "checkout", "-q", "main")

        outcome = make_sync(git_repo, git_env, working_branch="feature").sync()

        assert outcome.ok
        assert outcome.working_branch == "feature"
        assert git(git_repo, git_env, "rev-parse", "--abbrev-ref", "HEAD").strip() == "feature"

    def test_detached_head_reports_short_sha(self, git_repo, git_env):
        git(git_repo, git_env, "checkout", "-q", "--detach")
        short = git(git_repo, git_env, "rev-parse", "--short", "HEAD").strip()

        outcome = make_sync(git_repo, git_env).sync()

        assert outcome.ok
        assert outcome.working_branch == short
        assert outcome.working_branch != "HEAD"

    def test_unknown_working_branch(self, git_repo, git_env):
        outcome = make_sync(git_repo, git_env, working_branch="does-not-exist").sync()

        assert not outcome.ok
        assert outcome.failure == FailureKind.EXIT_CODE

    def test_missing_remote(self, git_repo, git_env):
        outcome = make_sync(git_repo, git_env, remote="nowhere").sync()

        assert not outcome.ok
        assert "git fetch nowhere main" in outcome.output

    def test_fetch_from_remote(self, tmp_path, git_repo, git_env):
        upstream = tmp_path / "upstream.git"
        git(tmp_path, git_env, "clone", "-q", "--bare", str(git_repo), str(upstream))
        git(git_repo, git_env, "remote", "add", "origin", str(upstream))

        outcome = make_sync(git_repo, git_env, remote="origin").sync()

        assert outcome.ok
        assert outcome.command == "git merge --no-edit origin/main"

    def test_not_a_repository(self, tmp_path, git_env):
        plain = tmp_path / "plain"
        plain.mkdir()

        outcome = make_sync(plain, git_env).sync()

        assert not outcome.ok
