import os
import shlex
import stat
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from reposync import credentials
from reposync.config import SshConfig
from reposync.errors import GitError, RepositoryNotFoundError, RevisionResolutionError
from reposync.git_wrapper import (
    CloneResult,
    CloneStatus,
    GitRepo,
    clone_repository,
    run_git,
    ssh_environment,
)

from conftest import git, requires_git


def test_run_git_wraps_failures(mocker: MagicMock) -> None:
    """Verifies that a failing git command surfaces stderr in a GitError."""
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            128, ["git", "fetch"], stderr="fatal: could not read from remote\n"
        ),
    )

    with pytest.raises(GitError) as exc:
        run_git(["fetch"])

    assert exc.value.returncode == 128
    assert exc.value.stderr == "fatal: could not read from remote"
    assert exc.value.args_list == ["fetch"]


def test_run_git_missing_executable(mocker: MagicMock) -> None:
    """Verifies that an absent git binary is reported as a GitError."""
    mocker.patch("subprocess.run", side_effect=FileNotFoundError("no git"))

    with pytest.raises(GitError) as exc:
        run_git(["status"], git="/no/such/git")

    assert exc.value.returncode is None


def test_run_git_non_string_executable() -> None:
    """Verifies that an unusable executable setting is reported as a GitError."""
    with pytest.raises(GitError) as exc:
        run_git(["status"], git=5)  # type: ignore[arg-type]

    assert exc.value.returncode is None


def test_run_git_forces_c_locale(mocker: MagicMock) -> None:
    """Verifies that git runs untranslated so stderr markers stay matchable."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value = MagicMock(stdout="ok\n")

    assert run_git(["status"], env={"LANG": "de_DE.UTF-8"}) == "ok"

    env = mock_run.call_args.kwargs["env"]
    assert env["LC_ALL"] == "C"
    assert env["LANG"] == "de_DE.UTF-8"


def test_ssh_environment_anonymous(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verifies that anonymous access never prompts and passes no identity."""
    monkeypatch.delenv("GIT_SSH_COMMAND", raising=False)

    with ssh_environment(None) as env:
        cmd = shlex.split(env["GIT_SSH_COMMAND"])

    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert cmd[0] == "ssh"
    assert "-i" not in cmd
    assert "BatchMode=yes" in cmd
    assert "StrictHostKeyChecking=yes" in cmd


def test_ssh_environment_keeps_caller_ssh_command(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Verifies that an ssh command set by the caller survives anonymous access."""
    monkeypatch.setenv("GIT_SSH_COMMAND", "ssh -i /etc/deploy_key")

    with ssh_environment(None) as env:
        assert env["GIT_SSH_COMMAND"] == "ssh -i /etc/deploy_key"
        assert env["GIT_TERMINAL_PROMPT"] == "0"


def test_ssh_environment_accept_new_is_opt_in(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("GIT_SSH_COMMAND", raising=False)
    ssh = SshConfig(strict_host_key_checking="accept-new")

    with ssh_environment(None, ssh) as env:
        cmd = shlex.split(env["GIT_SSH_COMMAND"])

    assert "StrictHostKeyChecking=accept-new" in cmd
    assert "StrictHostKeyChecking=yes" not in cmd


def test_ssh_environment_materializes_key_temporarily(ed25519_openssh: bytes) -> None:
    """Verifies that the key file exists privately only for the command's duration."""
    handle = credentials.bind(ed25519_openssh)
    ssh = SshConfig(known_hosts_file="/tmp/kh", options=["ConnectTimeout=5"])

    with ssh_environment(handle, ssh) as env:
        cmd = shlex.split(env["GIT_SSH_COMMAND"])
        key_file = Path(cmd[cmd.index("-i") + 1])

        assert key_file.read_bytes() == handle.signer.private_key_openssh()
        assert stat.S_IMODE(key_file.stat().st_mode) == 0o600

    assert not key_file.exists()
    assert cmd[cmd.index("-l") + 1] == "git"
    assert "IdentitiesOnly=yes" in cmd
    assert "UserKnownHostsFile=/tmp/kh" in cmd
    assert "ConnectTimeout=5" in cmd


def test_ssh_environment_respects_batch_mode_off(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("GIT_SSH_COMMAND", raising=False)
    with ssh_environment(None, SshConfig(batch_mode=False)) as env:
        assert "BatchMode=yes" not in env["GIT_SSH_COMMAND"]


def test_clone_repository_command(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies the shallow, single-branch clone invocation."""
    mock_run = mocker.patch("reposync.git_wrapper.run_git")
    mock_repo = mocker.patch("reposync.git_wrapper.GitRepo")

    result = clone_repository(
        "git@example.com:org/repo.git", tmp_path, "refs/heads/release", depth=10
    )

    assert result.status is CloneStatus.CREATED
    assert result.repo is mock_repo.return_value
    args = mock_run.call_args.args[0]
    assert args == [
        "clone",
        "--depth",
        "10",
        "--branch",
        "release",
        "--",
        "git@example.com:org/repo.git",
        str(tmp_path),
    ]
    assert "GIT_SSH_COMMAND" in mock_run.call_args.kwargs["env"]


def test_clone_repository_reports_existing_destination(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that a populated destination is a distinct outcome, not a failure."""
    error = GitError(
        ["clone"],
        128,
        f"fatal: destination path '{tmp_path}' already exists and is not an "
        "empty directory.",
    )
    mocker.patch("reposync.git_wrapper.run_git", side_effect=error)

    result = clone_repository("url", tmp_path, "refs/heads/main")

    assert result.status is CloneStatus.ALREADY_EXISTS
    assert result.error is error
    assert result.repo is None


def test_clone_repository_other_failures(mocker: MagicMock, tmp_path: Path) -> None:
    error = GitError(["clone"], 128, "fatal: repository 'url' does not exist")
    mocker.patch("reposync.git_wrapper.run_git", side_effect=error)

    result = clone_repository("url", tmp_path, "refs/heads/main")

    assert result.status is CloneStatus.FAILED
    assert result.error is error


def test_failed_clone_result_requires_error() -> None:
    with pytest.raises(ValueError):
        CloneResult(CloneStatus.FAILED)


def test_gitrepo_rejects_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(RepositoryNotFoundError):
        GitRepo(tmp_path / "missing")


def test_remote_urls_logs_error_on_failure(
    mocker: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that git failures are logged instead of passing silently."""
    repo = GitRepo.__new__(GitRepo)
    mocker.patch.object(repo, "_run", side_effect=GitError(["remote"], 2, "boom"))

    assert repo.remote_urls("origin") == []
    assert "Git error reading URLs for remote origin" in caplog.text


def test_resolve_revision_rejects_option_like_input() -> None:
    repo = GitRepo.__new__(GitRepo)

    with pytest.raises(RevisionResolutionError):
        repo.resolve_revision("--all")
    assert repo.rev_parse("") is None


@requires_git
def test_gitrepo_opens_only_repository_roots(tmp_path: Path) -> None:
    """Verifies that a directory nested in a repository is not itself opened."""
    root = tmp_path / "work"
    git("init", str(root), cwd=tmp_path)
    nested = root / "sub"
    nested.mkdir()

    repo = GitRepo(root)
    assert not repo.is_bare
    assert repo.worktree_root() == root

    with pytest.raises(RepositoryNotFoundError):
        GitRepo(nested)

    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(RepositoryNotFoundError):
        GitRepo(plain)


@requires_git
def test_gitrepo_opens_bare_repository(tmp_path: Path) -> None:
    bare = tmp_path / "bare.git"
    git("init", "--bare", str(bare), cwd=tmp_path)

    repo = GitRepo(bare)

    assert repo.is_bare
    assert os.path.samefile(repo.git_dir, bare)
