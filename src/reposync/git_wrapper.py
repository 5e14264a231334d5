import logging
import os
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

from rich.console import Console

from .config import SshConfig
from .constants import (
    ALREADY_EXISTS_MARKERS,
    APP_NAME,
    BRANCH_REF_PREFIX,
    DEFAULT_CLONE_DEPTH,
    NOT_A_REPO_MARKERS,
)
from .credentials import AuthHandle
from .errors import (
    GitError,
    OpenError,
    RepositoryNotFoundError,
    RevisionResolutionError,
    WorktreeError,
)

logger = logging.getLogger(APP_NAME)
console = Console(stderr=True)


def run_git(
    args: list[str],
    cwd: Path | None = None,
    git: str = "git",
    capture: bool = True,
    env: dict | None = None,
) -> str:
    """Executes a git command.

    Args:
        args (list[str]): Arguments to pass to git.
        cwd (Path | None, optional): Working directory. Defaults to the process cwd.
        git (str, optional): The git executable. Defaults to 'git'.
        capture (bool, optional):   Whether to capture and return stdout.
                                    Defaults to True.
        env (dict | None, optional): Environment for the subprocess. Defaults to
                                     the current environment.

    Returns:
        str:    The stripped stdout of the command if capture is True,
                otherwise an empty string.

    Raises:
        GitError: If git cannot be started or exits with a non-zero status.
    """
    run_env = dict(os.environ if env is None else env)
    # Stable, untranslated messages; stderr is matched against known markers.
    run_env["LC_ALL"] = "C"
    try:
        res = subprocess.run(
            [git, *args],
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=True,
            env=run_env,
        )
        return res.stdout.strip() if capture else ""
    except subprocess.CalledProcessError as e:
        raise GitError(args, e.returncode, e.stderr or "") from e
    except (OSError, TypeError, ValueError) as e:
        # The executable could not be started at all.
        raise GitError(args, None, str(e)) from e


def _ssh_options(ssh: SshConfig) -> list[str]:
    opts = []
    if ssh.batch_mode:
        opts += ["-o", "BatchMode=yes"]
    if ssh.strict_host_key_checking:
        opts += ["-o", f"StrictHostKeyChecking={ssh.strict_host_key_checking}"]
    if ssh.known_hosts_file:
        opts += ["-o", f"UserKnownHostsFile={ssh.known_hosts_file}"]
    for option in ssh.options:
        opts += ["-o", option]
    return opts


@contextmanager
def ssh_environment(
    auth: AuthHandle | None, ssh: SshConfig | None = None
) -> Iterator[dict[str, str]]:
    """Context manager providing the environment for one networked git command.

    With credentials, the key is written to a private temporary directory that
    exists only for the duration of the block. Without credentials, a
    GIT_SSH_COMMAND already present in the environment is kept as is; otherwise
    ssh runs with the configured transport options and its own identities.

    Args:
        auth (AuthHandle | None): Bound credentials, or None for anonymous access.
        ssh (SshConfig | None, optional): SSH transport settings.

    Yields:
        dict[str, str]: A copy of the environment with GIT_SSH_COMMAND set.
    """
    ssh = ssh or SshConfig()
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"

    if auth is None:
        # A caller-provided GIT_SSH_COMMAND wins over the built-in transport.
        env.setdefault("GIT_SSH_COMMAND", shlex.join(["ssh", *_ssh_options(ssh)]))
        yield env
        return

    with tempfile.TemporaryDirectory(prefix=f"{APP_NAME}-") as tmp:
        key_file = Path(tmp) / "id_key"
        key_file.touch(mode=0o600)
        key_file.write_bytes(auth.signer.private_key_openssh())
        env["GIT_SSH_COMMAND"] = shlex.join(
            [
                "ssh",
                "-i",
                str(key_file),
                "-o",
                "IdentitiesOnly=yes",
                "-l",
                auth.username,
                *_ssh_options(ssh),
            ]
        )
        yield env


class CloneStatus(Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass
class CloneResult:
    """Outcome of a clone attempt.

    Attributes:
        status (CloneStatus): What happened.
        repo (GitRepo | None): The opened repository when status is CREATED.
        error (GitError | None): The git failure for ALREADY_EXISTS and FAILED.
    """

    status: CloneStatus
    repo: "GitRepo | None" = None
    error: GitError | None = None

    def __post_init__(self) -> None:
        if self.status is CloneStatus.FAILED and self.error is None:
            raise ValueError("A failed clone result must carry its error")


class GitRepo:
    """A wrapper around the Git command-line interface for one opened repository.

    Opening succeeds only when `path` is the root of a repository: the top of a
    working tree, or the git directory of a bare repository. A directory nested
    inside some other repository is rejected.

    Attributes:
        path (Path): The repository root as given.
        git (str): The git executable.
        is_bare (bool): Whether the repository has no working tree.
        git_dir (Path): Absolute path of the git metadata directory.
    """

    def __init__(self, path: Path, git: str = "git"):
        """Opens the repository at `path`.

        Args:
            path (Path): The repository root directory.
            git (str, optional): The git executable. Defaults to 'git'.

        Raises:
            RepositoryNotFoundError: If `path` is not the root of a repository.
            OpenError: If git fails for any other reason.
        """
        self.path = Path(path)
        self.git = git
        if not self.path.is_dir():
            raise RepositoryNotFoundError(
                self.path, FileNotFoundError(f"No such directory: {self.path}")
            )

        try:
            bare_flag, git_dir = self._run(
                ["rev-parse", "--is-bare-repository", "--absolute-git-dir"]
            ).splitlines()[:2]
            self.is_bare = bare_flag == "true"
            self.git_dir = Path(git_dir)
            if self.is_bare:
                root = self.git_dir
            else:
                root = Path(self._run(["rev-parse", "--show-toplevel"]))
        except GitError as e:
            if any(m in e.stderr.lower() for m in NOT_A_REPO_MARKERS):
                raise RepositoryNotFoundError(self.path, e) from e
            raise OpenError(self.path, e) from e
        except ValueError as e:
            raise OpenError(self.path, e) from e

        if root.resolve() != self.path.resolve():
            raise RepositoryNotFoundError(
                self.path, ValueError(f"Path is inside the repository at {root}")
            )

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a git command within the repository context."""
        return run_git(args, cwd=self.path, git=self.git, capture=capture, env=env)

    def worktree_root(self) -> Path:
        """Returns the working tree root.

        Raises:
            WorktreeError: If the repository is bare.
        """
        if self.is_bare:
            raise WorktreeError(self.path)
        return self.path

    def remotes(self) -> list[str]:
        """Lists the configured remote names in configuration order."""
        output = self._run(["remote"])
        return output.splitlines() if output else []

    def remote_urls(self, name: str) -> list[str]:
        """Lists the URLs configured for a remote.

        Args:
            name (str): The remote name.

        Returns:
            list[str]: The remote's URLs, or an empty list if it cannot be read.
        """
        try:
            output = self._run(["remote", "get-url", "--all", name])
            return output.splitlines() if output else []
        except GitError as e:
            logger.warning(f"Git error reading URLs for remote {name}: {e}")
            return []

    def resolve_revision(self, rev: str) -> str:
        """Resolves a revision (branch, tag, short hash) to a full commit id.

        Args:
            rev (str): The revision expression.

        Returns:
            str: The full commit id.

        Raises:
            RevisionResolutionError: If the expression does not name a commit.
        """
        if not rev or rev.startswith("-"):
            raise RevisionResolutionError(rev, ValueError("Invalid revision"))
        try:
            sha = self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except GitError as e:
            raise RevisionResolutionError(rev, e) from e
        if not sha:
            raise RevisionResolutionError(rev)
        return sha

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision to a full commit id.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'master').

        Returns:
            Optional[str]:  The full commit id,
                            or None if the revision could not be resolved.
        """
        try:
            return self.resolve_revision(rev)
        except RevisionResolutionError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def head(self) -> str | None:
        """Returns the commit id checked out in the working tree, if any."""
        return self.rev_parse("HEAD")

    def pull(
        self,
        remote: str,
        ref: str,
        auth: AuthHandle | None = None,
        ssh: SshConfig | None = None,
        progress: bool = False,
    ) -> None:
        """Fast-forwards the checked-out branch to `ref` on `remote`.

        Args:
            remote (str): The remote name (e.g., 'origin').
            ref (str): The fully qualified reference to pull.
            auth (AuthHandle | None, optional): Credentials for SSH remotes.
            ssh (SshConfig | None, optional): SSH transport settings.
            progress (bool, optional): Whether to show a console spinner.

        Raises:
            GitError: If the pull fails, including when it is not a fast-forward.
        """
        cwd = self.worktree_root()
        cmd = ["pull", "--ff-only", "--no-rebase", remote, ref]
        with ssh_environment(auth, ssh) as env:
            if progress:
                with console.status(
                    f"[bold blue]Pulling {cwd.name}...[/bold blue]", spinner="dots"
                ):
                    run_git(cmd, cwd=cwd, git=self.git, env=env)
            else:
                run_git(cmd, cwd=cwd, git=self.git, env=env)


def clone_repository(
    url: str,
    path: Path,
    ref: str,
    depth: int = DEFAULT_CLONE_DEPTH,
    auth: AuthHandle | None = None,
    ssh: SshConfig | None = None,
    git: str = "git",
    progress: bool = False,
) -> CloneResult:
    """Clones `ref` of `url` into `path` with bounded history.

    Args:
        url (str): The remote URL.
        path (Path): The destination directory; may exist if empty.
        ref (str): The fully qualified branch reference (e.g., 'refs/heads/main').
        depth (int, optional): Number of commits to fetch. Defaults to 10.
        auth (AuthHandle | None, optional): Credentials for SSH remotes.
        ssh (SshConfig | None, optional): SSH transport settings.
        git (str, optional): The git executable. Defaults to 'git'.
        progress (bool, optional): Whether to show a console spinner.

    Returns:
        CloneResult:    CREATED with the opened repository, ALREADY_EXISTS when the
                        destination already has content, FAILED otherwise.
    """
    branch = ref.removeprefix(BRANCH_REF_PREFIX)
    cmd = ["clone", "--depth", str(depth), "--branch", branch, "--", url, str(path)]

    try:
        with ssh_environment(auth, ssh) as env:
            if progress:
                with console.status(
                    f"[bold blue]Cloning {url}...[/bold blue]", spinner="dots"
                ):
                    run_git(cmd, git=git, env=env)
            else:
                run_git(cmd, git=git, env=env)
    except GitError as e:
        if any(m in e.stderr for m in ALREADY_EXISTS_MARKERS):
            return CloneResult(CloneStatus.ALREADY_EXISTS, error=e)
        return CloneResult(CloneStatus.FAILED, error=e)

    return CloneResult(CloneStatus.CREATED, repo=GitRepo(path, git=git))
