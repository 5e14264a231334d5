"""Clone-or-pull reconciliation for a single remote branch.

A `Repository` binds one remote URL, one branch and one local path. Its
`clone_or_pull` method makes the local working copy match the remote branch:
it attempts a shallow clone first and falls back to a fast-forward pull when
the clone reports that the destination already holds a repository.

A failed clone or pull may leave the local path partially populated; nothing
is rolled back.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from . import credentials
from .config import Config
from .constants import APP_NAME, BRANCH_REF_PREFIX
from .credentials import AuthHandle
from .errors import (
    GitError,
    OpenError,
    PathError,
    RepositoryNotFoundError,
    RevisionResolutionError,
    WorktreeError,
)
from .git_wrapper import CloneResult, CloneStatus, GitRepo, clone_repository


class OpenStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class OpenResult:
    """Outcome of `Repository.open`.

    Attributes:
        status (OpenStatus): Whether a repository was attached.
        error (Exception | None): The reason for NOT_FOUND or ERROR.
    """

    status: OpenStatus
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.status is OpenStatus.FOUND


class RevisionStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_OPEN = "not_open"


class SyncAction(Enum):
    """What `clone_or_pull` did to the local copy."""

    CLONED = "cloned"
    PULLED = "pulled"
    UP_TO_DATE = "up_to_date"


class Repository:
    """A local working copy kept in step with one branch of one remote.

    Attributes:
        auth (AuthHandle | None): Credentials bound by `set_keys`; None is anonymous.
        repo (GitRepo | None): The opened repository, if any.
        config (Config): Clone, remote, SSH and git settings.
    """

    def __init__(
        self,
        url: str,
        branch_name: str,
        path: str | Path,
        config: Config | None = None,
        logger: logging.Logger | None = None,
    ):
        """Creates the handle. Does not touch the filesystem.

        Args:
            url (str): The remote URL.
            branch_name (str): The single tracked branch.
            path (str | Path): The working copy root.
            config (Config | None, optional): Settings. Defaults to built-in defaults.
            logger (logging.Logger | None, optional):   Diagnostic sink. Defaults to
                                                        the package logger.
        """
        self._url = url
        self._branch_name = branch_name
        self._path = Path(path)
        self.config = config or Config()
        self.logger = logger or logging.getLogger(APP_NAME)
        self.auth: AuthHandle | None = None
        self.repo: GitRepo | None = None

    def __repr__(self) -> str:
        return (
            f"Repository(url={self._url!r}, branch_name={self._branch_name!r}, "
            f"path={str(self._path)!r})"
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def branch_name(self) -> str:
        return self._branch_name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def reference_name(self) -> str:
        """The fully qualified reference of the tracked branch."""
        return f"{BRANCH_REF_PREFIX}{self._branch_name}"

    # Credentials

    def set_keys(self, private_key: bytes) -> None:
        """Binds SSH credentials used by every later clone and pull.

        Args:
            private_key (bytes): An unencrypted private key in OpenSSH or PEM format.

        Raises:
            CredentialError: If the key cannot be parsed or cannot sign.
        """
        self.auth = credentials.bind(private_key, username=self.config.remote.ssh_user)

    # State queries

    def open(self) -> OpenResult:
        """Attaches to the repository at `path`, if there is one.

        Never raises. On failure `repo` is cleared and the reason is logged and
        returned.

        Returns:
            OpenResult: FOUND, NOT_FOUND, or ERROR with the cause.
        """
        try:
            repo = GitRepo(self._path, git=self.config.git.executable)
        except RepositoryNotFoundError as e:
            self.repo = None
            self.logger.info(f"Repo open: no repository at {self._path}: {e}")
            return OpenResult(OpenStatus.NOT_FOUND, e)
        except (OpenError, GitError) as e:
            self.repo = None
            self.logger.warning(f"Repo open error at {self._path}: {e}")
            return OpenResult(OpenStatus.ERROR, e)

        # Diagnostics only; the first remote never affects control flow.
        try:
            remotes = repo.remotes()
        except GitError as e:
            self.logger.debug(f"Could not list remotes of {self._path}: {e}")
            remotes = []
        if remotes:
            urls = repo.remote_urls(remotes[0])
            self.logger.info(f"Local remote '{remotes[0]}' URLs: {', '.join(urls)}")

        self.repo = repo
        return OpenResult(OpenStatus.FOUND)

    def revision_status(self, rev: str) -> RevisionStatus:
        """Classifies a revision expression against the open repository.

        Args:
            rev (str): A branch name, tag, or (short) commit id.

        Returns:
            RevisionStatus: FOUND, NOT_FOUND, or NOT_OPEN when nothing is open.
        """
        if self.repo is None:
            return RevisionStatus.NOT_OPEN
        if self.repo.rev_parse(rev) is None:
            return RevisionStatus.NOT_FOUND
        return RevisionStatus.FOUND

    def revision_exists(self, rev: str) -> bool:
        """Checks whether `rev` resolves to a commit.

        Returns False both when the revision is unknown and when no repository is
        open; use `revision_status` to tell the two apart.
        """
        return self.revision_status(rev) is RevisionStatus.FOUND

    def latest_sha(self, length: int) -> str:
        """Returns the leading `length` characters of the tracked branch's commit id.

        Args:
            length (int): Number of characters to return.

        Returns:
            str: The abbreviated commit id.

        Raises:
            RevisionResolutionError: If no repository is open or the branch does
                                     not resolve.
            ValueError: If `length` is below 1 or longer than the commit id.
        """
        if self.repo is None:
            raise RevisionResolutionError(
                self._branch_name, OpenError(self._path, ValueError("Not opened"))
            )
        try:
            sha = self.repo.resolve_revision(self._branch_name)
        except RevisionResolutionError as e:
            self.logger.info(f"LatestSHA error: {e}")
            raise

        if not 1 <= length <= len(sha):
            raise ValueError(f"length must be between 1 and {len(sha)}, got {length}")
        return sha[:length]

    def worktree(self) -> Path:
        """Returns the working tree root of the open repository.

        Raises:
            WorktreeError: If no repository is open or it is bare.
        """
        if self.repo is None:
            raise WorktreeError(self._path)
        try:
            return self.repo.worktree_root()
        except WorktreeError:
            self.logger.info(f"Repo worktree error at {self._path}")
            raise

    # Reconciliation

    def ensure_path(self) -> None:
        """Creates the working copy directory if it is missing (one level only).

        Raises:
            PathError: If the directory cannot be created or `path` is not one.
        """
        if self._path.is_dir():
            return
        if self._path.exists():
            raise PathError(self._path, NotADirectoryError(str(self._path)))
        try:
            self._path.mkdir()
        except OSError as e:
            self.logger.info(f"Mkdir error on repository path {self._path}: {e}")
            raise PathError(self._path, e) from e

    def clone(self) -> CloneResult:
        """Attempts a shallow clone of the tracked branch into `path`.

        Returns:
            CloneResult: The tagged outcome; on CREATED, `repo` is also bound.

        Raises:
            PathError: If the directory cannot be ensured.
        """
        self.ensure_path()
        result = clone_repository(
            self._url,
            self._path,
            self.reference_name,
            depth=self.config.clone.depth,
            auth=self.auth,
            ssh=self.config.ssh,
            git=self.config.git.executable,
            progress=self.config.clone.progress,
        )
        if result.status is CloneStatus.CREATED:
            self.repo = result.repo
            self.logger.info(
                f"Cloned {self.reference_name} of {self._url} into {self._path}"
            )
        return result

    def pull(self) -> SyncAction:
        """Re-opens the local copy and fast-forwards it from the remote.

        Returns:
            SyncAction: PULLED if HEAD moved, UP_TO_DATE otherwise.

        Raises:
            OpenError: If the repository cannot be opened.
            WorktreeError: If it has no working tree.
            GitError: If the pull itself fails.
        """
        opened = self.open()
        if not opened.found or self.repo is None:
            raise OpenError(self._path, opened.error)

        self.worktree()
        before = self.repo.head()
        self.repo.pull(
            self.config.remote.name,
            self.reference_name,
            auth=self.auth,
            ssh=self.config.ssh,
            progress=self.config.clone.progress,
        )
        after = self.repo.head()

        if before == after:
            self.logger.info(
                f"{self._path} already up to date with {self.reference_name}"
            )
            return SyncAction.UP_TO_DATE
        self.logger.info(f"Pulled {self.reference_name} into {self._path}: {after}")
        return SyncAction.PULLED

    def clone_or_pull(self) -> SyncAction:
        """Makes the local copy match the remote branch.

        Clones when `path` holds no repository yet, otherwise pulls. A clone
        never pulls in the same call.

        Returns:
            SyncAction: CLONED, PULLED, or UP_TO_DATE.

        Raises:
            PathError: If the directory cannot be ensured.
            OpenError: If an existing copy cannot be opened.
            WorktreeError: If an existing copy has no working tree.
            GitError: If clone or pull fails for any other reason.
        """
        result = self.clone()

        if result.status is CloneStatus.CREATED:
            return SyncAction.CLONED
        if result.status is CloneStatus.ALREADY_EXISTS:
            return self.pull()

        raise result.error
