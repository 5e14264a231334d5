"""Exception hierarchy raised by reposync operations."""

from pathlib import Path


class ReposyncError(Exception):
    """Base class for all reposync failures."""


class CredentialError(ReposyncError):
    """A private key could not be turned into an authentication handle.

    Attributes:
        stage (str): Either ``"parse"`` or ``"sign-setup"``.
        cause (Exception | None): The underlying error.
    """

    def __init__(self, stage: str, cause: Exception | None = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Credential error during {stage}{detail}")


class PathError(ReposyncError):
    """The local directory could not be ensured."""

    def __init__(self, path: Path, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot prepare repository path {path}{detail}")


class OpenError(ReposyncError):
    """A local repository could not be opened where one was expected."""

    def __init__(self, path: Path, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Git repository open error. Path: {path}{detail}")


class RepositoryNotFoundError(OpenError):
    """The path exists but is not the root of a git repository."""


class WorktreeError(ReposyncError):
    """An opened repository has no usable working tree."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Git repository worktree error. Path: {path}")


class RevisionResolutionError(ReposyncError):
    """A revision expression did not resolve to a commit."""

    def __init__(self, revision: str, cause: Exception | None = None):
        self.revision = revision
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot resolve revision '{revision}'{detail}")


class GitError(RuntimeError):
    """A git command failed.

    Transport and protocol failures (authentication rejected, unreachable
    remote, non-fast-forward) reach the caller as this type, unclassified.

    Attributes:
        args_list (list[str]): The git arguments that were run.
        returncode (int | None): Exit status, or None if git could not start.
        stderr (str): The captured error output.
    """

    def __init__(self, args: list[str], returncode: int | None, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(f"Git error: {self.stderr or f'exit status {returncode}'}")
