"""reposync: keep a local git working copy in step with one remote branch.

This package provides the clone-or-pull reconciliation primitive, SSH
credential binding for git network operations, and the thin git client that
both are built on.
"""

from . import (
    config,
    constants,
    credentials,
    errors,
    git_wrapper,
    logging_setup,
    repository,
)
from .config import Config
from .credentials import AuthHandle, KeySigner, bind
from .errors import (
    CredentialError,
    GitError,
    OpenError,
    PathError,
    ReposyncError,
    RepositoryNotFoundError,
    RevisionResolutionError,
    WorktreeError,
)
from .git_wrapper import CloneResult, CloneStatus, GitRepo
from .logging_setup import setup_logging
from .repository import (
    OpenResult,
    OpenStatus,
    Repository,
    RevisionStatus,
    SyncAction,
)

__all__ = [
    "config",
    "constants",
    "credentials",
    "errors",
    "git_wrapper",
    "logging_setup",
    "repository",
    "AuthHandle",
    "CloneResult",
    "CloneStatus",
    "Config",
    "CredentialError",
    "GitError",
    "GitRepo",
    "KeySigner",
    "OpenError",
    "OpenResult",
    "OpenStatus",
    "PathError",
    "Repository",
    "RepositoryNotFoundError",
    "ReposyncError",
    "RevisionResolutionError",
    "RevisionStatus",
    "SyncAction",
    "WorktreeError",
    "bind",
    "setup_logging",
]
