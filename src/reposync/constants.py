from pathlib import Path

"""Global constants and configuration path definitions for reposync.

This module defines the application identifiers, the configuration file
locations, and the fixed Git conventions used when synchronizing a working copy.
"""

# --- Identity ---
APP_NAME = "reposync"
"""str: The application name, also used as the logger name."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/reposync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The global configuration file path."""

LOCAL_CONFIG_NAME = "reposync.toml"
"""str: The per-repository configuration file name."""

PYPROJECT_SECTION = "tool.reposync"
"""str: The pyproject.toml table holding per-repository configuration."""

# --- Git Conventions ---
DEFAULT_REMOTE = "origin"
"""str: The remote that pulls are made against."""

DEFAULT_CLONE_DEPTH = 10
"""int: Number of commits fetched by a shallow clone."""

SSH_USER = "git"
"""str: The protocol username used for SSH remotes."""

BRANCH_REF_PREFIX = "refs/heads/"
"""str: Prefix that turns a branch name into a fully qualified reference."""

ALREADY_EXISTS_MARKERS = (
    "already exists and is not an empty directory",
)
"""
tuple[str, ...]: Fragments of `git clone` stderr reporting that the
destination already holds content.
"""

NOT_A_REPO_MARKERS = (
    "not a git repository",
)
"""tuple[str, ...]: Fragments of git stderr reporting a missing repository."""
