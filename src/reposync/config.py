import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_CLONE_DEPTH,
    DEFAULT_REMOTE,
    LOCAL_CONFIG_NAME,
    PYPROJECT_SECTION,
    SSH_USER,
)

logger = logging.getLogger(APP_NAME)


def parse_depth(value: int | str) -> int:
    """Validates a clone depth, accepting integers or numeric strings."""
    if isinstance(value, bool) or (
        isinstance(value, float) and not value.is_integer()
    ):
        raise ValueError(f"Invalid depth '{value}'")
    try:
        depth = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid depth '{value}'") from None
    if depth < 1:
        raise ValueError(f"Invalid depth '{value}'")
    return depth


def _parse_options(value: Any) -> list[str]:
    """Validates extra ssh options, which must be a list of strings."""
    if not isinstance(value, list) or not all(isinstance(o, str) for o in value):
        raise ValueError(f"Expected a list of strings, got '{value}'")
    return value


_SECTIONS = ("clone", "remote", "ssh", "git")
_BOOL_KEYS = ("progress", "batch_mode")
_STR_KEYS = (
    "name",
    "ssh_user",
    "strict_host_key_checking",
    "known_hosts_file",
    "executable",
)


@dataclass
class CloneConfig:
    """Clone behavior settings.

    Attributes:
        depth (int): Number of commits fetched by the shallow clone.
        progress (bool): Whether to show a console spinner during network operations.
    """

    depth: int = DEFAULT_CLONE_DEPTH
    progress: bool = False


@dataclass
class RemoteConfig:
    """Remote settings.

    Attributes:
        name (str): The remote that pulls are made against.
        ssh_user (str): The protocol username bound into SSH credentials.
    """

    name: str = DEFAULT_REMOTE
    ssh_user: str = SSH_USER


@dataclass
class SshConfig:
    """SSH transport settings used when git reaches the remote.

    Attributes:
        batch_mode (bool): Fail instead of prompting for passphrases or passwords.
        strict_host_key_checking (str): Value for the StrictHostKeyChecking option.
        known_hosts_file (str | None): Alternate known_hosts file, if any.
        options (list[str]): Extra ``-o`` options (appended across layers).
    """

    batch_mode: bool = True
    strict_host_key_checking: str = "yes"
    known_hosts_file: str | None = None
    options: list[str] = field(default_factory=list)


@dataclass
class GitConfig:
    """Git client settings.

    Attributes:
        executable (str): The git executable to invoke.
    """

    executable: str = "git"


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        clone (CloneConfig): Clone settings.
        remote (RemoteConfig): Remote settings.
        ssh (SshConfig): SSH transport settings.
        git (GitConfig): Git client settings.
    """

    clone: CloneConfig = field(default_factory=CloneConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    ssh: SshConfig = field(default_factory=SshConfig)
    git: GitConfig = field(default_factory=GitConfig)

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and local sources.

        Args:
            repo_path (Path | None): A directory to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        instance = cls()
        if CONFIG_FILE.exists():
            instance._merge_from_file(CONFIG_FILE)

        if repo_path:
            local_toml = repo_path / LOCAL_CONFIG_NAME
            pyproject = repo_path / "pyproject.toml"

            if local_toml.exists():
                instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance._merge_from_file(pyproject, section=PYPROJECT_SECTION)

        return instance

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.reposync').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {}) if isinstance(data, dict) else {}

            if not data or not isinstance(data, dict):
                return

            for name in _SECTIONS:
                if name not in data:
                    continue
                updates = data[name]
                if not isinstance(updates, dict):
                    logger.warning(
                        f"Config error in {path}: [{name}] must be a table. Ignoring."
                    )
                    continue

                if name == "ssh":
                    # Options accumulate across layers instead of being replaced.
                    updates = dict(updates)
                    new_options = updates.pop("options", [])
                    self.ssh = self._update_dataclass(name, self.ssh, updates)
                    try:
                        new_options = _parse_options(new_options)
                    except ValueError as e:
                        logger.warning(f"Config error in [ssh].options: {e}. Ignoring.")
                        new_options = []
                    if new_options:
                        merged = list(dict.fromkeys([*self.ssh.options, *new_options]))
                        self.ssh = replace(self.ssh, options=merged)
                else:
                    current = getattr(self, name)
                    setattr(self, name, self._update_dataclass(name, current, updates))

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and unparseable values."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "depth":
                    filtered_updates[k] = parse_depth(v)
                elif k in _BOOL_KEYS and not isinstance(v, bool):
                    raise ValueError(f"Expected a boolean, got '{v}'")
                elif k in _STR_KEYS and not isinstance(v, str):
                    raise ValueError(f"Expected a string, got '{v}'")
                elif k == "options":
                    filtered_updates[k] = _parse_options(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. "
                    "Falling back to default."
                )

        return replace(instance, **filtered_updates)
