"""Shared fixtures: throwaway git remotes and SSH keys."""

import shutil
import subprocess
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def git(*args: str, cwd: Path) -> str:
    """Runs git with a fixed identity and returns stripped stdout."""
    res = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Reposync Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return res.stdout.strip()


def commit_file(work: Path, name: str, content: str) -> str:
    """Writes a file, commits it, and returns the new commit id."""
    (work / name).write_text(content)
    git("add", name, cwd=work)
    git("commit", "-m", f"Update {name}", cwd=work)
    return git("rev-parse", "HEAD", cwd=work)


class Remote:
    """A bare repository with a seeding clone used to publish new commits.

    Attributes:
        bare (Path): The bare repository.
        seed (Path): A working copy that pushes to `bare`.
        url (str): A file:// URL for `bare` (shallow clones honor depth).
    """

    def __init__(self, root: Path, branch: str = "main"):
        self.branch = branch
        self.bare = root / "remote.git"
        self.seed = root / "seed"
        self.url = self.bare.as_uri()

        git("init", "--bare", str(self.bare), cwd=root)
        git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=self.bare)

        git("init", str(self.seed), cwd=root)
        git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=self.seed)
        git("remote", "add", "origin", str(self.bare), cwd=self.seed)

    def publish(self, name: str, content: str) -> str:
        """Commits a file in the seed clone and pushes it to the remote."""
        sha = commit_file(self.seed, name, content)
        git("push", "origin", f"HEAD:refs/heads/{self.branch}", cwd=self.seed)
        return sha


@pytest.fixture
def remote(tmp_path: Path) -> Remote:
    """A remote whose `main` branch has a single commit."""
    r = Remote(tmp_path)
    r.publish("README.md", "hello\n")
    return r


@pytest.fixture
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture
def ed25519_openssh(ed25519_key: ed25519.Ed25519PrivateKey) -> bytes:
    """An unencrypted Ed25519 key in OpenSSH format."""
    return ed25519_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    )
