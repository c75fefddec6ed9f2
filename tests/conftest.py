import logging
import shutil
import subprocess

import pytest

from tarvault.utils.dataModels import BACKEND_NATIVE, Config


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("tarvault")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def vault_dir(tmp_path):
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def native_config(vault_dir):
    return Config(vault_dir=vault_dir, clear_cache=False, backend=BACKEND_NATIVE)


@pytest.fixture
def notes(tmp_path):
    """A small directory tree to store."""
    root = tmp_path / "src" / "notes"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "a.txt").write_text("first note\n")
    (root / "sub" / "b.bin").write_bytes(bytes(range(256)) * 300)
    (root / "sub" / "deeper" / "empty").write_bytes(b"")
    return root


@pytest.fixture
def tree():
    """Snapshot a directory as {relative path: contents or None for dirs}."""
    def snapshot(root):
        return {
            p.relative_to(root).as_posix(): (p.read_bytes() if p.is_file() else None)
            for p in sorted(root.rglob("*"))
        }
    return snapshot


@pytest.fixture
def gnupg_home(tmp_path, monkeypatch):
    """A throwaway GNUPGHOME so real gpg runs never touch the user's keyring."""
    home = tmp_path / "gnupg"
    home.mkdir(mode=0o700)
    monkeypatch.setenv("GNUPGHOME", str(home))
    yield home
    if shutil.which("gpgconf"):
        subprocess.run(["gpgconf", "--kill", "gpg-agent"], check=False, timeout=30)
