import io
import os
import shutil
import subprocess

import pytest

from tarvault.storage.archive import pack
from tarvault.ui.cli import USAGE, parse_options
from tarvault.utils.dataModels import Config, Options
from tarvault.utils.errors import UsageError
from tarvault.utils.helper import load_config
from tarvault.vault import run

needs_gpg = pytest.mark.skipif(shutil.which("gpg") is None, reason="gpg not installed")


@pytest.fixture
def env(tmp_path):
    return {"TARVAULT_DIR": str(tmp_path / "vault"), "TARVAULT_BACKEND": "native"}


def test_no_arguments(capsys):
    assert run([]) == 1
    assert "usage:" in capsys.readouterr().err


def test_help(capsys):
    assert run(["-h"]) == 0
    assert capsys.readouterr().out == USAGE


def test_help_wins_over_other_flags(capsys, env, tmp_path):
    assert run(["-h", "-e", "-d", "x"], env) == 0
    assert not (tmp_path / "vault").exists()


def test_parse_options():
    assert parse_options(["-ez", "-k", "diary", "-p", "pw", "./notes"]) == Options(
        store=True, compress=True, key="diary", passphrase="pw", item="./notes"
    )


@pytest.mark.parametrize("argv", [
    ["-e", "-d", "x"],
    ["-d", "-z", "x"],
    ["-d", "-k", "k", "x"],
    ["-l", "-r"],
    ["-e"],
    ["-d"],
    ["-z", "x"],
    ["-e", "a", "b"],
    ["-x"],
    ["-e", "-k"],
])
def test_usage_errors(argv, env, tmp_path, capsys):
    assert run(argv, env) == 1
    err = capsys.readouterr().err
    assert err.startswith("[!] ")
    assert "usage:" in err
    # rejected before anything touched the filesystem
    assert not (tmp_path / "vault").exists()


def test_parser_errors_raise_usage_error():
    with pytest.raises(UsageError):
        parse_options(["--bogus"])


def test_example_session(env, notes, tmp_path, monkeypatch, capsys, tree):
    monkeypatch.chdir(notes.parent)
    assert run(["-e", "-z", "-k", "diary", "-p", "secret", "./notes"], env) == 0
    assert os.listdir(env["TARVAULT_DIR"]) == ["diary.tar.gz.gpg"]
    capsys.readouterr()

    assert run(["-l"], env) == 0
    assert capsys.readouterr().out.split() == ["diary"]

    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    assert run(["-d", "-p", "secret", "diary"], env) == 0
    assert tree(work / "notes") == tree(notes)


def test_list_filter(env, capsys, tmp_path):
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "one.tar.gpg").write_bytes(b"")
    (vault / "two.tar.gz.gpg").write_bytes(b"")
    assert run(["-l", "two"], env) == 0
    assert capsys.readouterr().out == "two\n"


def test_list_creates_vault(env, tmp_path, capsys):
    assert run(["-l"], env) == 0
    assert (tmp_path / "vault").is_dir()
    assert capsys.readouterr().out == ""


def test_retrieve_not_found(env, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    before = sorted(os.listdir(tmp_path))
    assert run(["-d", "-p", "secret", "nothing"], env) == 1
    assert "no vault entry" in capsys.readouterr().err
    assert sorted(os.listdir(tmp_path)) == sorted(before + ["vault"])


def test_missing_gpg(env, notes, tmp_path, capsys):
    env = dict(env, TARVAULT_BACKEND="gpg", TARVAULT_GPG=str(tmp_path / "no-gpg"))
    assert run(["-e", "-p", "secret", str(notes)], env) == 1
    assert "required tool not found" in capsys.readouterr().err
    assert not (tmp_path / "vault").exists()


def test_store_root_without_key(env, tmp_path, capsys):
    assert run(["-e", "-p", "secret", "/"], env) == 1
    assert "pass one with -k" in capsys.readouterr().err
    assert os.listdir(tmp_path / "vault") == []


def test_shadow_warning_goes_to_stderr(env, notes, capsys):
    assert run(["-e", "-p", "secret", str(notes)], env) == 0
    capsys.readouterr()
    assert run(["-e", "-z", "-p", "secret", str(notes)], env) == 0
    out, err = capsys.readouterr()
    assert "[!] notes.tar.gpg already exists" in err
    assert "already exists" not in out


@needs_gpg
def test_gpg_backend_session(env, notes, tmp_path, monkeypatch, tree, gnupg_home):
    env = dict(env, TARVAULT_BACKEND="gpg")
    assert run(["-e", "-z", "-p", "secret", str(notes)], env) == 0
    assert os.listdir(env["TARVAULT_DIR"]) == ["notes.tar.gz.gpg"]
    # the stored file is real OpenPGP, not a plain gzip stream
    assert not (tmp_path / "vault" / "notes.tar.gz.gpg").read_bytes().startswith(b"\x1f\x8b")

    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    assert run(["-d", "-p", "secret", "notes"], env) == 0
    assert tree(work / "notes") == tree(notes)


@needs_gpg
def test_native_backend_reads_gpg_files(env, notes, tmp_path, monkeypatch, tree, gnupg_home):
    vault = tmp_path / "vault"
    vault.mkdir()
    archive = io.BytesIO()
    pack(notes, True, archive)
    # --rfc4880 keeps gpg >= 2.3 from writing AEAD packets
    result = subprocess.run(
        ["gpg", "--batch", "--quiet", "--rfc4880", "--pinentry-mode", "loopback",
         "--passphrase", "secret", "--symmetric", "--cipher-algo", "AES256",
         "--output", str(vault / "notes.tar.gz.gpg")],
        input=archive.getvalue(),
        capture_output=True,
        timeout=120,
    )
    assert result.returncode == 0, result.stderr

    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    assert run(["-d", "-p", "secret", "notes"], env) == 0
    assert tree(work / "notes") == tree(notes)


def test_bad_backend(env, notes, capsys):
    assert run(["-e", str(notes)], dict(env, TARVAULT_BACKEND="rot13")) == 1
    assert "TARVAULT_BACKEND" in capsys.readouterr().err


def test_pipeline_failure_exit_status(env, tmp_path, capsys):
    assert run(["-e", "-p", "secret", str(tmp_path / "missing")], env) == 1
    assert "cannot archive" in capsys.readouterr().err


def test_load_config(tmp_path):
    assert load_config({}) == Config()
    cfg = load_config({
        "TARVAULT_DIR": str(tmp_path),
        "TARVAULT_CLEAR_CACHE": "Off",
        "TARVAULT_BACKEND": "NATIVE",
        "TARVAULT_GPG": "gpg2",
    })
    assert cfg == Config(vault_dir=tmp_path, clear_cache=False, backend="native", gpg="gpg2")
