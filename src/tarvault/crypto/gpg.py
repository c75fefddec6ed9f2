"""Encryption through the external ``gpg`` utility."""
import logging
import os
import shutil
import subprocess

from contextlib import contextmanager

from tarvault.utils.dataModels import Config
from tarvault.utils.errors import MissingDependency, PipelineFailure

log = logging.getLogger(__name__)

DRAIN_SIZE = 64 * 1024


def require_tools(config: Config) -> None:
    if shutil.which(config.gpg) is None:
        raise MissingDependency(f"required tool not found: {config.gpg}")


@contextmanager
def _passphrase_fd(passphrase: str | None):
    """Yield (extra gpg args, fds to pass, send) for a non-interactive passphrase.

    The passphrase travels through a pipe so it never shows up in argv.
    ``send()`` must be called once gpg is running: the pipe only drains
    while gpg reads it.
    """
    if passphrase is None:
        yield [], (), lambda: None
        return
    r, w = os.pipe()

    def send():
        nonlocal r, w
        # gpg holds its own copy of r; dropping ours lets a dead gpg surface as EPIPE
        os.close(r)
        r = None
        fh = os.fdopen(w, "wb")
        w = None
        try:
            fh.write(passphrase.encode("utf-8"))
        except BrokenPipeError:
            log.debug("gpg closed the passphrase pipe early")
        finally:
            _close(fh)

    try:
        yield ["--batch", "--pinentry-mode", "loopback", "--passphrase-fd", str(r)], (r,), send
    finally:
        if r is not None:
            os.close(r)
        if w is not None:
            os.close(w)


def _failure(proc: subprocess.Popen, what: str) -> PipelineFailure:
    return PipelineFailure(f"gpg {what} failed with status {proc.returncode}")


@contextmanager
def encrypt_to(path, passphrase: str | None = None, gpg: str = "gpg"):
    with _passphrase_fd(passphrase) as (extra, fds, send):
        cmd = [gpg, "--symmetric", "--cipher-algo", "AES256", "--yes", *extra, "--output", os.fspath(path)]
        log.debug("running %s", cmd[:5])
        proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, pass_fds=fds)
        send()
    try:
        yield proc.stdin
    except Exception:
        _close(proc.stdin)
        if proc.wait():
            raise _failure(proc, "encryption")
        raise
    _close(proc.stdin)
    if proc.wait():
        raise _failure(proc, "encryption")


@contextmanager
def decrypt_from(path, passphrase: str | None = None, gpg: str = "gpg"):
    with _passphrase_fd(passphrase) as (extra, fds, send):
        cmd = [gpg, "--decrypt", "--quiet", *extra, os.fspath(path)]
        log.debug("running %s", cmd[:3])
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, pass_fds=fds)
        send()
    try:
        yield proc.stdout
        # tar stops at its end-of-archive marker; let gpg finish writing
        while proc.stdout.read(DRAIN_SIZE):
            pass
    except Exception:
        _close(proc.stdout)
        if proc.wait():
            raise _failure(proc, "decryption")
        raise
    _close(proc.stdout)
    if proc.wait():
        raise _failure(proc, "decryption")


def _close(stream) -> None:
    try:
        stream.close()
    except BrokenPipeError:
        pass


def clear_agent_cache(agent: str = "gpg-connect-agent") -> bool:
    """Make gpg-agent forget cached passphrases. Returns True if it ran."""
    if shutil.which(agent) is None:
        log.debug("%s not found, passphrase cache left alone", agent)
        return False
    result = subprocess.run(
        [agent, "reloadagent", "/bye"],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    if result.returncode:
        log.warning("%s exited with status %s; passphrase cache may still be warm", agent, result.returncode)
    return True
