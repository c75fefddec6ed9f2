"""Encryption adapter: picks the configured backend and clears gpg-agent's
passphrase cache once a stream is finished."""
from contextlib import contextmanager

from tarvault.crypto import gpg, openpgp
from tarvault.utils.dataModels import BACKEND_GPG, Config


def require_tools(config: Config) -> None:
    if config.backend == BACKEND_GPG:
        gpg.require_tools(config)


@contextmanager
def _clearing_cache(config: Config):
    try:
        yield
    finally:
        if config.clear_cache and config.backend == BACKEND_GPG:
            gpg.clear_agent_cache(config.gpg_agent)


@contextmanager
def encrypt_stream(config: Config, path, passphrase: str | None = None):
    with _clearing_cache(config):
        if config.backend == BACKEND_GPG:
            opener = gpg.encrypt_to(path, passphrase, gpg=config.gpg)
        else:
            opener = openpgp.encrypt_to(path, passphrase)
        with opener as sink:
            yield sink


@contextmanager
def decrypt_stream(config: Config, path, passphrase: str | None = None):
    with _clearing_cache(config):
        if config.backend == BACKEND_GPG:
            opener = gpg.decrypt_from(path, passphrase, gpg=config.gpg)
        else:
            opener = openpgp.decrypt_from(path, passphrase)
        with opener as source:
            yield source
