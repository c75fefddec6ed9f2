import getpass
import logging
import os
import sys

from pathlib import Path
from typing import Mapping

from tarvault.utils.dataModels import (
    BACKENDS,
    DEFAULT_GPG,
    DEFAULT_GPG_AGENT,
    DEFAULT_VAULT_DIR,
    FALSE_VALUES,
    Config,
)
from tarvault.utils.errors import PipelineFailure, UsageError

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    env = os.environ if environ is None else environ
    backend = env.get("TARVAULT_BACKEND", BACKENDS[0]).strip().lower()
    if backend not in BACKENDS:
        raise UsageError(f"unknown TARVAULT_BACKEND {backend!r} (expected one of {', '.join(BACKENDS)})")
    vault_dir = env.get("TARVAULT_DIR")
    clear = env.get("TARVAULT_CLEAR_CACHE", "1").strip().lower()
    return Config(
        vault_dir=Path(vault_dir).expanduser() if vault_dir else DEFAULT_VAULT_DIR,
        clear_cache=clear not in FALSE_VALUES,
        backend=backend,
        gpg=env.get("TARVAULT_GPG") or DEFAULT_GPG,
        gpg_agent=env.get("TARVAULT_GPG_AGENT") or DEFAULT_GPG_AGENT,
    )


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a single stderr handler to the package logger."""
    logger = logging.getLogger("tarvault")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    return logger


def ask_passphrase(confirm: bool = False) -> str:
    passphrase = getpass.getpass("Passphrase: ")
    if confirm and getpass.getpass("Repeat passphrase: ") != passphrase:
        raise PipelineFailure("passphrases do not match")
    return passphrase
