import enum

from dataclasses import dataclass
from pathlib import Path

DEFAULT_VAULT_DIR = Path.home() / ".tarvault"
DEFAULT_GPG = "gpg"
DEFAULT_GPG_AGENT = "gpg-connect-agent"

BACKEND_GPG = "gpg"
BACKEND_NATIVE = "native"
BACKENDS = (BACKEND_GPG, BACKEND_NATIVE)

# Values of TARVAULT_CLEAR_CACHE that turn cache invalidation off
FALSE_VALUES = ("0", "false", "no", "off")


class Mode(enum.Enum):
    STORE = "store"
    RETRIEVE = "retrieve"
    ENUMERATE = "enumerate"
    HELP = "help"


@dataclass(frozen=True)
class Options:
    """Everything the command line asked for. Built once, never mutated."""
    store: bool = False
    retrieve: bool = False
    enumerate: bool = False
    help: bool = False
    compress: bool = False
    remove_original: bool = False
    key: str | None = None
    passphrase: str | None = None
    item: str | None = None
    verbose: bool = False


@dataclass(frozen=True)
class Config:
    vault_dir: Path = DEFAULT_VAULT_DIR
    clear_cache: bool = True
    backend: str = BACKEND_GPG
    gpg: str = DEFAULT_GPG
    gpg_agent: str = DEFAULT_GPG_AGENT
