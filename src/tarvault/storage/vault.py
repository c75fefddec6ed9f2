import logging
import os

from pathlib import Path
from typing import Iterator, Tuple

from tarvault.storage.naming import strip_suffix

log = logging.getLogger(__name__)


def ensure_vault_dir(path: Path) -> Path:
    path = Path(path)
    if not path.is_dir():
        log.debug("creating vault directory %s", path)
        path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path


def list_entries(vault_dir: Path) -> Iterator[Tuple[str, bool]]:
    """Yield (key, compressed) for every recognised entry, in listing order."""
    with os.scandir(vault_dir) as it:
        for entry in it:
            if not entry.is_file():
                continue
            parsed = strip_suffix(entry.name)
            if parsed is None:
                log.debug("ignoring %s", entry.name)
                continue
            yield parsed
