import logging
import os
import shutil
import sys

from pathlib import Path

from tarvault import crypto
from tarvault.storage.archive import archive_name, check_source, pack, unpack
from tarvault.storage.naming import build_storage_name, resolve_storage_file
from tarvault.storage.vault import list_entries
from tarvault.utils.dataModels import Config, Options
from tarvault.utils.errors import NotFound, UsageError

log = logging.getLogger(__name__)


def cmd_store(opts: Options, config: Config) -> Path:
    src = opts.item
    check_source(src)
    key = opts.key if opts.key is not None else archive_name(src)
    if not key:
        raise UsageError(f"cannot derive a key from {src!r}; pass one with -k")
    out = Path(config.vault_dir) / build_storage_name(key, opts.compress)

    # Retrieve checks the plain suffix first, so a compressed copy can be hidden
    other = Path(config.vault_dir) / build_storage_name(key, not opts.compress)
    if other.exists():
        shadow = other if opts.compress else out
        print(f"[!] {other.name} already exists; retrieving {key} will return {shadow.name}", file=sys.stderr)

    with crypto.encrypt_stream(config, out, opts.passphrase) as sink:
        pack(src, opts.compress, sink)
    print(f"[+] Stored {src} as {key} -> {out}")

    # Only reached when both archiving and encryption succeeded
    if opts.remove_original:
        if os.path.isdir(src) and not os.path.islink(src):
            shutil.rmtree(src)
        else:
            os.remove(src)
        print(f"[+] Removed original {src}")
    return out


def cmd_retrieve(opts: Options, config: Config, dest: Path | None = None) -> Path:
    key = opts.item
    found = resolve_storage_file(config.vault_dir, key)
    if found is None:
        raise NotFound(f"no vault entry for key {key!r}")
    path, compressed = found
    dest = Path.cwd() if dest is None else Path(dest)
    log.debug("retrieving %s (compressed=%s) into %s", path, compressed, dest)

    with crypto.decrypt_stream(config, path, opts.passphrase) as source:
        unpack(source, compressed, dest)
    print(f"[+] Retrieved {key} into {dest}")
    return dest


def cmd_list(opts: Options, config: Config) -> list[str]:
    wanted = opts.item or ""
    keys = [key for key, _ in list_entries(config.vault_dir) if not wanted or key == wanted]
    for key in keys:
        print(key)
    return keys
