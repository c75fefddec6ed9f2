#!/usr/bin/env python3
"""
tarvault - a personal vault of encrypted tar archives

Each stored item is one file directly inside the vault directory:

  vault/
    <key>.tar.gpg        # tar archive, OpenPGP symmetric (AES-256)
    <key>.tar.gz.gpg     # same, gzip-compressed before encryption

There is no index: the directory listing is the catalog. Files can be
opened without this tool (``gpg -d notes.tar.gz.gpg | tar xz``).

Commands:
  -e PATH     Store PATH (file or directory) under its base name or -k KEY
  -d KEY      Decrypt and extract KEY into the current directory
  -l [KEY]    List keys, or only KEY if given
  -h          Usage

Security choices:
  - gpg backend: the gpg utility, passphrase via pipe or pinentry;
    gpg-agent's cache is cleared after every run (TARVAULT_CLEAR_CACHE)
  - native backend: RFC 4880 SKESK + SEIPD/MDC via cryptography.hazmat,
    byte-compatible with gpg --symmetric --cipher-algo AES256
"""
import sys

from typing import Mapping

from tarvault import crypto
from tarvault.storage.vault import ensure_vault_dir
from tarvault.ui.cli import USAGE, parse_options
from tarvault.utils.core import cmd_list, cmd_retrieve, cmd_store
from tarvault.utils.dataModels import Mode
from tarvault.utils.errors import UsageError, VaultError
from tarvault.utils.helper import load_config, setup_logging
from tarvault.utils.validate import resolve_mode, validate

HANDLERS = {
    Mode.STORE: cmd_store,
    Mode.RETRIEVE: cmd_retrieve,
    Mode.ENUMERATE: cmd_list,
}


def run(argv: list[str], environ: Mapping[str, str] | None = None) -> int:
    if not argv:
        print(USAGE, end="", file=sys.stderr)
        return 1
    try:
        opts = parse_options(argv)
        setup_logging(opts.verbose)
        mode = resolve_mode(opts)
        if mode is Mode.HELP:
            print(USAGE, end="")
            return 0
        validate(mode, opts)
        config = load_config(environ)
        if mode is not Mode.ENUMERATE:
            crypto.require_tools(config)
        ensure_vault_dir(config.vault_dir)
        HANDLERS[mode](opts, config)
    except UsageError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        print(USAGE, end="", file=sys.stderr)
        return exc.exit_code
    except VaultError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return exc.exit_code
    except OSError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0


def main():
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
