"""Mapping between logical keys and storage filenames.

A vault entry is ``<key>.tar.gpg`` (plain) or ``<key>.tar.gz.gpg``
(compressed). The two suffixes are disjoint, so ``strip_suffix`` is the
exact inverse of ``build_storage_name``.
"""
import enum

from pathlib import Path
from typing import Optional, Tuple


class Compression(enum.Enum):
    PLAIN = ".tar.gpg"
    COMPRESSED = ".tar.gz.gpg"

    @property
    def suffix(self) -> str:
        return self.value

    @property
    def compressed(self) -> bool:
        return self is Compression.COMPRESSED

    @classmethod
    def of(cls, compress: bool) -> "Compression":
        return cls.COMPRESSED if compress else cls.PLAIN


# Retrieve looks for the plain file first
PROBE_ORDER = (Compression.PLAIN, Compression.COMPRESSED)


def build_storage_name(key: str, compress: bool) -> str:
    # key is used as-is; a "/" in it ends up in the path
    return key + Compression.of(compress).suffix


def resolve_storage_file(vault_dir: Path, key: str) -> Optional[Tuple[Path, bool]]:
    for kind in PROBE_ORDER:
        candidate = Path(vault_dir) / (key + kind.suffix)
        if candidate.is_file():
            return candidate, kind.compressed
    return None


def strip_suffix(filename: str) -> Optional[Tuple[str, bool]]:
    for kind in (Compression.COMPRESSED, Compression.PLAIN):
        if filename.endswith(kind.suffix):
            key = filename[: -len(kind.suffix)]
            if key:
                return key, kind.compressed
    return None
