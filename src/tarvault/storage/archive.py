import logging
import os
import tarfile

from pathlib import Path
from typing import BinaryIO

from tarvault.utils.errors import PipelineFailure

log = logging.getLogger(__name__)


def archive_name(source: str | Path) -> str:
    """Base name the source is stored under, e.g. ``notes`` for ``./notes/``."""
    return os.path.basename(os.path.normpath(os.path.abspath(source)))


def check_source(source: str | Path) -> None:
    if not os.path.lexists(source):
        raise PipelineFailure(f"cannot archive {source}: no such file or directory")
    if not os.access(source, os.R_OK):
        raise PipelineFailure(f"cannot archive {source}: permission denied")


def pack(source: str | Path, compress: bool, sink: BinaryIO) -> None:
    """Write a tar (or tar.gz) stream of ``source`` into ``sink``."""
    check_source(source)
    mode = "w|gz" if compress else "w|"
    name = archive_name(source)
    log.debug("archiving %s as %s (%s)", source, name, mode)
    try:
        with tarfile.open(fileobj=sink, mode=mode) as tar:
            tar.add(os.fspath(source), arcname=name, recursive=True)
    except (tarfile.TarError, OSError) as exc:
        raise PipelineFailure(f"archiving {source} failed: {exc}") from exc


def unpack(stream: BinaryIO, compressed: bool, dest: str | Path) -> None:
    mode = "r|gz" if compressed else "r|"
    log.debug("extracting into %s (%s)", dest, mode)
    try:
        with tarfile.open(fileobj=stream, mode=mode) as tar:
            tar.extractall(os.fspath(dest), filter="tar")
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise PipelineFailure(f"extracting archive failed: {exc}") from exc
