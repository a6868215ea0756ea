"""
archiver.py

Responsibility: package a built binary (plus optional license/readme) into a `.tar.gz`.

Members are stored flat, under their base names, in the order they were given.
"""

from __future__ import annotations

import gzip
import logging
import os
import stat
import tarfile
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

AUX_FILES = ("LICENSE", "README.md")


def add_file(tar: tarfile.TarFile, path: str | Path, *, optional: bool = False) -> bool:
    """
    Add `path` to `tar` keeping its size, permission bits and mtime.

    With `optional=True` a file that does not exist is skipped and False is
    returned; any other error (e.g. permission denied) still propagates.
    """
    path = Path(path)
    try:
        fh = path.open("rb")
    except FileNotFoundError:
        if optional:
            logger.debug("Skipping missing optional file %s", path)
            return False
        raise

    with fh:
        st = os.fstat(fh.fileno())
        info = tarfile.TarInfo(name=path.name)
        info.size = st.st_size
        info.mode = stat.S_IMODE(st.st_mode)
        info.mtime = int(st.st_mtime)
        tar.addfile(info, fh)
    return True


def package(archive_path: str | Path, primary: str | Path, aux_files: Iterable[str | Path] = ()) -> None:
    """
    Write `archive_path` (truncating it) containing `primary` then each existing aux file.

    A missing `primary` is an error; missing aux files are not.
    """
    archive_path = Path(archive_path)
    # Closed innermost first: tar writer, gzip stream, file.
    with archive_path.open("wb") as raw:
        with gzip.GzipFile(fileobj=raw, mode="wb") as gz:
            with tarfile.open(fileobj=gz, mode="w") as tar:
                add_file(tar, primary)
                for aux in aux_files:
                    add_file(tar, aux, optional=True)
    logger.info("Created archive %s", archive_path)
