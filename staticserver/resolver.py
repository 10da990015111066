#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Request Resolver
----------------
Maps a request path onto the document root and classifies what is there.

The resolver only touches filesystem metadata and opens the target file;
it never writes to the client. Every outcome is one of the classes below
and is consumed straight away by the response dispatcher.
"""

import os
import stat
import logging
from dataclasses import dataclass
from typing import BinaryIO

from .utils import is_path_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Index:
    """An index candidate found for the root path."""
    path: str


@dataclass(frozen=True)
class NotFound:
    path: str


@dataclass(frozen=True)
class Directory:
    path: str


@dataclass(frozen=True)
class Forbidden:
    path: str


@dataclass(frozen=True)
class FileReady:
    """
    An opened regular file ready to be streamed.

    ``path`` is the URL path that was resolved, ``file`` the open binary
    handle. Use the outcome as a context manager so the handle is closed on
    every exit path.
    """
    path: str
    file: BinaryIO
    size: int
    mtime: float

    def close(self):
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()
        return False


def normalize_path(path):
    """Return the path with exactly one leading '/'."""
    if not path.startswith("/"):
        path = "/" + path
    return path


def join_root(root_directory, path):
    """Join a normalized URL path onto the document root."""
    return root_directory.rstrip("/") + normalize_path(path)


def find_index(settings):
    """
    Look for the first configured index file under the document root.

    Args:
        settings: ServerSettings

    Returns:
        Index: the first candidate that exists, or None
    """
    for candidate in settings.index_files:
        if os.path.exists(join_root(settings.root_directory, candidate)):
            return Index(normalize_path(candidate))
    return None


def resolve(path, settings):
    """
    Resolve a request path to an outcome.

    Args:
        path: Decoded URL path, possibly empty or without a leading '/'
        settings: ServerSettings

    Returns:
        NotFound, Directory, Forbidden or FileReady
    """
    if path in ("", "/"):
        index = find_index(settings)
        if index is not None:
            path = index.path

    path = normalize_path(path)
    target = join_root(settings.root_directory, path)

    if not is_path_safe(settings.root_directory, target):
        logger.debug(f"Path escapes document root: {path}")
        return Forbidden(path)

    try:
        st = os.stat(target)
    except FileNotFoundError:
        return NotFound(path)
    except NotADirectoryError:
        return NotFound(path)
    except ValueError:
        # embedded NUL byte
        return NotFound(path)
    except OSError as e:
        logger.debug(f"Cannot stat {target}: {e}")
        return Forbidden(path)

    if stat.S_ISDIR(st.st_mode):
        return Directory(target)

    try:
        f = open(target, "rb")
    except OSError as e:
        logger.debug(f"Cannot open {target}: {e}")
        return Forbidden(path)

    return FileReady(path, f, st.st_size, st.st_mtime)
