# Copyright Red Hat
#
# hsync/match/treewalk.py - Hierarchy synchronizer tree walk
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree walking support for the content matcher.
"""
from typing import Iterator, NamedTuple, Optional, Tuple
from fnmatch import fnmatch
from enum import Enum
import logging
import stat
import os

from hsync import HSYNC_SUBSYSTEM_SCAN, HsyncPathError

from .options import SyncOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_scan(msg, *args, **kwargs):
    """A wrapper for scan subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_SCAN}, **kwargs)


class FileKind(Enum):
    """
    Enum for the kinds of tree entry reported by ``TreeWalker``.
    """

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symbolic link"
    OTHER = "other"

    @classmethod
    def from_mode(cls, mode: int) -> "FileKind":
        """
        Map an ``st_mode`` value to a ``FileKind``.

        :param mode: The mode returned by ``lstat()``.
        :type mode: ``int``
        :returns: The corresponding ``FileKind``.
        :rtype: ``FileKind``
        """
        if stat.S_ISREG(mode):
            return cls.FILE
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        return cls.OTHER


class TreeEntry(NamedTuple):
    """
    A single entry discovered while walking a tree.
    """

    #: Path relative to the tree root
    path: str
    #: Entry kind from ``lstat()``
    kind: FileKind
    #: Size in bytes from ``lstat()``
    size: int

    @property
    def is_candidate(self) -> bool:
        """
        True if this entry takes part in content matching: only non-empty
        regular files are scanned.
        """
        return self.kind == FileKind.FILE and self.size > 0


def check_root(root: str):
    """
    Verify that ``root`` is a readable directory.

    :param root: The tree root to check.
    :type root: ``str``
    :raises ``HsyncPathError``: If ``root`` is not an accessible directory.
    """
    try:
        root_stat = os.stat(root)
    except OSError as err:
        raise HsyncPathError(f"Cannot access tree root '{root}': {err}") from err
    if not stat.S_ISDIR(root_stat.st_mode):
        raise HsyncPathError(f"Tree root '{root}' is not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise HsyncPathError(f"Tree root '{root}' is not readable")


class TreeWalker:
    """
    Simple file system tree walker producing root-relative entries.
    """

    def __init__(self, options: Optional[SyncOptions] = None):
        """
        Initialise a new ``TreeWalker`` object.

        :param options: Options to control this ``TreeWalker`` instance.
        :type options: ``SyncOptions``
        """
        self.options: SyncOptions = options or SyncOptions()
        self.exclude_patterns: Tuple[str, ...] = self.options.exclude_patterns

    def _excluded(self, rel_path: str) -> bool:
        """
        Return ``True`` if ``rel_path`` or its base name matches one of the
        configured exclude patterns.
        """
        name = os.path.basename(rel_path)
        return any(
            fnmatch(rel_path, pat) or fnmatch(name, pat)
            for pat in self.exclude_patterns
        )

    def walk(self, root: str) -> Iterator[TreeEntry]:
        """
        Walk the tree below ``root`` and lazily yield ``TreeEntry`` objects
        for every entry found, in a deterministic order.

        Symbolic links are reported but never followed. Directories that
        cannot be listed are logged and skipped. The root is checked when
        ``walk()`` is called, before the first entry is requested.

        :param root: The tree root to walk.
        :type root: ``str``
        :returns: An iterator over the entries below ``root``.
        :rtype: ``Iterator[TreeEntry]``
        :raises ``HsyncPathError``: If ``root`` is not an accessible directory.
        """
        check_root(root)
        _log_info("Walking tree '%s'", root)
        return self._walk(root)

    def _walk(self, root: str) -> Iterator[TreeEntry]:
        def _onerror(err: OSError):
            _log_error("Cannot read directory '%s': %s", err.filename, err.strerror)

        for dirpath, dirs, files in os.walk(root, onerror=_onerror):
            rel_dir = os.path.relpath(dirpath, root)
            rel_dir = "" if rel_dir == os.curdir else rel_dir

            # Prune excluded directories and fix the visiting order.
            if self.exclude_patterns:
                dirs[:] = [
                    d for d in dirs if not self._excluded(os.path.join(rel_dir, d))
                ]
            dirs.sort()
            file_names = set(files)

            for name in sorted(dirs + files):
                rel_path = os.path.join(rel_dir, name)
                if (
                    self.exclude_patterns
                    and name in file_names
                    and self._excluded(rel_path)
                ):
                    _log_debug_scan("Excluding '%s'", rel_path)
                    continue
                try:
                    path_stat = os.lstat(os.path.join(dirpath, name))
                except FileNotFoundError:
                    _log_debug_scan("Path '%s' vanished during walk", rel_path)
                    continue
                except OSError as err:
                    _log_error("Cannot stat '%s': %s", rel_path, err.strerror)
                    continue
                yield TreeEntry(
                    rel_path, FileKind.from_mode(path_stat.st_mode), path_stat.st_size
                )
