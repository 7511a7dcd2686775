# Copyright Red Hat
#
# hsync/rename/relation.py - Hierarchy synchronizer rename relation
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
The ``oldpath -> newpath`` relation of renames to apply to a TARGET tree.
"""
from typing import Dict, Iterator, Mapping, Optional, Tuple
from collections import defaultdict
import logging
import os

from hsync import HSYNC_SUBSYSTEM_RENAME
from hsync.match.table import FingerprintTable

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_rename(msg, *args, **kwargs):
    """A wrapper for rename subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_RENAME}, **kwargs)


def _escapes_root(path: str) -> bool:
    """
    Return ``True`` if ``path`` is absolute or leaves its tree root.
    """
    if os.path.isabs(path):
        return True
    norm = os.path.normpath(path)
    return norm == os.pardir or norm.startswith(os.pardir + os.sep)


class RenameRelation:
    """
    A set of ``oldpath -> newpath`` renames together with the inverse
    mapping needed to walk chains backward. Paths are relative to the
    TARGET root. No-op renames are never stored.
    """

    def __init__(self, forward: Optional[Mapping[str, str]] = None):
        """
        Initialise a new ``RenameRelation``.

        :param forward: An optional initial ``oldpath -> newpath`` mapping.
        :type forward: ``Optional[Mapping[str, str]]``
        """
        #: Mapping of oldpath to newpath
        self.forward: Dict[str, str] = {}
        #: Mapping of newpath to oldpath
        self.reverse: Dict[str, str] = {}
        for oldpath, newpath in (forward or {}).items():
            self.add(oldpath, newpath)

    def __len__(self) -> int:
        return len(self.forward)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self.forward.items()))

    def __repr__(self):
        return f"RenameRelation(<{len(self)} renames>)"

    def add(self, oldpath: str, newpath: str):
        """
        Add the rename ``oldpath -> newpath`` unless it is a no-op.

        :param oldpath: The current path of the file.
        :type oldpath: ``str``
        :param newpath: The path the file should be renamed to.
        :type newpath: ``str``
        """
        if oldpath == newpath:
            return
        self.forward[oldpath] = newpath
        self.reverse[newpath] = oldpath

    def to_dict(self) -> Dict[str, str]:
        """
        Return this relation as a plain ``oldpath -> newpath`` dictionary
        sorted by ``oldpath``, suitable for encoding as JSON.

        :rtype: ``Dict[str, str]``
        """
        return dict(sorted(self.forward.items()))

    @classmethod
    def from_table(cls, table: FingerprintTable) -> "RenameRelation":
        """
        Build the rename relation from a resolved fingerprint table.

        Every entry with a matched target whose path differs from its
        source path contributes ``target.path -> source.path``.

        :param table: The fingerprint table after both scans.
        :type table: ``FingerprintTable``
        :returns: A new ``RenameRelation``.
        :rtype: ``RenameRelation``
        """
        relation = cls()
        for source, target in table.matches():
            relation.add(target.path, source.path)
        _log_info("Found %d renames", len(relation))
        return relation

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, str], target_root: str
    ) -> "RenameRelation":
        """
        Build the rename relation from a replayed preview document and
        revalidate it against the current state of ``target_root``.

        Pairs are dropped when old and new paths are identical, when
        ``oldpath`` does not exist below ``target_root``, when either path
        is absolute or leaves the tree, and when several pairs share the
        same ``newpath``.

        :param mapping: An ``oldpath -> newpath`` mapping.
        :type mapping: ``Mapping[str, str]``
        :param target_root: The TARGET tree root.
        :type target_root: ``str``
        :returns: A new ``RenameRelation``.
        :rtype: ``RenameRelation``
        """
        claims = defaultdict(list)
        for oldpath, newpath in sorted(mapping.items()):
            if oldpath == newpath:
                continue
            if _escapes_root(oldpath) or _escapes_root(newpath):
                _log_warn(
                    "Path outside of target, skip renaming: '%s' -> '%s'",
                    oldpath,
                    newpath,
                )
                continue
            if not os.path.lexists(os.path.join(target_root, oldpath)):
                _log_debug_rename("Dropping rename of missing path '%s'", oldpath)
                continue
            claims[newpath].append(oldpath)

        relation = cls()
        for newpath, oldpaths in claims.items():
            if len(oldpaths) > 1:
                for oldpath in oldpaths:
                    _log_warn(
                        "Conflicting destination, skip renaming: '%s' -> '%s'",
                        oldpath,
                        newpath,
                    )
                continue
            relation.add(oldpaths[0], newpath)
        _log_info("Loaded %d renames", len(relation))
        return relation
