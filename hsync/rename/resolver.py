# Copyright Red Hat
#
# hsync/rename/resolver.py - Hierarchy synchronizer rename resolver
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Execute a rename relation as a safe sequence of file system renames.

Renames may form chains (``a -> b, b -> c, c -> d``) and cycles
(``a -> b, b -> c, c -> a``). Each chain is followed forward to its end
and then renamed backward, so that no rename targets a path that a
pending rename of the same chain still has to move away. A cycle is first
broken into a chain by moving one of its files to a temporary name.
"""
from typing import List, NamedTuple, Optional
from enum import Enum
import logging
import tempfile
import os

from hsync import HSYNC_APPLICATION, HSYNC_SUBSYSTEM_RENAME
from hsync.progress import ProgressFactory

from .relation import RenameRelation

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_rename(msg, *args, **kwargs):
    """A wrapper for rename subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_RENAME}, **kwargs)


class RenameStatus(Enum):
    """
    Enum for the outcome of a single rename.
    """

    RENAMED = "renamed"
    SKIPPED = "skipped"
    FAILED = "failed"


class RenameResult(NamedTuple):
    """
    The outcome of one attempted rename, paths relative to the TARGET root.
    """

    oldpath: str
    newpath: str
    status: RenameStatus

    def __str__(self):
        return f"{self.status.value}: '{self.oldpath}' -> '{self.newpath}'"


class RenameResolver:
    """
    Apply a ``RenameRelation`` to a TARGET tree.
    """

    def __init__(self, root: str, clobber: bool = False, quiet: bool = False):
        """
        Initialise a new ``RenameResolver``.

        :param root: The TARGET tree root that all paths are relative to.
        :type root: ``str``
        :param clobber: Overwrite existing destination files.
        :type clobber: ``bool``
        :param quiet: Suppress progress output.
        :type quiet: ``bool``
        """
        self.root: str = root
        self.clobber: bool = clobber
        self.quiet: bool = quiet
        self.results: List[RenameResult] = []

    def _full(self, path: str) -> str:
        return os.path.join(self.root, path)

    def _record(self, oldpath: str, newpath: str, status: RenameStatus):
        self.results.append(RenameResult(oldpath, newpath, status))

    def _rename(self, oldpath: str, newpath: str):
        """
        Rename ``oldpath`` to ``newpath``, creating missing directories.
        Failures are logged and recorded, never raised.
        """
        dest = self._full(newpath)
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
        except OSError as err:
            _log_error("Cannot create directory for '%s': %s", newpath, err)
            self._record(oldpath, newpath, RenameStatus.FAILED)
            return

        # The check and the rename are not atomic: a file created in
        # between by another process would be overwritten.
        if not self.clobber and os.path.lexists(dest):
            _log_warn("Destination exists, skip renaming: '%s' -> '%s'", oldpath, newpath)
            self._record(oldpath, newpath, RenameStatus.SKIPPED)
            return

        try:
            if self.clobber:
                os.replace(self._full(oldpath), dest)
            else:
                os.rename(self._full(oldpath), dest)
        except OSError as err:
            _log_error("Cannot rename '%s' -> '%s': %s", oldpath, newpath, err)
            self._record(oldpath, newpath, RenameStatus.FAILED)
            return

        _log_info("Rename '%s' -> '%s'", oldpath, newpath)
        self._record(oldpath, newpath, RenameStatus.RENAMED)

    def _drop_cycle(self, relation: RenameRelation, start: str):
        """
        Remove every edge of the cycle through ``start`` from ``relation``
        and record them as failed.
        """
        oldpath = start
        while oldpath in relation.forward:
            newpath = relation.forward.pop(oldpath)
            _log_error("Cannot break rename cycle: '%s' -> '%s'", oldpath, newpath)
            self._record(oldpath, newpath, RenameStatus.FAILED)
            oldpath = newpath

    def _break_cycle(
        self, relation: RenameRelation, last: str, start: str
    ) -> Optional[str]:
        """
        Break the cycle closed by the edge ``last -> start``: move ``last``
        to a temporary name and splice that name in as the new source of
        ``start``.

        :returns: The temporary path, or ``None`` if the cycle could not be
                  broken and was dropped.
        :rtype: ``Optional[str]``
        """
        try:
            fd, tmp_full = tempfile.mkstemp(dir=self.root, prefix=HSYNC_APPLICATION)
            os.close(fd)
        except OSError as err:
            _log_error("Cannot create temporary file in '%s': %s", self.root, err)
            self._drop_cycle(relation, start)
            return None

        tmp = os.path.relpath(tmp_full, self.root)
        try:
            os.replace(self._full(last), tmp_full)
        except OSError as err:
            _log_error("Cannot rename '%s' -> '%s': %s", last, tmp, err)
            try:
                os.unlink(tmp_full)
            except OSError as unlink_err:
                _log_error("Cannot remove temporary file '%s': %s", tmp, unlink_err)
            self._drop_cycle(relation, start)
            return None

        _log_info("Rename '%s' -> '%s'", last, tmp)
        self._record(last, tmp, RenameStatus.RENAMED)

        del relation.forward[last]
        relation.forward[tmp] = start
        relation.reverse[start] = tmp
        return tmp

    def resolve(self, relation: RenameRelation) -> List[RenameResult]:
        """
        Perform every rename in ``relation``.

        ``relation`` is consumed: each edge is removed from
        ``relation.forward`` once processed.

        :param relation: The renames to perform.
        :type relation: ``RenameRelation``
        :returns: The result of every rename attempted, in execution order.
        :rtype: ``List[RenameResult]``
        """
        forward, reverse = relation.forward, relation.reverse
        total = len(forward)
        if not total:
            _log_info("Nothing to rename")
            return self.results

        progress = ProgressFactory.get_progress("Renaming", quiet=self.quiet)
        progress.start(total)
        try:
            while forward:
                start, newpath = next(iter(forward.items()))
                oldpath = start

                # Go forward to the end of the chain or around the cycle.
                while newpath != start and newpath in forward:
                    oldpath, newpath = newpath, forward[newpath]

                if newpath == start:
                    _log_debug_rename("Found rename cycle through '%s'", start)
                    if self._break_cycle(relation, oldpath, start) is None:
                        continue
                    newpath, oldpath = oldpath, reverse.get(oldpath)
                else:
                    _log_debug_rename("Found rename chain ending at '%s'", newpath)

                # Go backward, renaming into paths that are already free.
                while oldpath is not None and oldpath in forward:
                    self._rename(oldpath, newpath)
                    del forward[oldpath]
                    progress.progress(total - len(forward), oldpath)
                    newpath, oldpath = oldpath, reverse.get(oldpath)
        except (KeyboardInterrupt, SystemExit):
            progress.end("Quit!")
            raise
        progress.end(f"{len(self.results)} renames processed")
        return self.results
