# Copyright Red Hat
#
# hsync/match/scanner.py - Hierarchy synchronizer tree scanners
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Source and target scanners.

The source scan fills the fingerprint table with one entry per distinct
piece of SOURCE content. The target scan then attaches TARGET files to
those entries. Whenever two files share a fingerprint their digests are
rolled in lock-step until the fingerprints diverge or the files are
exhausted, marking every shared intermediate fingerprint as a dummy so
that later files know to keep rolling past it.
"""
from contextlib import closing
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from hsync import HSYNC_SUBSYSTEM_SCAN
from hsync.progress import ProgressFactory

from .digest import FileRecord, Fingerprint, roll
from .options import SyncOptions
from .table import FingerprintTable, MatchEntry
from .treewalk import TreeEntry, TreeWalker

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_scan(msg, *args, **kwargs):
    """A wrapper for scan subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_SCAN}, **kwargs)


@dataclass
class ScanStats:
    """
    Counters describing the outcome of one tree scan.
    """

    #: Number of candidate files visited
    files: int = 0
    #: Number of files discarded as duplicates
    duplicates: int = 0
    #: Number of files abandoned because of read errors
    read_errors: int = 0

    def __str__(self):
        return (
            f"{self.files} files, {self.duplicates} duplicates, "
            f"{self.read_errors} read errors"
        )


class _ScannerBase:
    """
    Common tree visiting and dummy skipping logic for both scan phases.
    """

    #: Human readable name of the tree this scanner visits.
    side = ""

    def __init__(self, table: FingerprintTable, options: Optional[SyncOptions] = None):
        """
        Initialise a new scanner.

        :param table: The fingerprint table shared by both scan phases.
        :type table: ``FingerprintTable``
        :param options: Options to control this scanner.
        :type options: ``SyncOptions``
        """
        self.table: FingerprintTable = table
        self.options: SyncOptions = options or SyncOptions()
        self.tree_walker: TreeWalker = TreeWalker(self.options)
        self.stats: ScanStats = ScanStats()

    def _new_record(self, root: str, path: str, size: int) -> FileRecord:
        return FileRecord(root, path, size, hash_algorithm=self.options.hash_algorithm)

    def _roll(
        self, record: FileRecord, fingerprint: Fingerprint
    ) -> Tuple[Fingerprint, bool]:
        return roll(record, fingerprint, block_size=self.options.block_size)

    def _read_error(self, record: FileRecord, err: OSError):
        self.stats.read_errors += 1
        _log_error("Cannot read %s file '%s': %s", self.side, record.path, err)

    def _skip_dummies(
        self, record: FileRecord
    ) -> Tuple[Fingerprint, Optional[MatchEntry], bool]:
        """
        Roll ``record`` until its fingerprint no longer hits a dummy entry
        or its content is exhausted.

        :param record: The newly discovered record.
        :type record: ``FileRecord``
        :returns: A ``(fingerprint, entry, exhausted)`` tuple where ``entry``
                  is the table entry at ``fingerprint`` or ``None``.
        :rtype: ``Tuple[Fingerprint, Optional[MatchEntry], bool]``
        :raises ``OSError``: If ``record`` cannot be read.
        """
        fingerprint = record.fingerprint()
        exhausted = False
        entry = self.table.get(fingerprint)
        while entry is not None and entry.is_dummy and not exhausted:
            fingerprint, exhausted = self._roll(record, fingerprint)
            entry = self.table.get(fingerprint)
        return fingerprint, entry, exhausted

    def visit(self, root: str, tree_entry: TreeEntry):
        """
        Process one candidate file found below ``root``.

        :param root: The tree root.
        :type root: ``str``
        :param tree_entry: The entry to process.
        :type tree_entry: ``TreeEntry``
        """
        raise NotImplementedError

    def scan(self, root: str) -> ScanStats:
        """
        Walk ``root`` and visit every non-empty regular file.

        :param root: The tree root to scan.
        :type root: ``str``
        :returns: The counters for this scan.
        :rtype: ``ScanStats``
        :raises ``HsyncPathError``: If ``root`` is not an accessible directory.
        """
        entries = self.tree_walker.walk(root)
        _log_info("Analyzing %s tree '%s'", self.side, root)
        throbber = ProgressFactory.get_throbber(
            f"Analyzing {root}", quiet=self.options.quiet
        )
        throbber.start()
        try:
            for tree_entry in entries:
                if not tree_entry.is_candidate:
                    continue
                self.stats.files += 1
                self.visit(root, tree_entry)
                throbber.throb()
        except (KeyboardInterrupt, SystemExit):
            throbber.end("Quit!")
            raise
        throbber.end(f"{self.stats.files} files")
        _log_info("Analyzed %s tree '%s': %s", self.side, root, self.stats)
        return self.stats


class SourceScanner(_ScannerBase):
    """
    Fill the fingerprint table from the SOURCE tree, resolving conflicts
    between source files.
    """

    side = "source"

    def _duplicate(self, fingerprint: Fingerprint, record: FileRecord):
        self.stats.duplicates += 1
        _log_warn("Source duplicate (%s) '%s'", fingerprint.digest, record.path)

    def visit(self, root: str, tree_entry: TreeEntry):
        record = self._new_record(root, tree_entry.path, tree_entry.size)
        with closing(record):
            try:
                fingerprint, entry, exhausted = self._skip_dummies(record)
            except OSError as err:
                self._read_error(record, err)
                return

            if entry is None:
                _log_debug_scan("New source '%s' at %s", record.path, fingerprint)
                self.table.set(fingerprint, MatchEntry.from_source(record))
                return

            if entry.is_dummy:
                # Exhausted while still on a chain of former conflicts.
                self._duplicate(fingerprint, record)
                return

            with closing(entry.source):
                self._resolve(record, fingerprint, exhausted, entry.source)

    def _resolve(
        self,
        record: FileRecord,
        fingerprint: Fingerprint,
        exhausted: bool,
        conflict: FileRecord,
    ):
        """
        Roll ``record`` and the source ``conflict`` already stored at
        ``fingerprint`` until they diverge or are both exhausted.
        """
        _log_debug_scan(
            "Source conflict at %s: '%s' and '%s'", fingerprint, record.path, conflict.path
        )
        conflict_fingerprint = fingerprint
        conflict_failed = False

        while fingerprint == conflict_fingerprint and not exhausted:
            self.table.mark_dummy(fingerprint)

            try:
                fingerprint, exhausted = self._roll(record, fingerprint)
            except OSError as err:
                self._read_error(record, err)
                # The conflicting file has not moved: put it back.
                self.table.set(conflict_fingerprint, MatchEntry.from_source(conflict))
                return

            try:
                conflict_fingerprint, _ = self._roll(conflict, conflict_fingerprint)
            except OSError as err:
                self._read_error(conflict, err)
                conflict_failed = True
                break

        if fingerprint == conflict_fingerprint:
            self.table.mark_dummy(fingerprint)
            self._duplicate(fingerprint, record)
            self._duplicate(conflict_fingerprint, conflict)
            return

        _log_debug_scan(
            "Resolved source conflict: '%s' at %s, '%s' at %s",
            record.path,
            fingerprint,
            conflict.path,
            conflict_fingerprint,
        )
        self.table.set(fingerprint, MatchEntry.from_source(record))
        if not conflict_failed:
            self.table.set(conflict_fingerprint, MatchEntry.from_source(conflict))


class TargetScanner(_ScannerBase):
    """
    Attach TARGET files to the source entries of a fingerprint table,
    resolving conflicts between target candidates.
    """

    side = "target"

    def _duplicate(self, fingerprint: Fingerprint, record: FileRecord, source: FileRecord):
        self.stats.duplicates += 1
        _log_warn(
            "Target duplicate (%s) '%s', source match '%s'",
            fingerprint.digest,
            record.path,
            source.path,
        )

    def visit(self, root: str, tree_entry: TreeEntry):
        record = self._new_record(root, tree_entry.path, tree_entry.size)
        with closing(record):
            try:
                fingerprint, entry, exhausted = self._skip_dummies(record)
            except OSError as err:
                self._read_error(record, err)
                return

            if entry is None:
                _log_debug_scan("No source match for target '%s'", record.path)
                return

            if entry.is_dummy:
                self.stats.duplicates += 1
                _log_warn(
                    "Target duplicate match (%s) '%s'", fingerprint.digest, record.path
                )
                return

            if entry.is_unsolvable:
                self._duplicate(fingerprint, record, entry.source)
                return

            if not entry.is_matched:
                _log_debug_scan(
                    "Target '%s' matches source '%s' at %s",
                    record.path,
                    entry.source.path,
                    fingerprint,
                )
                self.table.set(fingerprint, MatchEntry.matched(entry.source, record))
                return

            with closing(entry.source), closing(entry.target):
                self._resolve(record, fingerprint, exhausted, entry.source, entry.target)

    # pylint: disable=too-many-arguments,too-many-branches,too-many-locals
    def _resolve(
        self,
        record: FileRecord,
        fingerprint: Fingerprint,
        exhausted: bool,
        source: FileRecord,
        conflict: FileRecord,
    ):
        """
        Roll ``source``, the previous candidate ``conflict`` and the new
        candidate ``record`` together until they diverge or are exhausted.

        A read error on ``source`` drops the whole entry; a read error on a
        candidate drops that candidate only.
        """
        _log_debug_scan(
            "Target conflict at %s: '%s' and '%s' for source '%s'",
            fingerprint,
            record.path,
            conflict.path,
            source.path,
        )
        source_fingerprint = fingerprint
        conflict_fingerprint = fingerprint
        record_failed = False
        conflict_failed = False

        def _in_step() -> bool:
            # Every readable candidate still equals the source.
            live = [
                fp
                for fp, failed in (
                    (fingerprint, record_failed),
                    (conflict_fingerprint, conflict_failed),
                )
                if not failed
            ]
            return bool(live) and all(fp == source_fingerprint for fp in live)

        while not exhausted and _in_step():
            self.table.mark_dummy(source_fingerprint)

            try:
                source_fingerprint, exhausted = self._roll(source, source_fingerprint)
            except OSError as err:
                self._read_error(source, err)
                _log_warn(
                    "Dropping target candidates '%s' and '%s'", record.path, conflict.path
                )
                return

            # A failed candidate leaves the comparison; the other one
            # keeps rolling against the source.
            if not record_failed:
                try:
                    fingerprint, _ = self._roll(record, fingerprint)
                except OSError as err:
                    self._read_error(record, err)
                    record_failed = True

            if not conflict_failed:
                try:
                    conflict_fingerprint, _ = self._roll(conflict, conflict_fingerprint)
                except OSError as err:
                    self._read_error(conflict, err)
                    conflict_failed = True

        record_matches = not record_failed and fingerprint == source_fingerprint
        conflict_matches = (
            not conflict_failed and conflict_fingerprint == source_fingerprint
        )

        if record_matches and conflict_matches:
            self._duplicate(fingerprint, record, source)
            self._duplicate(conflict_fingerprint, conflict, source)
            self.table.set(source_fingerprint, MatchEntry.unsolvable(source))
        elif record_matches:
            _log_debug_scan("Target '%s' replaces '%s'", record.path, conflict.path)
            self.table.set(source_fingerprint, MatchEntry.matched(source, record))
        elif conflict_matches:
            _log_debug_scan("Target '%s' keeps precedence", conflict.path)
            self.table.set(source_fingerprint, MatchEntry.matched(source, conflict))
        else:
            _log_debug_scan("Neither '%s' nor '%s' match", record.path, conflict.path)
            self.table.set(source_fingerprint, MatchEntry.from_source(source))
