# Copyright Red Hat
#
# hsync/match/matcher.py - Hierarchy synchronizer content matcher
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Top-level content matching interface.
"""
from typing import Optional
import logging

from .options import SyncOptions
from .scanner import ScanStats, SourceScanner, TargetScanner
from .table import FingerprintTable
from .treewalk import check_root

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


class Matcher:
    """
    Match the content of a TARGET tree against a SOURCE tree.

    The SOURCE scan always completes before the TARGET scan starts: target
    matching requires every source fingerprint to be settled.
    """

    def __init__(self, options: Optional[SyncOptions] = None):
        """
        Initialise a new ``Matcher``.

        :param options: Options to control this ``Matcher`` instance.
        :type options: ``SyncOptions``
        """
        self.options: SyncOptions = options or SyncOptions()
        self.source_stats: Optional[ScanStats] = None
        self.target_stats: Optional[ScanStats] = None

    def match(self, source_root: str, target_root: str) -> FingerprintTable:
        """
        Scan ``source_root`` then ``target_root`` and return the resolved
        fingerprint table.

        :param source_root: The SOURCE tree root.
        :type source_root: ``str``
        :param target_root: The TARGET tree root.
        :type target_root: ``str``
        :returns: The fingerprint table after both scans.
        :rtype: ``FingerprintTable``
        :raises ``HsyncPathError``: If either root is not an accessible
                                    directory.
        """
        # The SOURCE root is checked by its own walk; check the TARGET
        # root before the SOURCE scan starts.
        check_root(target_root)

        table = FingerprintTable()
        _log_debug(
            "Matching '%s' against '%s' with options:\n%s",
            target_root,
            source_root,
            self.options,
        )

        self.source_stats = SourceScanner(table, self.options).scan(source_root)
        self.target_stats = TargetScanner(table, self.options).scan(target_root)

        _log_debug("Fingerprint table holds %d entries", len(table))
        return table
