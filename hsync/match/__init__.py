# Copyright Red Hat
#
# hsync/match/__init__.py - Hierarchy synchronizer content matching package
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Content matching package.

Provides the rolling digest, the fingerprint table and the SOURCE and
TARGET scanners that pair up files with identical content. The main entry
points are ``Matcher`` and ``SyncOptions``.
"""
from .digest import FileRecord, Fingerprint, roll
from .matcher import Matcher
from .options import BLOCKSIZE, SyncOptions
from .scanner import ScanStats, SourceScanner, TargetScanner
from .table import FingerprintTable, MatchEntry, TargetState
from .treewalk import FileKind, TreeEntry, TreeWalker

__all__ = [
    "BLOCKSIZE",
    "FileKind",
    "FileRecord",
    "Fingerprint",
    "FingerprintTable",
    "MatchEntry",
    "Matcher",
    "ScanStats",
    "SourceScanner",
    "SyncOptions",
    "TargetScanner",
    "TargetState",
    "TreeEntry",
    "TreeWalker",
    "roll",
]
