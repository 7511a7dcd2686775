# Copyright Red Hat
#
# hsync/match/digest.py - Hierarchy synchronizer rolling digest
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Rolling content digests.

A ``Fingerprint`` identifies the content of a file up to a known prefix
length: the initial fingerprint of a file carries its size only, and each
call to ``roll()`` extends the hashed prefix by one block. Two files of
equal size always exhaust on the same roll, which is what allows
conflicting files to be compared in lock-step.
"""
from typing import BinaryIO, NamedTuple, Optional, Tuple
from hashlib import md5, sha1, sha256, sha512
import logging
import os

from hsync import HSYNC_SUBSYSTEM_SCAN

from .options import BLOCKSIZE

_log = logging.getLogger(__name__)


def _log_debug_scan(msg, *args, **kwargs):
    """A wrapper for scan subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_SCAN}, **kwargs)


_HASH_TYPES = {
    "md5": md5,
    "sha1": sha1,
    "sha256": sha256,
    "sha512": sha512,
}


class Fingerprint(NamedTuple):
    """
    A ``(size, roll_count, digest)`` key identifying file content up to
    ``roll_count`` blocks. Equality is exact on all three fields.
    """

    #: File size in bytes
    size: int
    #: Number of blocks hashed so far
    roll_count: int = 0
    #: Hex digest of all bytes hashed so far (empty before the first roll)
    digest: str = ""

    def __str__(self):
        return f"{self.size}B {self.roll_count}({self.digest or '-'})"


class FileRecord:
    """
    One physical file taking part in content matching.

    The record stores the tree root and the root-relative path separately:
    ``path`` is the stable identity used in rename relations, while the
    file itself is opened through ``full_path``.
    """

    def __init__(self, root: str, path: str, size: int, hash_algorithm: str = "md5"):
        """
        Initialise a new ``FileRecord``.

        :param root: The root of the tree containing this file.
        :type root: ``str``
        :param path: The path of this file relative to ``root``.
        :type path: ``str``
        :param size: The size of this file in bytes at discovery time.
        :type size: ``int``
        :param hash_algorithm: The name of the rolling digest algorithm.
        :type hash_algorithm: ``str``
        """
        if hash_algorithm not in _HASH_TYPES:
            raise ValueError(f"Unknown hash algorithm: {hash_algorithm}")
        self.root: str = root
        self.path: str = path
        self.size: int = size
        self.hash_algorithm: str = hash_algorithm
        self._hasher = None
        self._file: Optional[BinaryIO] = None

    def __repr__(self):
        return f"FileRecord({self.root!r}, {self.path!r}, {self.size})"

    def __str__(self):
        return self.path

    @property
    def full_path(self) -> str:
        """The path to this file including its tree root."""
        return os.path.join(self.root, self.path)

    @property
    def is_open(self) -> bool:
        """True if this record currently holds an open file handle."""
        return self._file is not None

    def fingerprint(self) -> Fingerprint:
        """
        Return the initial, size-only fingerprint for this record.

        :returns: A fingerprint with ``roll_count == 0``.
        :rtype: ``Fingerprint``
        """
        return Fingerprint(self.size)

    def _open(self) -> BinaryIO:
        if self._file is None:
            # pylint: disable=consider-using-with
            self._file = open(self.full_path, "rb")
        return self._file

    def _update(self, data: bytes) -> str:
        if self._hasher is None:
            self._hasher = _HASH_TYPES[self.hash_algorithm](usedforsecurity=False)
        self._hasher.update(data)
        return self._hasher.hexdigest()

    def close(self):
        """
        Close the file handle held by this record, if any. The digest
        state is retained: a later roll reopens the file.
        """
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None


def roll(
    record: FileRecord, fingerprint: Fingerprint, block_size: int = BLOCKSIZE
) -> Tuple[Fingerprint, bool]:
    """
    Advance ``record``'s rolling digest by one block.

    Reads the block at offset ``fingerprint.roll_count * block_size``,
    feeds it to the record's digest and returns the updated fingerprint
    together with an exhaustion flag. The file is opened on first use and
    kept open: the caller must ``close()`` the record when its visit ends.

    :param record: The file record to roll.
    :type record: ``FileRecord``
    :param fingerprint: The current fingerprint of ``record``.
    :type fingerprint: ``Fingerprint``
    :param block_size: The number of bytes consumed by one roll.
    :type block_size: ``int``
    :returns: A ``(fingerprint, exhausted)`` tuple. ``exhausted`` is ``True``
              once the end of the file has been reached.
    :rtype: ``Tuple[Fingerprint, bool]``
    :raises ``OSError``: If the file cannot be opened or read.
    """
    offset = fingerprint.roll_count * block_size
    handle = record._open()  # pylint: disable=protected-access
    handle.seek(offset)
    data = handle.read(block_size)
    digest = record._update(data)  # pylint: disable=protected-access
    exhausted = len(data) < block_size or offset + len(data) >= fingerprint.size
    _log_debug_scan(
        "Rolled '%s' at offset %d (%d bytes%s)",
        record.path,
        offset,
        len(data),
        ", exhausted" if exhausted else "",
    )
    return Fingerprint(fingerprint.size, fingerprint.roll_count + 1, digest), exhausted
