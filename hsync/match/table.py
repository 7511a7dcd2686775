# Copyright Red Hat
#
# hsync/match/table.py - Hierarchy synchronizer fingerprint table
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
The fingerprint table shared by the source and target scans.

Each ``Fingerprint`` key maps to a ``MatchEntry`` describing what is known
about content with that fingerprint:

- a *dummy* entry (no source, no target) records that the fingerprint was
  an intermediate state while resolving a conflict, so that later files
  rolling to the same value keep rolling;
- an entry with a source and no target waits for a matching target file;
- an entry with a source and a matched target is a rename candidate;
- an entry with a source and an *unsolvable* target rejects any further
  target candidates.
"""
from typing import Dict, Iterator, Optional, Tuple
from dataclasses import dataclass
from enum import Enum

from .digest import FileRecord, Fingerprint


class TargetState(Enum):
    """
    Enum for the state of the target side of a ``MatchEntry``.
    """

    UNSET = "unset"
    MATCHED = "matched"
    UNSOLVABLE = "unsolvable"


@dataclass(frozen=True)
class MatchEntry:
    """
    The value associated with a ``Fingerprint`` in a ``FingerprintTable``.
    """

    source: Optional[FileRecord] = None
    target_state: TargetState = TargetState.UNSET
    target: Optional[FileRecord] = None

    def __post_init__(self):
        if (self.target_state == TargetState.MATCHED) != (self.target is not None):
            raise ValueError(
                f"MatchEntry target {self.target!r} is inconsistent with "
                f"target state {self.target_state.value}"
            )
        if self.source is None and self.target_state != TargetState.UNSET:
            raise ValueError("MatchEntry with a target must have a source")

    @classmethod
    def dummy(cls) -> "MatchEntry":
        """Return a dummy entry marking an intermediate fingerprint."""
        return cls()

    @classmethod
    def from_source(cls, source: FileRecord) -> "MatchEntry":
        """Return an entry for ``source`` still waiting for a target."""
        return cls(source=source)

    @classmethod
    def matched(cls, source: FileRecord, target: FileRecord) -> "MatchEntry":
        """Return an entry pairing ``source`` with the candidate ``target``."""
        return cls(source=source, target_state=TargetState.MATCHED, target=target)

    @classmethod
    def unsolvable(cls, source: FileRecord) -> "MatchEntry":
        """Return an entry for ``source`` that rejects all target candidates."""
        return cls(source=source, target_state=TargetState.UNSOLVABLE)

    @property
    def is_dummy(self) -> bool:
        """True if this entry has neither a source nor a target."""
        return self.source is None

    @property
    def is_matched(self) -> bool:
        """True if this entry holds a concrete target candidate."""
        return self.target_state == TargetState.MATCHED

    @property
    def is_unsolvable(self) -> bool:
        """True if this entry rejects further target candidates."""
        return self.target_state == TargetState.UNSOLVABLE


class FingerprintTable:
    """
    Mapping of ``Fingerprint`` to ``MatchEntry``.

    Entries are never removed, only replaced by assigning a new state to
    their key.
    """

    def __init__(self):
        self._entries: Dict[Fingerprint, MatchEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: Fingerprint) -> bool:
        return fingerprint in self._entries

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(self._entries)

    def __repr__(self):
        return f"FingerprintTable(<{len(self)} entries>)"

    def get(self, fingerprint: Fingerprint) -> Optional[MatchEntry]:
        """
        Return the entry stored for ``fingerprint`` or ``None``.

        :param fingerprint: The key to look up.
        :type fingerprint: ``Fingerprint``
        :rtype: ``Optional[MatchEntry]``
        """
        return self._entries.get(fingerprint)

    def set(self, fingerprint: Fingerprint, entry: MatchEntry):
        """
        Store ``entry`` at ``fingerprint``, replacing any previous state.

        :param fingerprint: The key to store.
        :type fingerprint: ``Fingerprint``
        :param entry: The new entry.
        :type entry: ``MatchEntry``
        """
        self._entries[fingerprint] = entry

    def mark_dummy(self, fingerprint: Fingerprint):
        """
        Mark ``fingerprint`` as an intermediate conflict resolution state.

        :param fingerprint: The key to mark.
        :type fingerprint: ``Fingerprint``
        """
        self._entries[fingerprint] = MatchEntry.dummy()

    def items(self) -> Iterator[Tuple[Fingerprint, MatchEntry]]:
        """
        Iterate over a snapshot of ``(fingerprint, entry)`` pairs, so that
        callers may modify the table while iterating.

        :rtype: ``Iterator[Tuple[Fingerprint, MatchEntry]]``
        """
        return iter(list(self._entries.items()))

    def sources(self) -> Iterator[Tuple[Fingerprint, MatchEntry]]:
        """
        Iterate over the non-dummy entries of this table.

        :rtype: ``Iterator[Tuple[Fingerprint, MatchEntry]]``
        """
        return ((fp, entry) for fp, entry in self.items() if not entry.is_dummy)

    def matches(self) -> Iterator[Tuple[FileRecord, FileRecord]]:
        """
        Iterate over ``(source, target)`` pairs of matched entries.

        :rtype: ``Iterator[Tuple[FileRecord, FileRecord]]``
        """
        return (
            (entry.source, entry.target)
            for _, entry in self.items()
            if entry.is_matched
        )
