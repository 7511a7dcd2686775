# Copyright Red Hat
#
# tests/rename/test_relation.py - RenameRelation tests.
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
from os.path import join

from hsync.match.digest import FileRecord, Fingerprint
from hsync.match.table import FingerprintTable, MatchEntry
from hsync.rename.relation import RenameRelation

from tests._util import make_tree


class TestRenameRelation(unittest.TestCase):
    def test_add(self):
        relation = RenameRelation()
        relation.add("a", "b")
        relation.add("c", "c")
        self.assertEqual(relation.forward, {"a": "b"})
        self.assertEqual(relation.reverse, {"b": "a"})
        self.assertEqual(len(relation), 1)

    def test_init_mapping(self):
        relation = RenameRelation({"z": "y", "a": "b", "same": "same"})
        self.assertEqual(list(relation), [("a", "b"), ("z", "y")])
        self.assertEqual(list(relation.to_dict()), ["a", "z"])

    def test_from_table(self):
        table = FingerprintTable()
        source = FileRecord("/source", join("new", "a"), 4)
        target = FileRecord("/target", "old_a", 4)
        same_source = FileRecord("/source", "same", 5)
        same_target = FileRecord("/target", "same", 5)
        table.set(Fingerprint(4), MatchEntry.matched(source, target))
        table.set(Fingerprint(5), MatchEntry.matched(same_source, same_target))
        table.set(Fingerprint(6), MatchEntry.from_source(FileRecord("/s", "u", 6)))
        table.mark_dummy(Fingerprint(7))

        relation = RenameRelation.from_table(table)
        self.assertEqual(relation.to_dict(), {"old_a": join("new", "a")})


class TestRenameRelationFromMapping(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory(prefix="hsync-test-")
        self.target = self._tmpdir.name
        make_tree(self.target, {"a": b"a", "b": b"b", "c": b"c", "d": b"d"})

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_from_mapping_valid(self):
        relation = RenameRelation.from_mapping({"a": "x", "b": "a"}, self.target)
        self.assertEqual(relation.to_dict(), {"a": "x", "b": "a"})
        self.assertEqual(relation.reverse, {"x": "a", "a": "b"})

    def test_from_mapping_identical(self):
        relation = RenameRelation.from_mapping({"a": "a"}, self.target)
        self.assertEqual(len(relation), 0)

    def test_from_mapping_missing_oldpath(self):
        relation = RenameRelation.from_mapping(
            {"missing": "x", "a": "y"}, self.target
        )
        self.assertEqual(relation.to_dict(), {"a": "y"})

    def test_from_mapping_outside_root(self):
        mapping = {
            "a": join("..", "escape"),
            "/etc/passwd": "b2",
            "b": "/tmp/abs",  # noqa: S108
            "c": join("sub", "..", "c2"),
        }
        with self.assertLogs("hsync.rename.relation", level="WARNING") as logs:
            relation = RenameRelation.from_mapping(mapping, self.target)
        self.assertEqual(relation.to_dict(), {"c": join("sub", "..", "c2")})
        self.assertEqual(len(logs.output), 3)

    def test_from_mapping_duplicate_destination(self):
        """Pairs sharing one destination are all dropped."""
        with self.assertLogs("hsync.rename.relation", level="WARNING") as logs:
            relation = RenameRelation.from_mapping(
                {"a": "x", "b": "x", "c": "y"}, self.target
            )
        self.assertEqual(relation.to_dict(), {"c": "y"})
        self.assertIn("Conflicting destination", "\n".join(logs.output))
