# Copyright Red Hat
#
# tests/rename/test_resolver.py - RenameResolver tests.
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
import os
from os.path import join
from unittest.mock import patch

from hsync import HSYNC_APPLICATION
from hsync.rename.relation import RenameRelation
from hsync.rename.resolver import RenameResolver, RenameResult, RenameStatus

from tests._util import make_tree, read_tree

RENAMED = RenameStatus.RENAMED
SKIPPED = RenameStatus.SKIPPED
FAILED = RenameStatus.FAILED


class TestRenameResult(unittest.TestCase):
    def test_RenameResult__str__(self):
        result = RenameResult("a", "b", RENAMED)
        self.assertEqual(str(result), "renamed: 'a' -> 'b'")


class TestRenameResolver(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory(prefix="hsync-test-")
        self.root = self._tmpdir.name

    def tearDown(self):
        self._tmpdir.cleanup()

    def _resolve(self, forward, **kwargs):
        resolver = RenameResolver(self.root, quiet=True, **kwargs)
        relation = RenameRelation(forward)
        results = resolver.resolve(relation)
        self.assertEqual(relation.forward, {})
        return results

    def test_RenameResolver(self):
        """Test RenameResolver.__init__()"""
        resolver = RenameResolver(self.root)
        self.assertFalse(resolver.clobber)
        self.assertEqual(resolver.results, [])

    def test_resolve_empty(self):
        self.assertEqual(self._resolve({}), [])

    def test_resolve_single(self):
        make_tree(self.root, {"a": b"A"})
        results = self._resolve({"a": join("x", "y", "b")})
        self.assertEqual(results, [RenameResult("a", join("x", "y", "b"), RENAMED)])
        self.assertEqual(read_tree(self.root), {join("x", "y", "b"): b"A"})

    def test_resolve_chain_order(self):
        """Chains are renamed from their free end backward."""
        make_tree(self.root, {"a": b"A", "b": b"B", "c": b"C"})
        results = self._resolve({"a": "b", "b": "c", "c": "d"})
        self.assertEqual(
            [(r.oldpath, r.newpath) for r in results],
            [("c", "d"), ("b", "c"), ("a", "b")],
        )
        self.assertTrue(all(r.status == RENAMED for r in results))
        self.assertEqual(read_tree(self.root), {"b": b"A", "c": b"B", "d": b"C"})

    def test_resolve_chain_from_middle(self):
        """Starting on a middle edge still renames the whole chain."""
        make_tree(self.root, {"a": b"A", "b": b"B", "c": b"C"})
        results = self._resolve({"b": "c", "c": "d", "a": "b"})
        self.assertEqual(
            [(r.oldpath, r.newpath) for r in results],
            [("c", "d"), ("b", "c"), ("a", "b")],
        )

    def test_resolve_cycle(self):
        """A cycle costs exactly one temporary rename."""
        make_tree(self.root, {"a": b"A", "b": b"B", "c": b"C"})
        results = self._resolve({"a": "b", "b": "c", "c": "a"})

        self.assertEqual(len(results), 4)
        tmp = results[0].newpath
        self.assertEqual(results[0].oldpath, "c")
        self.assertTrue(tmp.startswith(HSYNC_APPLICATION))
        self.assertEqual(
            [(r.oldpath, r.newpath) for r in results[1:]],
            [("b", "c"), ("a", "b"), (tmp, "a")],
        )
        self.assertTrue(all(r.status == RENAMED for r in results))
        self.assertEqual(read_tree(self.root), {"a": b"C", "b": b"A", "c": b"B"})

    def test_resolve_swap(self):
        make_tree(self.root, {"a": b"A", "b": b"B"})
        self._resolve({"a": "b", "b": "a"})
        self.assertEqual(read_tree(self.root), {"a": b"B", "b": b"A"})

    def test_resolve_existing_destination(self):
        """An existing destination is left alone without clobber."""
        make_tree(self.root, {"a": b"A", "b": b"B"})
        with self.assertLogs("hsync.rename.resolver", level="WARNING") as logs:
            results = self._resolve({"a": "b"})
        self.assertEqual(results, [RenameResult("a", "b", SKIPPED)])
        self.assertEqual(read_tree(self.root), {"a": b"A", "b": b"B"})
        self.assertIn("Destination exists", logs.output[0])

    def test_resolve_existing_destination_chain(self):
        """A blocked chain end leaves every earlier link in place."""
        make_tree(self.root, {"a": b"A", "b": b"B", "c": b"C", "d": b"D"})
        results = self._resolve({"a": "b", "b": "c", "c": "d"})
        self.assertEqual([r.status for r in results], [SKIPPED] * 3)
        self.assertEqual(
            read_tree(self.root), {"a": b"A", "b": b"B", "c": b"C", "d": b"D"}
        )

    def test_resolve_clobber(self):
        make_tree(self.root, {"a": b"A", "b": b"B"})
        results = self._resolve({"a": "b"}, clobber=True)
        self.assertEqual(results, [RenameResult("a", "b", RENAMED)])
        self.assertEqual(read_tree(self.root), {"b": b"A"})

    def test_resolve_missing_source(self):
        with self.assertLogs("hsync.rename.resolver", level="ERROR"):
            results = self._resolve({"gone": "b"})
        self.assertEqual(results, [RenameResult("gone", "b", FAILED)])

    def test_resolve_cycle_break_fails(self):
        """A cycle that cannot be broken is dropped without data loss."""
        make_tree(self.root, {"a": b"A", "b": b"B"})
        with patch("hsync.rename.resolver.os.replace", side_effect=OSError(1, "EPERM")):
            results = self._resolve({"a": "b", "b": "a"})
        self.assertEqual([r.status for r in results], [FAILED, FAILED])
        self.assertEqual(read_tree(self.root), {"a": b"A", "b": b"B"})

    def test_resolve_cycle_break_cleanup_fails(self):
        """A leftover temporary file does not abort the resolution."""
        make_tree(self.root, {"a": b"A", "b": b"B"})
        with patch(
            "hsync.rename.resolver.os.replace", side_effect=OSError(1, "EPERM")
        ), patch("hsync.rename.resolver.os.unlink", side_effect=OSError(13, "EACCES")):
            results = self._resolve({"a": "b", "b": "a"})
        self.assertEqual([r.status for r in results], [FAILED, FAILED])
        tree = read_tree(self.root)
        self.assertEqual(tree["a"], b"A")
        self.assertEqual(tree["b"], b"B")

    def test_resolve_cycle_no_tempfile(self):
        make_tree(self.root, {"a": b"A", "b": b"B"})
        with patch(
            "hsync.rename.resolver.tempfile.mkstemp", side_effect=OSError(28, "ENOSPC")
        ):
            results = self._resolve({"a": "b", "b": "a"})
        self.assertEqual([r.status for r in results], [FAILED, FAILED])
        self.assertEqual(read_tree(self.root), {"a": b"A", "b": b"B"})

    def test_resolve_makedirs_fails(self):
        make_tree(self.root, {"a": b"A", "file": b"F"})
        results = self._resolve({"a": join("file", "a")})
        self.assertEqual(results, [RenameResult("a", join("file", "a"), FAILED)])
        self.assertTrue(os.path.exists(join(self.root, "a")))
