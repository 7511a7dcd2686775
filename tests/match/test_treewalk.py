# Copyright Red Hat
#
# tests/match/test_treewalk.py - TreeWalker tests.
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
import stat
import os
from os.path import join
from unittest.mock import patch

from hsync import HsyncPathError
from hsync.match.options import SyncOptions
from hsync.match.treewalk import FileKind, TreeEntry, TreeWalker, check_root

from tests._util import make_tree


class TestFileKind(unittest.TestCase):
    def test_from_mode(self):
        self.assertEqual(FileKind.from_mode(stat.S_IFREG | 0o644), FileKind.FILE)
        self.assertEqual(FileKind.from_mode(stat.S_IFDIR | 0o755), FileKind.DIRECTORY)
        self.assertEqual(FileKind.from_mode(stat.S_IFLNK | 0o777), FileKind.SYMLINK)
        self.assertEqual(FileKind.from_mode(stat.S_IFIFO | 0o644), FileKind.OTHER)


class TestTreeEntry(unittest.TestCase):
    def test_is_candidate(self):
        self.assertTrue(TreeEntry("a", FileKind.FILE, 1).is_candidate)
        self.assertFalse(TreeEntry("a", FileKind.FILE, 0).is_candidate)
        self.assertFalse(TreeEntry("a", FileKind.DIRECTORY, 4096).is_candidate)
        self.assertFalse(TreeEntry("a", FileKind.SYMLINK, 4).is_candidate)


class TestTreeWalker(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory(prefix="hsync-test-")
        self.root = self._tmpdir.name
        make_tree(
            self.root,
            {
                "b.txt": b"bbb",
                "empty": b"",
                join("a", "x.txt"): b"x",
                join("a", "skip.o"): b"object",
                join("cache", "c.txt"): b"ccc",
            },
        )
        os.symlink("b.txt", join(self.root, "link"))

    def tearDown(self):
        self._tmpdir.cleanup()

    def _walk(self, **kwargs):
        walker = TreeWalker(SyncOptions(**kwargs))
        return {entry.path: entry for entry in walker.walk(self.root)}

    def test_TreeWalker(self):
        """Test TreeWalker.__init__()"""
        walker = TreeWalker(SyncOptions(exclude_patterns=("*.o",)))
        self.assertEqual(walker.exclude_patterns, ("*.o",))
        self.assertEqual(TreeWalker().exclude_patterns, ())

    def test_walk_entries(self):
        entries = self._walk()
        self.assertEqual(entries["b.txt"], TreeEntry("b.txt", FileKind.FILE, 3))
        self.assertEqual(entries["a"].kind, FileKind.DIRECTORY)
        self.assertEqual(entries[join("a", "x.txt")].size, 1)
        self.assertEqual(entries["link"].kind, FileKind.SYMLINK)
        self.assertFalse(entries["empty"].is_candidate)

    def test_walk_relative_paths(self):
        for path in self._walk():
            self.assertFalse(os.path.isabs(path))

    def test_walk_deterministic(self):
        walker = TreeWalker(SyncOptions())
        first = [entry.path for entry in walker.walk(self.root)]
        second = [entry.path for entry in walker.walk(self.root)]
        self.assertEqual(first, second)
        self.assertEqual(first[:5], ["a", "b.txt", "cache", "empty", "link"])

    def test_walk_exclude_file_pattern(self):
        entries = self._walk(exclude_patterns=("*.o",))
        self.assertNotIn(join("a", "skip.o"), entries)
        self.assertIn(join("a", "x.txt"), entries)

    def test_walk_exclude_directory(self):
        """Excluded directories are pruned with their content."""
        entries = self._walk(exclude_patterns=("cache",))
        self.assertNotIn("cache", entries)
        self.assertNotIn(join("cache", "c.txt"), entries)

    def test_walk_race_vanished(self):
        walker = TreeWalker(SyncOptions())
        with patch("os.walk", return_value=[(self.root, [], ["vanished"])]), patch(
            "os.lstat", side_effect=FileNotFoundError
        ):
            self.assertEqual(list(walker.walk(self.root)), [])

    def test_walk_bad_root(self):
        walker = TreeWalker(SyncOptions())
        with self.assertRaises(HsyncPathError):
            list(walker.walk(join(self.root, "nonexistent")))

    def test_walk_bad_root_eager(self):
        """The root is checked before the first entry is requested."""
        walker = TreeWalker(SyncOptions())
        with self.assertRaises(HsyncPathError):
            walker.walk(join(self.root, "nonexistent"))

    def test_walk_no_patterns_skips_matching(self):
        walker = TreeWalker(SyncOptions())
        with patch.object(TreeWalker, "_excluded", return_value=False) as excluded:
            entries = list(walker.walk(self.root))
        self.assertEqual(len(entries), 8)
        excluded.assert_not_called()

    def test_walk_large_directory(self):
        """Exclude patterns apply to every file of a large directory."""
        names = {f"f{i:05d}": b"x" for i in range(2000)}
        make_tree(join(self.root, "big"), names)
        entries = self._walk(exclude_patterns=("f0000*",))
        big = [path for path in entries if path.startswith("big" + os.sep)]
        self.assertEqual(len(big), 1990)


class TestCheckRoot(unittest.TestCase):
    def test_check_root_missing(self):
        with self.assertRaises(HsyncPathError):
            check_root("/nonexistent/hsync/root")

    def test_check_root_not_directory(self):
        with tempfile.NamedTemporaryFile() as tmp:
            with self.assertRaises(HsyncPathError):
                check_root(tmp.name)

    def test_check_root_ok(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            check_root(tmpdir)
