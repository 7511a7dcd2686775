# Copyright Red Hat
#
# tests/test_progress.py - Progress and throbber tests
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from io import StringIO
from unittest.mock import MagicMock, patch

from hsync.progress import (
    DEFAULT_FPS,
    LineProgress,
    NullProgress,
    NullThrobber,
    ProgressFactory,
    SimpleThrobber,
    _flush_with_broken_pipe_guard,
)


class TestLineProgress(unittest.TestCase):
    def test_line_progress_no_tty(self):
        """One line per update when not writing to a terminal."""
        stream = StringIO()
        progress = LineProgress("Renaming", term_stream=stream)
        progress.start(2)
        progress.progress(1, "a")
        progress.progress(2, "b")
        progress.end("done")
        self.assertEqual(
            stream.getvalue(),
            "Renaming: 1/2 a\nRenaming: 2/2 b\nRenaming: done\n",
        )

    def test_line_progress_tty(self):
        """Terminal output redraws the progress line in place."""
        stream = StringIO()
        stream.isatty = lambda: True
        progress = LineProgress("Renaming", term_stream=stream)
        progress.start(2)
        progress.progress(1, "a")
        progress.progress(2, "b")
        progress.end()
        self.assertEqual(
            stream.getvalue(),
            "Renaming: 1/2 a\r\x1b[KRenaming: 2/2 b\r\x1b[K",
        )

    def test_progress_bad_total(self):
        progress = LineProgress("Renaming", term_stream=StringIO())
        with self.assertRaises(ValueError):
            progress.start(0)

    def test_progress_before_start(self):
        progress = LineProgress("Renaming", term_stream=StringIO())
        with self.assertRaises(ValueError):
            progress.progress(1)

    def test_progress_out_of_range(self):
        progress = NullProgress("Renaming")
        progress.start(2)
        with self.assertRaises(ValueError):
            progress.progress(3)
        with self.assertRaises(ValueError):
            progress.progress(-1)
        progress.end()

    def test_progress_registration(self):
        progress = NullProgress("Renaming")
        progress.start(1)
        self.assertTrue(progress.registered)
        progress.end()
        self.assertFalse(progress.registered)

        unregistered = NullProgress("Renaming", register=False)
        unregistered.start(1)
        self.assertFalse(unregistered.registered)
        unregistered.end()


class TestThrobber(unittest.TestCase):
    def test_simple_throbber(self):
        stream = StringIO()
        throbber = SimpleThrobber("Analyzing", term_stream=stream)
        self.assertEqual(throbber.fps, DEFAULT_FPS)
        throbber.start()
        throbber.end("3 files")
        output = stream.getvalue()
        self.assertTrue(output.startswith("Analyzing: "))
        self.assertTrue(output.endswith(" 3 files\n"))

    def test_throb_before_start(self):
        throbber = SimpleThrobber("Analyzing", term_stream=StringIO())
        with self.assertRaises(ValueError):
            throbber.throb()
        with self.assertRaises(ValueError):
            throbber.end()

    def test_null_throbber(self):
        throbber = NullThrobber("Analyzing")
        throbber.start()
        throbber.throb()
        throbber.end("done")
        self.assertFalse(throbber.started)


class TestProgressFactory(unittest.TestCase):
    def test_get_progress(self):
        self.assertIsInstance(ProgressFactory.get_progress("x", quiet=True), NullProgress)
        self.assertIsInstance(ProgressFactory.get_progress("x"), LineProgress)

    def test_get_throbber(self):
        self.assertIsInstance(ProgressFactory.get_throbber("x", quiet=True), NullThrobber)
        self.assertIsInstance(ProgressFactory.get_throbber("x"), SimpleThrobber)

    def test_default_stream_stderr(self):
        stream = StringIO()
        with patch("sys.stderr", stream):
            progress = ProgressFactory.get_progress("x")
        self.assertIs(progress.stream, stream)


class TestBrokenPipe(unittest.TestCase):
    def test_flush_broken_pipe(self):
        stream = MagicMock()
        stream.flush.side_effect = BrokenPipeError
        stream.fileno.return_value = 99
        with patch("os.dup2") as dup2, self.assertRaises(SystemExit):
            _flush_with_broken_pipe_guard(stream)
        dup2.assert_called_once()

    def test_flush_none(self):
        _flush_with_broken_pipe_guard(None)
