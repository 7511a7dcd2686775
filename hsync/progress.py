# Copyright Red Hat
#
# hsync/progress.py - Hierarchy synchronizer progress indicators
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Progress and busy indicators for tree scans and rename passes.

Indicators write to ``sys.stderr`` by default: standard output is reserved
for the rename preview document.
"""
from typing import Optional, TextIO
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
import sys
import os

from hsync import register_progress, unregister_progress

#: Default frames-per-second for throbber classes
DEFAULT_FPS = 10

#: Microseconds per second
_USECS_PER_SEC = 1000000


def _flush_with_broken_pipe_guard(stream: TextIO) -> None:
    """
    Handle ``BrokenPipeError`` when attempting to flush output streams.

    :param stream: The stream to flush.
    :type stream: TextIO
    """
    if stream is None or not hasattr(stream, "flush"):
        return
    try:
        stream.flush()
    except BrokenPipeError as err:
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            if hasattr(stream, "fileno"):
                os.dup2(devnull, stream.fileno())
        finally:
            os.close(devnull)
        raise SystemExit() from err


class ProgressBase(ABC):
    """
    An abstract progress reporting class for tasks with a known number
    of items (for instance, a rename pass).
    """

    def __init__(self, header: str, register: bool = True):
        """
        Initialize base progress state.

        :param header: The progress header.
        :type header: ``str``
        :param register: Register this ``ProgressBase`` for log callbacks.
        :type register: ``bool``
        """
        self.total: int = 0
        self.header: str = header
        self.stream: Optional[TextIO] = None
        self.first_update: bool = True
        self.registered: bool = False
        self.register: bool = register

    def reset_position(self):
        """Mark progress line as displaced by external output."""
        self.first_update = True

    def start(self, total: int):
        """
        Begin a progress run with the specified ``total``.

        :param total: The total number of expected progress items.
        :type total: ``int``
        """
        if total <= 0:
            raise ValueError("total must be positive.")

        self.total = total

        if self.register:
            register_progress(self)

    def _check_in_progress(self, done: int, step: str):
        """
        Validate that progress is active and ``done`` is in range.

        :raises ``ValueError``: If progress has not started, if done is
                                negative, or if done exceeds total.
        """
        theclass = self.__class__.__name__
        if self.total == 0:
            raise ValueError(f"{theclass}.{step}() called before start()")

        if done < 0:
            raise ValueError(f"{theclass}.{step}() done cannot be negative.")

        if done > self.total:
            raise ValueError(f"{theclass}.{step}() done cannot be > total.")

    def progress(self, done: int, message: Optional[str] = None):
        """
        Advance the progress indicator to the specified ``done`` count.

        :param done: The number of completed progress items.
        :type done: ``int``
        :param message: An optional progress message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(done, "progress")
        self._do_progress(done, message)
        self.first_update = False

    @abstractmethod
    def _do_progress(self, done: int, message: Optional[str] = None):
        """
        Hook for subclasses to update the progress display.
        """

    def end(self, message: Optional[str] = None):
        """
        End the progress run and finalize the display.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "end")
        self._do_end(message)
        self.total = 0
        if self.registered:
            unregister_progress(self)

    @abstractmethod
    def _do_end(self, message: Optional[str] = None):
        """
        Perform final end-of-progress handling.
        """


class LineProgress(ProgressBase):
    """
    A single line progress counter that redraws itself in place on
    terminals and prints one line per update otherwise.
    """

    LINE = "%s: %d/%d %s"  #: Progress line format string

    def __init__(
        self,
        header: str,
        register: bool = True,
        term_stream: Optional[TextIO] = None,
    ):
        super().__init__(header, register=register)
        self.stream = term_stream or sys.stderr
        self.redraw = hasattr(self.stream, "isatty") and self.stream.isatty()

    def _do_progress(self, done: int, message: Optional[str] = None):
        line = self.LINE % (self.header, done, self.total, message or "")
        if self.redraw:
            prefix = "" if self.first_update else "\r\x1b[K"
            print(prefix + line, end="", file=self.stream)
        else:
            print(line, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        if self.redraw and not self.first_update:
            print("\r\x1b[K", end="", file=self.stream)
        if message:
            print(f"{self.header}: {message}", file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class NullProgress(ProgressBase):
    """
    A progress class that produces no output.
    """

    def _do_progress(self, done: int, message: Optional[str] = None):
        return

    def _do_end(self, message: Optional[str] = None):
        return


class ThrobberBase(ABC):
    """
    An abstract busy indicator class. Unlike ``ProgressBase`` classes
    the throbber reports progress of a time consuming task where the
    total number of items is unknown (for instance, scanning a tree).
    """

    def __init__(self, header: str, register: bool = True):
        """
        Initialize base throbber state.

        :param header: The throbber header.
        :type header: ``str``
        :param register: Register this ``ThrobberBase`` for log callbacks.
        :type register: ``bool``
        """
        self.header: str = header
        self.frames: str = "."
        self.stream: Optional[TextIO] = None
        self.started: bool = False
        self.first_update: bool = True
        self.fps: int = DEFAULT_FPS
        self._frame_index: int = 0
        self._interval_us: int = round((1.0 / self.fps) * _USECS_PER_SEC)
        self._last: Optional[datetime] = None
        self.registered: bool = False
        self.register: bool = register

    def reset_position(self):
        """Mark throbber as displaced by external output."""
        self.first_update = True

    def start(self):
        """
        Begin a throbber run.
        """
        self.started = True
        self._last = datetime.now() - timedelta(microseconds=self._interval_us)

        if self.register:
            register_progress(self)

        self._do_start()
        self.throb()

    def _do_start(self):
        """
        Hook invoked when throbber begins.
        """
        print(f"{self.header}: ", end="", file=self.stream)

    def _check_started(self, step: str):
        """
        Validate that throbber is active.

        :raises ``ValueError``: If throbber has not started.
        """
        if not self.started or self._last is None:
            theclass = self.__class__.__name__
            raise ValueError(f"{theclass}.{step}() called before start()")

    def throb(self):
        """
        Maintain liveness for this throbber and output frame if required.
        """
        self._check_started("throb")
        now = datetime.now()
        if (now - self._last).total_seconds() * _USECS_PER_SEC >= self._interval_us:
            if self.first_update and self._frame_index:
                # Displaced by a log line: restate the header.
                self._do_start()
            self._do_throb()
            _flush_with_broken_pipe_guard(self.stream)
            self._last = now
            self._frame_index = (self._frame_index + 1) % len(self.frames)
            self.first_update = False

    @abstractmethod
    def _do_throb(self):
        """
        Hook for subclasses to update the throbber display.
        """

    def end(self, message: Optional[str] = None):
        """
        End the throbber run and finalize the display.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        """
        self._check_started("end")
        self._do_end(message=message)
        _flush_with_broken_pipe_guard(self.stream)
        self.started = False
        self._last = None
        if self.registered:
            unregister_progress(self)

    def _do_end(self, message: Optional[str] = None):
        """
        Perform final end-of-throbber handling.
        """
        print(f" {message}" if message else "", file=self.stream)


class SimpleThrobber(ThrobberBase):
    """
    A simple throbber that prints one frame character per interval.
    """

    def __init__(
        self, header: str, register: bool = True, term_stream: Optional[TextIO] = None
    ):
        super().__init__(header, register=register)
        self.stream = term_stream or sys.stderr

    def _do_throb(self):
        print(self.frames[self._frame_index], end="", file=self.stream)


class NullThrobber(ThrobberBase):
    """
    A throbber class that produces no output.
    """

    def _do_start(self):
        """No-op start for NullThrobber."""

    def _do_throb(self):
        """No-op throb hook for NullThrobber."""

    def _do_end(self, message: Optional[str] = None):
        """No-op end for NullThrobber."""


class ProgressFactory:
    """
    A factory for constructing progress objects.
    """

    @staticmethod
    def get_progress(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        register: bool = True,
    ) -> ProgressBase:
        """
        Return an appropriate ProgressBase implementation.

        :param header: The progress report header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: An optional ``TextIO`` output object.
                            Defaults to ``sys.stderr`` if unspecified.
        :type term_stream: ``Optional[TextIO]``
        :param register: Register the new object with the log system for
                         notification callbacks.
        :type register: ``bool``
        :returns: An appropriate progress implementation.
        :rtype: ``ProgressBase``
        """
        if quiet:
            return NullProgress(header, register=register)
        return LineProgress(header, register=register, term_stream=term_stream)

    @staticmethod
    def get_throbber(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        register: bool = True,
    ) -> ThrobberBase:
        """
        Return an appropriate ThrobberBase implementation.

        :param header: The throbber header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: An optional ``TextIO`` output object.
                            Defaults to ``sys.stderr`` if unspecified.
        :type term_stream: ``Optional[TextIO]``
        :param register: Register the new object with the log system for
                         notification callbacks.
        :type register: ``bool``
        :returns: An appropriate throbber implementation.
        :rtype: ``ThrobberBase``
        """
        if quiet:
            return NullThrobber(header, register=register)
        return SimpleThrobber(header, register=register, term_stream=term_stream)


__all__ = [
    "DEFAULT_FPS",
    "LineProgress",
    "NullProgress",
    "NullThrobber",
    "ProgressBase",
    "ProgressFactory",
    "SimpleThrobber",
    "ThrobberBase",
]
