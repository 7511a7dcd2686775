# Copyright Red Hat
#
# hsync/_hsync.py - Hierarchy synchronizer global definitions
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level hsync package.
"""
from typing import Optional, TextIO, Union, TYPE_CHECKING
import logging
import weakref
import sys

if TYPE_CHECKING:
    from .progress import ProgressBase, ThrobberBase

_log = logging.getLogger("hsync")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Application name, used for temporary file prefixes and messages.
HSYNC_APPLICATION = "hsync"

# Hsync debugging subsystem mask
HSYNC_DEBUG_SCAN = 1
HSYNC_DEBUG_RENAME = 2
HSYNC_DEBUG_COMMAND = 4
HSYNC_DEBUG_ALL = HSYNC_DEBUG_SCAN | HSYNC_DEBUG_RENAME | HSYNC_DEBUG_COMMAND

# Hsync debugging subsystem names
HSYNC_SUBSYSTEM_SCAN = "hsync.scan"
HSYNC_SUBSYSTEM_RENAME = "hsync.rename"
HSYNC_SUBSYSTEM_COMMAND = "hsync.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    HSYNC_DEBUG_SCAN: HSYNC_SUBSYSTEM_SCAN,
    HSYNC_DEBUG_RENAME: HSYNC_SUBSYSTEM_RENAME,
    HSYNC_DEBUG_COMMAND: HSYNC_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()

# Registry of active progress instances: uses a WeakSet so we don't prevent
# garbage collection.
_active_progress: weakref.WeakSet = weakref.WeakSet()


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``hsync`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    hsync_log = logging.getLogger("hsync")

    for handler in hsync_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``hsync`` package.

    :param mask: the logical OR of the ``HSYNC_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > HSYNC_DEBUG_ALL:
        raise ValueError(f"Invalid hsync debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    hsync_log = logging.getLogger("hsync")
    for handler in hsync_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: Union["ProgressBase", "ThrobberBase"]):
    """Register a progress instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: Union["ProgressBase", "ThrobberBase"]):
    """Unregister a progress instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: TextIO):
    """
    Notify progress instances that log output occurred on stream.

    Called by ProgressAwareHandler after emitting a record.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active Progress instances.

    After emitting a log record, notifies any Progress instances writing
    to the same stream so they can start a fresh line instead of
    overwriting the log message.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Hsync exception types
#


class HsyncError(Exception):
    """
    Base class for hierarchy synchronizer errors.
    """


class HsyncSystemError(HsyncError):
    """
    An error when calling the operating system.
    """


class HsyncPathError(HsyncError):
    """
    An invalid tree root was supplied: the path does not exist, is not
    a directory, or cannot be read.
    """


class HsyncNotFoundError(HsyncError):
    """
    The requested object does not exist.
    """


class HsyncParseError(HsyncError):
    """
    An error parsing a rename preview document.
    """


class HsyncArgumentError(HsyncError):
    """
    An invalid argument or configuration value was given.
    """


__all__ = [
    "HSYNC_APPLICATION",
    "HSYNC_DEBUG_SCAN",
    "HSYNC_DEBUG_RENAME",
    "HSYNC_DEBUG_COMMAND",
    "HSYNC_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "HSYNC_SUBSYSTEM_SCAN",
    "HSYNC_SUBSYSTEM_RENAME",
    "HSYNC_SUBSYSTEM_COMMAND",
    # Debug logging - mask interface
    "set_debug_mask",
    "get_debug_mask",
    # Progress log callbacks
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    "HsyncError",
    "HsyncSystemError",
    "HsyncPathError",
    "HsyncNotFoundError",
    "HsyncParseError",
    "HsyncArgumentError",
]
