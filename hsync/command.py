# Copyright Red Hat
#
# hsync/command.py - Hierarchy synchronizer command interface
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``hsync.command`` module provides both the hsync command line
interface infrastructure, and a simple procedural interface to the
``hsync`` library modules.

The procedural interface is used by the ``hsync`` command line tool,
and may be used by application programs, or interactively in the
Python shell.
"""
from argparse import ArgumentParser, RawDescriptionHelpFormatter
from typing import List, Optional, TextIO
from os.path import basename
import logging
import sys
import os

from hsync import (
    HSYNC_DEBUG_SCAN,
    HSYNC_DEBUG_RENAME,
    HSYNC_DEBUG_COMMAND,
    HSYNC_DEBUG_ALL,
    HSYNC_SUBSYSTEM_COMMAND,
    HsyncError,
    HsyncPathError,
    SubsystemFilter,
    set_debug_mask,
    ProgressAwareHandler,
    __version__,
)
from hsync.match import Matcher, SyncOptions
from hsync.match.options import BLOCKSIZE, HASH_ALGORITHMS, HSYNC_CONFIG_FILE
from hsync.rename import (
    RenameRelation,
    RenameResolver,
    RenameResult,
    RenameStatus,
    load_plan,
    save_plan,
    write_plan,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None

_DESCRIPTION = """Filesystem hierarchy synchronizer

Rename files in TARGET so that identical files found in SOURCE and TARGET
have the same relative path.

The main goal of the program is to make folder synchronization faster by
sparing big file transfers when a simple rename suffices. It complements
other synchronization programs that lack this capability.

By default, files are not renamed and a preview is printed to standard
output. If SOURCE is a preview file instead of a folder, the analysis is
skipped and the renames listed in the preview are used instead. This is
useful to tweak the result of the analysis before processing it.

False positives can happen, e.g. if two different files in SOURCE and
TARGET are the only ones of this size. Use the preview to spot them.

Duplicate files in either folder are skipped. Only non-empty regular files
are processed: empty folders and symbolic links are ignored.
"""


def analyze(
    source: str, target: str, options: Optional[SyncOptions] = None
) -> RenameRelation:
    """
    Match the content of ``target`` against ``source`` and return the
    renames that give identical files the same relative path.

    :param source: The SOURCE tree root.
    :type source: ``str``
    :param target: The TARGET tree root.
    :type target: ``str``
    :param options: Options controlling the scan.
    :type options: ``Optional[SyncOptions]``
    :returns: The rename relation for ``target``.
    :rtype: ``RenameRelation``
    """
    matcher = Matcher(options)
    table = matcher.match(source, target)
    return RenameRelation.from_table(table)


def replay(plan_path: str, target: str) -> RenameRelation:
    """
    Load a previously saved preview document and revalidate it against
    the current state of ``target``.

    :param plan_path: The preview document to load.
    :type plan_path: ``str``
    :param target: The TARGET tree root.
    :type target: ``str``
    :returns: The rename relation for ``target``.
    :rtype: ``RenameRelation``
    """
    if not os.path.isdir(target):
        raise HsyncPathError(f"Tree root '{target}' is not a directory")
    return RenameRelation.from_mapping(load_plan(plan_path), target)


def build_relation(
    source: str, target: str, options: Optional[SyncOptions] = None
) -> RenameRelation:
    """
    Return the rename relation for ``target``: by analysis if ``source``
    is a directory, or by replaying ``source`` as a preview document
    otherwise.

    :param source: The SOURCE tree root or a preview document.
    :type source: ``str``
    :param target: The TARGET tree root.
    :type target: ``str``
    :param options: Options controlling the scan.
    :type options: ``Optional[SyncOptions]``
    :rtype: ``RenameRelation``
    """
    if os.path.isdir(source):
        return analyze(source, target, options)
    return replay(source, target)


def process_renames(
    target: str, relation: RenameRelation, options: Optional[SyncOptions] = None
) -> List[RenameResult]:
    """
    Perform the renames in ``relation`` below ``target``.

    :param target: The TARGET tree root.
    :type target: ``str``
    :param relation: The renames to perform. Consumed by this call.
    :type relation: ``RenameRelation``
    :param options: Options controlling the renames.
    :type options: ``Optional[SyncOptions]``
    :returns: The result of every rename attempted, in execution order.
    :rtype: ``List[RenameResult]``
    """
    options = options or SyncOptions()
    resolver = RenameResolver(target, clobber=options.clobber, quiet=options.quiet)
    return resolver.resolve(relation)


def preview_renames(
    relation: RenameRelation,
    output: Optional[str] = None,
    stream: Optional[TextIO] = None,
):
    """
    Write ``relation`` as a preview document to the file ``output``, or to
    ``stream`` (standard output by default).

    :param relation: The renames to preview.
    :type relation: ``RenameRelation``
    :param output: An optional file to write the document to.
    :type output: ``Optional[str]``
    :param stream: An optional text stream to write the document to.
    :type stream: ``Optional[TextIO]``
    """
    if output:
        save_plan(relation.to_dict(), output)
    else:
        write_plan(relation.to_dict(), stream or sys.stdout)


def _sync_cmd(cmd_args, options: SyncOptions) -> int:
    """
    Analyze or replay, then preview or process the renames.

    :returns: The command exit status.
    :rtype: ``int``
    """
    _log_info(":: Analyzing '%s'", cmd_args.source)
    relation = build_relation(cmd_args.source, cmd_args.target, options)

    if not options.process:
        _log_info(":: Previewing renames")
        preview_renames(relation, output=cmd_args.output)
        return 0

    _log_info(":: Processing renames")
    results = process_renames(cmd_args.target, relation, options)
    counts = {status: 0 for status in RenameStatus}
    for result in results:
        counts[result.status] += 1
        print(result)
    _log_info(
        "Renamed %d, skipped %d, failed %d",
        counts[RenameStatus.RENAMED],
        counts[RenameStatus.SKIPPED],
        counts[RenameStatus.FAILED],
    )
    return 0


def setup_logging(cmd_args):
    """
    Set up hsync logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    hsync_log = logging.getLogger("hsync")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    hsync_log.setLevel(level)
    if hsync_log.hasHandlers():
        hsync_log.handlers.clear()

    # Subsystem log filtering
    _hsync_subsystem_filter = SubsystemFilter("hsync")

    _CONSOLE_HANDLER = ProgressAwareHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_hsync_subsystem_filter)

    hsync_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down hsync logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "scan": HSYNC_DEBUG_SCAN,
        "rename": HSYNC_DEBUG_RENAME,
        "command": HSYNC_DEBUG_COMMAND,
        "all": HSYNC_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_sync_args(parser):
    """
    Add the synchronization arguments to ``parser``.
    """
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        type=str,
        default=HSYNC_CONFIG_FILE,
        help=f"Read options from CONFIG (default: {HSYNC_CONFIG_FILE})",
    )
    parser.add_argument(
        "-f",
        "--clobber",
        action="store_true",
        help="Overwrite existing files in TARGET",
    )
    parser.add_argument(
        "-p",
        "--process",
        action="store_true",
        help="Rename the files in TARGET instead of printing a preview",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        type=str,
        help="Write the preview to FILE (.xz and .zst files are compressed)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not display progress indicators",
    )
    parser.add_argument(
        "-x",
        "--exclude",
        dest="exclude_patterns",
        metavar="PATTERN",
        action="append",
        help="Exclude paths matching the glob PATTERN (may be repeated)",
    )
    parser.add_argument(
        "--block-size",
        metavar="BYTES",
        type=int,
        help=f"Number of bytes hashed per checksum roll (default: {BLOCKSIZE})",
    )
    parser.add_argument(
        "--hash",
        dest="hash_algorithm",
        choices=HASH_ALGORITHMS,
        help="Rolling checksum algorithm (default: md5)",
    )
    parser.add_argument("source", metavar="SOURCE", help="Source folder or preview file")
    parser.add_argument("target", metavar="TARGET", help="Target folder")


def main(args):
    """
    Main entry point for hsync.
    """
    parser = ArgumentParser(
        description=_DESCRIPTION,
        prog=basename(args[0]),
        formatter_class=RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable (scan,rename,command,all)",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of hsync",
        version=__version__,
    )
    _add_sync_args(parser)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    try:
        options = SyncOptions.from_cmd_args(
            cmd_args, base=SyncOptions.from_file(cmd_args.config)
        )
    except HsyncError as err:
        _log_error("Invalid options: %s", err)
        shutdown_logging()
        return status

    if cmd_args.debug:
        status = _sync_cmd(cmd_args, options)
    else:
        try:
            status = _sync_cmd(cmd_args, options)
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except HsyncError as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def run():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
