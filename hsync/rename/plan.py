# Copyright Red Hat
#
# hsync/rename/plan.py - Hierarchy synchronizer rename preview documents
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Load and save rename preview documents.

A preview document is a flat JSON object mapping ``oldpath`` to
``newpath``, paths relative to the TARGET root. Documents with a ``.xz``
or ``.zst`` extension are compressed with lzma or zstandard respectively.
"""
from typing import Dict, Mapping, TextIO, Tuple
import logging
import json
import lzma
import os

try:
    import zstandard as zstd

    _HAVE_ZSTD = True
except ModuleNotFoundError:
    _HAVE_ZSTD = False

from hsync import (
    HSYNC_SUBSYSTEM_RENAME,
    HsyncNotFoundError,
    HsyncParseError,
    HsyncSystemError,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_rename(msg, *args, **kwargs):
    """A wrapper for rename subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": HSYNC_SUBSYSTEM_RENAME}, **kwargs)


#: Compression types by file extension
_COMPRESSION_EXTENSIONS: Dict[str, str] = {
    "xz": "lzma",
    "zst": "zstd",
}


def _compress_type(path: str) -> Tuple[str, Tuple[type, ...]]:
    """
    Return the compression type for ``path`` and the exception types its
    codec may raise.

    :raises ``HsyncSystemError``: If zstandard is required but unavailable.
    """
    compress = _COMPRESSION_EXTENSIONS.get(path.rsplit(".", 1)[-1])
    if compress == "zstd":
        if not _HAVE_ZSTD:
            raise HsyncSystemError(
                f"Cannot handle '{path}': zstandard support not available"
            )
        return compress, (zstd.ZstdError,)
    if compress == "lzma":
        return compress, (lzma.LZMAError,)
    return "", ()


def dumps_plan(mapping: Mapping[str, str]) -> str:
    """
    Encode ``mapping`` as a preview document.

    :param mapping: An ``oldpath -> newpath`` mapping.
    :type mapping: ``Mapping[str, str]``
    :returns: The JSON text of the document.
    :rtype: ``str``
    """
    return json.dumps(dict(mapping), indent="\t", sort_keys=True, ensure_ascii=False)


def loads_plan(text: str) -> Dict[str, str]:
    """
    Decode a preview document.

    :param text: The JSON text of the document.
    :type text: ``str``
    :returns: The ``oldpath -> newpath`` mapping.
    :rtype: ``Dict[str, str]``
    :raises ``HsyncParseError``: If the text is not a flat JSON object of
                                 strings.
    """
    try:
        mapping = json.loads(text)
    except ValueError as err:
        raise HsyncParseError(f"Invalid rename document: {err}") from err
    if not isinstance(mapping, dict):
        raise HsyncParseError("Invalid rename document: expected a JSON object")
    for oldpath, newpath in mapping.items():
        if not isinstance(newpath, str) or not newpath or not oldpath:
            raise HsyncParseError(
                f"Invalid rename document entry: {oldpath!r}: {newpath!r}"
            )
    return mapping


def write_plan(mapping: Mapping[str, str], stream: TextIO):
    """
    Write ``mapping`` as a preview document to ``stream``.

    :param mapping: An ``oldpath -> newpath`` mapping.
    :type mapping: ``Mapping[str, str]``
    :param stream: The text stream to write to.
    :type stream: ``TextIO``
    """
    stream.write(dumps_plan(mapping) + "\n")
    stream.flush()


def save_plan(mapping: Mapping[str, str], path: str):
    """
    Save ``mapping`` as a preview document at ``path``, compressed
    according to the extension of ``path``.

    :param mapping: An ``oldpath -> newpath`` mapping.
    :type mapping: ``Mapping[str, str]``
    :param path: The file to write.
    :type path: ``str``
    :raises ``HsyncSystemError``: If the document cannot be written.
    """
    compress, compress_errors = _compress_type(path)
    data = (dumps_plan(mapping) + "\n").encode("utf8")
    try:
        if compress == "zstd":
            cctx = zstd.ZstdCompressor()
            with open(path, "wb") as fc:
                with cctx.stream_writer(fc) as compressor:
                    compressor.write(data)
        elif compress == "lzma":
            with lzma.LZMAFile(filename=path, mode="wb") as compressor:
                compressor.write(data)
        else:
            with open(path, "wb") as fp:
                fp.write(data)
    except (OSError, *compress_errors) as err:
        raise HsyncSystemError(f"Cannot save rename document '{path}': {err}") from err
    _log_info("Saved %d renames to '%s'", len(mapping), path)


def load_plan(path: str) -> Dict[str, str]:
    """
    Load the preview document at ``path``.

    :param path: The file to read.
    :type path: ``str``
    :returns: The ``oldpath -> newpath`` mapping.
    :rtype: ``Dict[str, str]``
    :raises ``HsyncNotFoundError``: If ``path`` does not exist.
    :raises ``HsyncParseError``: If the document cannot be decoded.
    :raises ``HsyncSystemError``: If the document cannot be read.
    """
    if not os.path.exists(path):
        raise HsyncNotFoundError(f"Rename document '{path}' does not exist")

    compress, compress_errors = _compress_type(path)
    _log_debug_rename("Loading rename document '%s' (compression=%s)", path, compress)
    try:
        if compress == "zstd":
            dctx = zstd.ZstdDecompressor()
            with open(path, "rb") as fp:
                with dctx.stream_reader(fp) as reader:
                    data = reader.read()
        elif compress == "lzma":
            with lzma.LZMAFile(filename=path, mode="rb") as reader:
                data = reader.read()
        else:
            with open(path, "rb") as fp:
                data = fp.read()
    except (OSError, EOFError, *compress_errors) as err:
        raise HsyncSystemError(f"Cannot load rename document '{path}': {err}") from err

    try:
        text = data.decode("utf8")
    except UnicodeDecodeError as err:
        raise HsyncParseError(f"Invalid rename document '{path}': {err}") from err
    return loads_plan(text)


__all__ = [
    "dumps_plan",
    "loads_plan",
    "load_plan",
    "save_plan",
    "write_plan",
]
