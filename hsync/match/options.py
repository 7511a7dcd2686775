# Copyright Red Hat
#
# hsync/match/options.py - Hierarchy synchronizer options
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Synchronizer options and configuration file support.
"""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple, Union
from argparse import Namespace
from configparser import ConfigParser, Error as ConfigParserError
from os.path import exists
import logging

from hsync import HsyncArgumentError

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Size of one rolling checksum block in bytes.
BLOCKSIZE = 4096

#: Supported rolling digest algorithms.
HASH_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")

#: Default configuration file location.
HSYNC_CONFIG_FILE = "/etc/hsync/hsync.conf"

_HSYNC_CFG_GLOBAL = "global"

_BOOL_KEYS = ("clobber", "process", "quiet")


@dataclass(frozen=True)
class SyncOptions:
    """
    Hierarchy synchronizer options.
    """

    #: Overwrite existing destination files when renaming
    clobber: bool = False
    #: Perform the renames instead of printing a preview
    process: bool = False
    #: Number of bytes hashed by each checksum roll
    block_size: int = BLOCKSIZE
    #: Rolling digest algorithm
    hash_algorithm: str = "md5"
    #: Relative path patterns to exclude (glob notation)
    exclude_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: Do not output progress or status updates
    quiet: bool = False

    def __post_init__(self):
        if self.block_size <= 0:
            raise HsyncArgumentError(
                f"Invalid block size: {self.block_size} (must be positive)"
            )
        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise HsyncArgumentError(
                f"Unknown hash algorithm: {self.hash_algorithm} "
                f"(expected one of {', '.join(HASH_ALGORITHMS)})"
            )

    def __str__(self):
        """
        Return a human readable string representation of this
        ``SyncOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        items = [
            (key, val) if not isinstance(val, tuple) else (key, " ".join(val))
            for key, val in self.__dict__.items()
        ]
        return "\n".join(f"{key}={val}" for key, val in items)

    def merge(self, **overrides: Any) -> "SyncOptions":
        """
        Return a copy of this ``SyncOptions`` with the non-``None`` values
        in ``overrides`` applied.

        :returns: A new ``SyncOptions`` instance.
        :rtype: ``SyncOptions``
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_cmd_args(
        cls, cmd_args: Namespace, base: Optional["SyncOptions"] = None
    ) -> "SyncOptions":
        """
        Initialise SyncOptions from command line arguments.

        Values present in ``cmd_args`` override those of ``base``, which
        is normally loaded from the configuration file.

        :param cmd_args: The command line arguments.
        :type cmd_args: ``Namespace``
        :param base: Optional options to use for values not given on the
                     command line.
        :type base: ``Optional[SyncOptions]``
        :returns: A new ``SyncOptions`` instance
        :rtype: ``SyncOptions``
        """

        def get_value(name: str) -> Union[bool, int, str, Tuple[str, ...], None]:
            """
            Get a value from ``cmd_args``, converting lists to tuples and
            unset flags to ``None``.
            """
            attr = getattr(cmd_args, name)
            if isinstance(attr, list):
                return tuple(attr) or None
            if attr is False and name in _BOOL_KEYS:
                return None
            return attr

        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: get_value(name) for name in field_names if hasattr(cmd_args, name)
        }
        options = (base or cls()).merge(**kwargs)
        _log_debug("Initialised SyncOptions from arguments: %s", repr(options))
        return options

    @classmethod
    def from_file(cls, config_file: str) -> "SyncOptions":
        """
        Load ``SyncOptions`` from an INI-style configuration file located at
        ``config_file``. A missing file yields the default options.

        :param config_file: path to hsync.conf
        :type config_file: ``str``.
        :returns: A ``SyncOptions`` instance initialised from ``config_file``.
        :rtype: ``SyncOptions``
        :raises ``HsyncArgumentError``: If the file contains invalid values.
        """
        if not exists(config_file):
            return cls()

        _log_debug("Loading configuration from '%s'", config_file)
        cfg = ConfigParser()
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            raise HsyncArgumentError(
                f"Could not parse configuration file {config_file}: {err}"
            ) from err

        if not cfg.has_section(_HSYNC_CFG_GLOBAL):
            return cls()

        section = cfg[_HSYNC_CFG_GLOBAL]
        kwargs: Dict[str, Any] = {}
        try:
            for key in _BOOL_KEYS:
                if key in section:
                    kwargs[key] = section.getboolean(key)
            if "block_size" in section:
                kwargs["block_size"] = section.getint("block_size")
        except ValueError as err:
            raise HsyncArgumentError(
                f"Invalid value in configuration file {config_file}: {err}"
            ) from err
        if "hash_algorithm" in section:
            kwargs["hash_algorithm"] = section["hash_algorithm"].strip()
        if "exclude_patterns" in section:
            patterns = section["exclude_patterns"].split(",")
            kwargs["exclude_patterns"] = tuple(p.strip() for p in patterns if p.strip())

        for key in section:
            if key not in kwargs:
                _log_warn("Ignoring unknown configuration key '%s' in %s", key, config_file)

        return cls(**kwargs)
