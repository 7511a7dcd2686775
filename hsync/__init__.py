# Copyright Red Hat
#
# hsync/__init__.py - Hierarchy synchronizer package initialisation
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Hsync top-level package.
"""
from ._hsync import *  # noqa: F401, F403
from ._hsync import __all__  # noqa: F401

__version__ = "0.1.0"
