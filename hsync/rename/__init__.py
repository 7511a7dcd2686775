# Copyright Red Hat
#
# hsync/rename/__init__.py - Hierarchy synchronizer rename package
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Rename package.

Provides the rename relation built from a fingerprint table or a replayed
preview document, the resolver that applies it to a TARGET tree, and
preview document load and save support.
"""
from .plan import dumps_plan, load_plan, loads_plan, save_plan, write_plan
from .relation import RenameRelation
from .resolver import RenameResolver, RenameResult, RenameStatus

__all__ = [
    "RenameRelation",
    "RenameResolver",
    "RenameResult",
    "RenameStatus",
    "dumps_plan",
    "load_plan",
    "loads_plan",
    "save_plan",
    "write_plan",
]
