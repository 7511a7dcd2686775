# Copyright Red Hat
#
# hsync/__main__.py - Hierarchy synchronizer module entry point
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import sys

from hsync.command import main

sys.exit(main(sys.argv))
