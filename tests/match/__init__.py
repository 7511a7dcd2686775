# Copyright Red Hat
#
# tests/match/__init__.py - Content matching test package
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
