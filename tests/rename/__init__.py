# Copyright Red Hat
#
# tests/rename/__init__.py - Rename test package
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
