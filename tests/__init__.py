# Copyright Red Hat
#
# tests/__init__.py - Hierarchy synchronizer test package
#
# This file is part of the hsync project.
#
# SPDX-License-Identifier: Apache-2.0
import logging

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)


class MockArgs(object):
    debug = None
    verbose = 0
    version = False
    config = "/nonexistent/hsync.conf"
    clobber = False
    process = False
    output = None
    quiet = True
    exclude_patterns = None
    block_size = None
    hash_algorithm = None
    source = None
    target = None
