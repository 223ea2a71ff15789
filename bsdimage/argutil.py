# Some argument parsing functions.
#
# Copyright (C) 2025  The bsdimage Authors
#
# This program is free software; you can redistribute it and/or modify it
# under the terms of the GNU General Public License as published by the
# Free Software Foundation; either version 2 of the License, or (at your
# option) any later version.  See <https://www.gnu.org/licenses/gpl2.txt>.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of MERCHANTABILITY
# or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License
# for more details.

import argparse
import os
import re


class MetaList(type):
    def __new__(cls, name, bases, namespace, **kwds):
        result = type.__new__(cls, name, bases, namespace, **kwds)

        # The string names are mapped onto the canonical member names
        # so that the construct:
        #
        #    for p in List(List.member): p is List.member
        #
        # works.
        members = {}
        for name, value in namespace.items():
            if name.startswith("_") or not isinstance(value, str):
                continue
            members[value] = value
        result._members_ = members
        result._metavar_ = "{" + ",".join(sorted(members)) + "},..."
        return result

    def __str__(cls):
        return cls._metavar_


class List(metaclass=MetaList):
    """A comma separated list of members; subclass to add members"""

    def __init__(self, *args):
        self.args = []
        for arg in args:
            for member in arg.split(","):
                if not member:
                    continue
                if member not in self._members_:
                    raise ValueError("unknown member '%s', expecting %s"
                                     % (member, type(self)._metavar_))
                if self._members_[member] not in self.args:
                    self.args.append(self._members_[member])

    def __iter__(self):
        return self.args.__iter__()

    def __str__(self):
        return ",".join(self.args)

    def __contains__(self, member):
        return member in self.args

    def __bool__(self):
        return bool(self.args)

    def __len__(self):
        return len(self.args)


def timeout(arg):
    arg = arg.lower()
    if arg == "none" or arg == "infinite":
        return None
    v = float(arg)
    if v < 0:
        return None
    return v


_SIZE = re.compile(r"^[1-9][0-9]*[KMGT]?$")

def size(arg):
    """A qemu style size: 30G, 2048M, ..."""
    arg = arg.upper()
    if not _SIZE.match(arg):
        raise argparse.ArgumentTypeError("invalid size '%s', expecting a number optionally followed by K, M, G or T" % arg)
    return arg


def positive(arg):
    v = int(arg)
    if v < 1:
        raise argparse.ArgumentTypeError("'%s' must be at least 1" % arg)
    return v


def gcs_path(arg):
    if not arg.startswith("gs://"):
        raise argparse.ArgumentTypeError("'%s' is not a GCS path (gs://...)" % arg)
    return arg


def environ(*names, default=None):
    """The first of the environment variables NAMES that is set"""
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return default


def add_project_arguments(parser, zone=True, bucket=False):
    group = parser.add_argument_group("Google Cloud arguments")
    project = environ("PROJECT_ID", "GOOGLE_CLOUD_PROJECT", "CLOUDSDK_CORE_PROJECT")
    group.add_argument("--project-id", default=project, required=project is None,
                       metavar="PROJECT",
                       help="GCP project ID (default: $PROJECT_ID or $GOOGLE_CLOUD_PROJECT: %(default)s)")
    if zone:
        group.add_argument("--zone", default=environ("GCP_ZONE", default="us-central1-a"),
                           help="GCP zone (default: $GCP_ZONE or %(default)s)")
    if bucket:
        group.add_argument("--bucket",
                           default=environ("GCS_BUCKET", default=project and project + "-images"),
                           help="GCS bucket name (default: $GCS_BUCKET or <PROJECT>-images: %(default)s)")


def log_project_arguments(logger, args):
    logger.info("Google Cloud arguments:")
    logger.info("  project-id: %s", args.project_id)
    if "zone" in args:
        logger.info("  zone: %s", args.zone)
    if "bucket" in args:
        logger.info("  bucket: %s", args.bucket)
