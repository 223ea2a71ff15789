# The build workspace, and what gets called what inside it.
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

# All names are pure functions of the version string; nothing checks
# that the version was ever released (a bad one shows up as a failed
# download).
#
# There's no lock: two builds sharing a workspace will trample each
# other's temp/disk.raw.

import os

MIRROR = "https://cdn.openbsd.org/pub/OpenBSD"
ARCH = "amd64"

CACHE = "cache"
ARTIFACTS = "artifacts"
TEMP = "temp"
LOGS = "logs"
SUBDIRECTORIES = (ARTIFACTS, CACHE, TEMP, LOGS)

DISK_RAW = "disk.raw"


def compact(version):
    """7.8 -> 78, as used in OpenBSD's file names"""
    return version.replace(".", "")


def iso_name(version):
    return "install%s.iso" % compact(version)


def iso_url(version, mirror=MIRROR):
    return "%s/%s/%s/%s" % (mirror, version, ARCH, iso_name(version))


def site_name(version):
    return "site%s.tgz" % compact(version)


def artifact_name(version, suffix):
    """openbsd-7.8.qcow2, openbsd-7.8-gce.tar.gz, ..."""
    if suffix == "tar.gz":
        return "openbsd-%s-gce.tar.gz" % version
    return "openbsd-%s.%s" % (version, suffix)


class Workspace:

    def __init__(self, directory):
        self.directory = os.path.abspath(directory)
        self.cache = os.path.join(self.directory, CACHE)
        self.artifacts = os.path.join(self.directory, ARTIFACTS)
        self.temp = os.path.join(self.directory, TEMP)
        self.logs = os.path.join(self.directory, LOGS)

    def __str__(self):
        return self.directory

    def setup(self, logger):
        logger.info("setting up workspace %s", self.directory)
        for subdirectory in SUBDIRECTORIES:
            os.makedirs(os.path.join(self.directory, subdirectory), exist_ok=True)
        return self

    def iso(self, version):
        return os.path.join(self.cache, iso_name(version))

    def patched_iso(self, version):
        return os.path.join(self.cache, "install%s-auto.iso" % compact(version))

    def disk_raw(self):
        return os.path.join(self.temp, DISK_RAW)

    def config_iso(self):
        return os.path.join(self.temp, "config.iso")

    def artifact(self, version, suffix):
        return os.path.join(self.artifacts, artifact_name(version, suffix))

    def log(self, name):
        return os.path.join(self.logs, name)
