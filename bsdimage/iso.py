# Compose the ISO9660 volumes the VM boots from.
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

# Two ways to get the autoinstall files in front of the installer:
#
# - a small config volume, attached as the first CD-ROM next to the
#   untouched install ISO (the installer shell mounts it as cd0)
#
# - a copy of the install ISO with the files added (one CD-ROM,
#   still cd0); the El Torito boot image has to be found and re-used
#   by hand
#
# The installer's shell script references the files by path, so the
# layout (see autoinstall.Bundle) is fixed.

import os
import shutil

from bsdimage import errors
from bsdimage import shell
from bsdimage import workspace

# El Torito boot images, in order of preference.
BOOT_FILES = ("cdbr", "cdboot")


def _copy_bundle(bundle, directory):
    for name in bundle.files():
        source = bundle.path(name)
        target = os.path.join(directory, name)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        shutil.copy2(source, target)


def _xorriso(logger, arguments, iso, logfile):
    if not shell.which("xorriso"):
        raise errors.MissingDependencyError(["xorriso"], "xorriso is needed to create ISO images")
    command = ["xorriso", "-as", "mkisofs", "-o", iso] + arguments
    status = shell.stream(logger, command, logfile=logfile)
    if status:
        raise errors.ComposeError("xorriso failed with status %s creating %s%s"
                                  % (status, iso, logfile and "; see " + logfile or ""))
    if not os.path.isfile(iso):
        raise errors.ComposeError("xorriso did not create %s" % iso)
    logger.info("created %s (%d bytes)", iso, os.path.getsize(iso))
    return iso


def compose_config_iso(logger, bundle, iso, logfile=None):
    """Build ISO, a plain Rock Ridge/Joliet volume holding BUNDLE"""

    staging = iso + ".d"
    if os.path.exists(staging):
        shutil.rmtree(staging)
    os.makedirs(staging)
    try:
        _copy_bundle(bundle, staging)
        logger.debug("config volume contents: %s", sorted(bundle.files()))
        with logger.time("creating config ISO %s", iso):
            return _xorriso(logger, ["-R", "-J", staging], iso, logfile)
    finally:
        shutil.rmtree(staging)


def extract_command(iso, directory):
    if shell.which("7z"):
        return ["7z", "x", "-y", "-o" + directory, iso]
    if shell.which("bsdtar"):
        return ["bsdtar", "-xf", iso, "-C", directory]
    return None


def find_boot_file(logger, directory, version):
    """Find the El Torito boot image; move it to the root if needed

    Returns the name, relative to DIRECTORY, that -b should be given.

    """
    nested = os.path.join(directory, version, workspace.ARCH)
    for boot in BOOT_FILES:
        if os.path.isfile(os.path.join(directory, boot)):
            logger.info("using boot file %s", boot)
            return boot
        source = os.path.join(nested, boot)
        if os.path.isfile(source):
            logger.info("using boot file %s (from %s)", boot, source)
            shutil.copy2(source, os.path.join(directory, boot))
            return boot
    raise errors.ComposeError("cannot find %s in the extracted ISO; contents: %s"
                              % (" or ".join(BOOT_FILES), sorted(os.listdir(directory))))


def patch_install_iso(logger, original, patched, bundle, version, logfile=None):
    """Write PATCHED, a bootable copy of ORIGINAL with BUNDLE added"""

    staging = patched + ".d"
    if os.path.exists(staging):
        shutil.rmtree(staging)
    os.makedirs(staging)
    try:
        command = extract_command(original, staging)
        if not command:
            raise errors.MissingDependencyError(["7z or bsdtar"],
                                                "an extraction tool is needed to patch the install ISO")
        with logger.time("extracting %s", original):
            status, output = shell.run(logger, command)
        if status:
            raise errors.ComposeError("%s failed with status %s extracting %s\n%s"
                                      % (command[0], status, original, output))

        # the extracted files are read-only
        for root, dirs, files in os.walk(staging):
            for name in dirs + files:
                path = os.path.join(root, name)
                if not os.path.islink(path):
                    os.chmod(path, os.stat(path).st_mode | 0o200)

        _copy_bundle(bundle, staging)
        boot = find_boot_file(logger, staging, version)
        arguments = ["-R", "-J", "-l",
                     "-V", "OpenBSD_%s" % version,
                     "-c", "boot.catalog",
                     "-b", boot,
                     "-no-emul-boot",
                     "-boot-load-size", "4",
                     "-boot-info-table",
                     staging]
        with logger.time("creating patched ISO %s", patched):
            return _xorriso(logger, arguments, patched, logfile)
    finally:
        shutil.rmtree(staging)
