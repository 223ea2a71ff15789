# Build an OpenBSD disk image, start to finish.
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

# The steps, in order:
#
#   check (and maybe install) the build tools
#   set up the workspace
#   fetch the install ISO (cached)
#   generate the autoinstall files and put them on a CD-ROM
#   create a blank raw disk and run the installer against it
#   convert the disk to the requested formats
#
# Any failure stops the build; nothing is cleaned up beyond killing
# qemu, so the workspace can be inspected (logs/install.log has the
# console transcript).

import os
import shutil

from bsdimage import argutil
from bsdimage import autoinstall
from bsdimage import deps
from bsdimage import fetch
from bsdimage import installer
from bsdimage import iso
from bsdimage import package
from bsdimage import qemu
from bsdimage import workspace

DEFAULT_VERSION = "7.8"
DEFAULT_OUTPUT = "build"

CONFIG_ISO = "config-iso"
PATCHED_ISO = "patched-iso"
MEDIA = [CONFIG_ISO, PATCHED_ISO]

INSTALL_LOG = "install.log"
XORRISO_LOG = "xorriso.log"


def compose_media(logger, space, version, install_iso, answers, media=CONFIG_ISO):
    """Return the CD-ROMs to attach, in order

    With CONFIG_ISO the config volume comes first so that it is cd0
    and the sets are on cd1; with PATCHED_ISO everything is on cd0.

    """
    bundle_directory = os.path.join(space.temp, "autoinstall")
    if os.path.exists(bundle_directory):
        shutil.rmtree(bundle_directory)
    bundle = autoinstall.generate(logger, bundle_directory, answers)
    try:
        if media == PATCHED_ISO:
            patched = iso.patch_install_iso(logger, install_iso, space.patched_iso(version),
                                            bundle, version, logfile=space.log(XORRISO_LOG))
            return [patched]
        config = iso.compose_config_iso(logger, bundle, space.config_iso(),
                                        logfile=space.log(XORRISO_LOG))
        return [config, install_iso]
    finally:
        shutil.rmtree(bundle_directory)


def install(logger, space, cdroms, memory=qemu.DEFAULT_MEMORY, cpus=qemu.DEFAULT_CPUS,
            root_password="root", timeouts=None):
    """Boot the installer with CDROMS and drive it to power-off"""
    machine = qemu.Machine(logger, space.disk_raw(), cdroms, memory=memory, cpus=cpus)
    transcript_path = space.log(INSTALL_LOG)
    logger.info("console transcript: %s", transcript_path)
    with open(transcript_path, "w") as transcript:
        try:
            console = machine.start(transcript=transcript)
            driver = installer.Installer(console, logger.nest("installer"),
                                         root_password=root_password, timeouts=timeouts)
            with logger.time("installing OpenBSD (this takes 15-30 minutes)"):
                driver.run()
        finally:
            machine.destroy()
    return driver.history


def build(logger,
          version=DEFAULT_VERSION,
          output=DEFAULT_OUTPUT,
          memory=qemu.DEFAULT_MEMORY,
          cpus=qemu.DEFAULT_CPUS,
          disk_size=qemu.DEFAULT_DISK_SIZE,
          force=False,
          auto_install=False,
          skip_install=False,
          media=CONFIG_ISO,
          formats=None,
          hostname=None,
          root_password="root",
          timeouts=None):
    """Run every step; return {format: artifact path}"""

    formats = formats or package.Formats(package.DEFAULT_FORMATS)

    deps.check(logger, auto_install=auto_install, skip_install=skip_install,
               patch_iso=(media == PATCHED_ISO))

    space = workspace.Workspace(output).setup(logger)

    install_iso = fetch.fetch_iso(logger, version, space.iso(version), force=force)

    answers = autoinstall.Answers(version, hostname=hostname, root_password=root_password,
                                  sets_location="cd0" if media == PATCHED_ISO else "cd1")
    cdroms = compose_media(logger, space, version, install_iso, answers, media=media)

    raw = qemu.create_disk(logger, space.disk_raw(), disk_size)
    install(logger, space, cdroms, memory=memory, cpus=cpus,
            root_password=root_password, timeouts=timeouts)

    artifacts = package.package(logger, raw, space, version, formats)
    logger.info("disk image created successfully; artifacts in %s", space.artifacts)
    for fmt, path in artifacts.items():
        logger.info("  %s: %s", fmt, path)
    if package.Formats.raw_gz in artifacts:
        logger.info("next: gceimage.py --image-file %s", artifacts[package.Formats.raw_gz])
    elif package.Formats.tar_gz in artifacts:
        logger.info("next: gceupload.py --source-file %s", artifacts[package.Formats.tar_gz])
    return artifacts


def add_arguments(parser):
    parser.add_argument("--version", default=DEFAULT_VERSION,
                        help="OpenBSD version (default: %(default)s)")
    parser.add_argument("--output", default=DEFAULT_OUTPUT, metavar="DIRECTORY",
                        help="workspace directory (default: %(default)s)")
    parser.add_argument("--force", action="store_true",
                        help="download the install ISO again even when cached")
    parser.add_argument("--media", choices=MEDIA, default=CONFIG_ISO,
                        help=("how the autoinstall files reach the installer"
                              "; a separate config CD-ROM, or a patched copy of the install ISO"
                              " (default: %(default)s)"))
    parser.add_argument("--hostname", default=None,
                        help="hostname of the installed system (default: openbsd-VERSION)")
    parser.add_argument("--root-password", default="root",
                        help="root password of the installed system (default: %(default)s)")
    parser.add_argument("--install-timeout", metavar="SECONDS", type=argutil.timeout,
                        default=installer.TIMEOUTS[installer.State.AWAIT_COMPLETION],
                        help=("how long the unattended install may take; 'none' waits forever"
                              " (default: %(default)s)"))


def log_arguments(logger, args):
    logger.info("Build arguments:")
    logger.info("  version: %s", args.version)
    logger.info("  output: %s", args.output)
    logger.info("  force: %s", args.force)
    logger.info("  media: %s", args.media)
    logger.info("  hostname: %s", args.hostname)
    logger.info("  install-timeout: %s", args.install_timeout)
