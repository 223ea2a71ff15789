# Stuff to run the installer VM under qemu.
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

import os

import pexpect

from bsdimage import argutil
from bsdimage import console
from bsdimage import shell
from bsdimage import timing

QEMU = "qemu-system-x86_64"
QEMU_IMG = "qemu-img"

DEFAULT_MEMORY = "2G"
DEFAULT_CPUS = 2
DEFAULT_DISK_SIZE = "30G"

# Can be anything as it either matches immediately or dies with EOF.
DESTROY_TIMEOUT = 20


def create_disk(logger, path, size):
    """Create a fresh (sparse) raw disk, replacing any earlier one"""
    if os.path.exists(path):
        logger.info("removing old disk %s", path)
        os.remove(path)
    output = shell.check(logger, [QEMU_IMG, "create", "-f", "raw", path, size])
    logger.info("created %s disk %s: %s", size, path, output)
    return path


class Machine:
    """One qemu process: a virtio disk, and one or two CD-ROMs

    The CD-ROMs are listed in order; the first ends up as cd0 inside
    OpenBSD.  With a separate config volume it must come first so that
    the installer shell can mount /dev/cd0c without guessing.

    """

    def __init__(self, logger, disk, cdroms, memory=DEFAULT_MEMORY, cpus=DEFAULT_CPUS):
        self.logger = logger
        self.disk = disk
        self.cdroms = list(cdroms)
        self.memory = memory
        self.cpus = cpus
        # ._console is three state: None when not started; False
        # when shutdown; else the console.
        self._console = None

    def __str__(self):
        return "machine " + os.path.basename(self.disk)

    def command(self):
        command = [QEMU, "-nographic",
                   "-smp", str(self.cpus),
                   "-m", self.memory,
                   "-drive", "if=virtio,file=%s,format=raw" % self.disk]
        for cdrom in self.cdroms:
            command += ["-drive", "file=%s,media=cdrom,readonly=on" % cdrom]
        command += ["-net", "nic,model=virtio",
                    "-net", "user",
                    "-boot", "once=d"]
        return command

    def start(self, transcript=None):
        command = self.command()
        self.logger.info("spawning: %s", " ".join(command))
        self._console = console.Console(command, self.logger, transcript=transcript)
        return self._console

    def wait_for_shutdown(self, timeout):
        """Wait for qemu to exit (EOF); false if it didn't"""
        if not self._console:
            return True
        lapsed_time = timing.Lapsed()
        if self._console.expect([pexpect.EOF, pexpect.TIMEOUT], timeout=timeout) == 0:
            self.logger.info("got EOF; machine shut down after %s", lapsed_time)
            self.close()
            self._console = False
            return True
        return False

    def destroy(self):
        """Kill qemu; the disk is left in whatever state it was in"""
        if not self._console:
            return True
        self.logger.info("destroying machine")
        self._console.terminate(force=True)
        destroyed = self.wait_for_shutdown(DESTROY_TIMEOUT)
        if not destroyed:
            self.logger.error("timeout destroying machine, giving up")
        self.close()
        self._console = False
        return destroyed

    def close(self):
        if self._console:
            self._console.close()


def add_arguments(parser):
    group = parser.add_argument_group("Virtual machine arguments")
    group.add_argument("--memory", default=DEFAULT_MEMORY, type=argutil.size,
                       help="VM memory size (default: %(default)s)")
    group.add_argument("--cpus", default=DEFAULT_CPUS, type=argutil.positive,
                       help="VM CPU count (default: %(default)s)")
    group.add_argument("--disk-size", default=DEFAULT_DISK_SIZE, type=argutil.size,
                       help="raw disk size (default: %(default)s)")


def log_arguments(logger, args):
    logger.info("Virtual machine arguments:")
    logger.info("  memory: %s", args.memory)
    logger.info("  cpus: %s", args.cpus)
    logger.info("  disk-size: %s", args.disk_size)
