#!/usr/bin/env python3

# Build an OpenBSD image for Google Compute Engine, unattended
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
import faulthandler
import signal
import sys

import setproctitle

from bsdimage import build
from bsdimage import deps
from bsdimage import errors
from bsdimage import installer
from bsdimage import logutil
from bsdimage import package
from bsdimage import qemu


def main():

    # If SIGUSR1, backtrace all threads; hopefully this is early
    # enough.
    faulthandler.register(signal.SIGUSR1)

    parser = argparse.ArgumentParser(description="Install OpenBSD onto a raw disk under qemu and package it for GCE",
                                     epilog=("The installer is driven over the serial console; the install takes 15-30 minutes"
                                             ".  SIGUSR1 will dump all thread stacks"))
    build.add_arguments(parser)
    qemu.add_arguments(parser)
    package.add_arguments(parser)
    deps.add_arguments(parser)
    logutil.add_arguments(parser)

    # These three calls go together
    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("bsdbuild", args.version)

    setproctitle.setproctitle("bsdbuild %s" % args.version)

    build.log_arguments(logger, args)
    qemu.log_arguments(logger, args)
    package.log_arguments(logger, args)
    logutil.log_arguments(logger, args)

    try:
        build.build(logger,
                    version=args.version,
                    output=args.output,
                    memory=args.memory,
                    cpus=args.cpus,
                    disk_size=args.disk_size,
                    force=args.force,
                    auto_install=args.auto_install,
                    skip_install=args.skip_install,
                    media=args.media,
                    formats=args.formats,
                    hostname=args.hostname,
                    root_password=args.root_password,
                    timeouts={installer.State.AWAIT_COMPLETION: args.install_timeout})
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
