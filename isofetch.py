#!/usr/bin/env python3

# Download (and optionally patch) the OpenBSD install ISO
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
import sys

from bsdimage import autoinstall
from bsdimage import build
from bsdimage import errors
from bsdimage import fetch
from bsdimage import logutil
from bsdimage import shell
from bsdimage import workspace


def main():

    parser = argparse.ArgumentParser(description="Download the OpenBSD install ISO into the workspace cache")
    parser.add_argument("--version", default=build.DEFAULT_VERSION,
                        help="OpenBSD version (default: %(default)s)")
    parser.add_argument("--output", default=build.DEFAULT_OUTPUT, metavar="DIRECTORY",
                        help="workspace directory (default: %(default)s)")
    parser.add_argument("--force", action="store_true",
                        help="download again even when cached")
    parser.add_argument("--patch", action="store_true",
                        help="also write a copy of the ISO with the autoinstall files added")
    logutil.add_arguments(parser)

    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("isofetch", args.version)

    try:
        space = workspace.Workspace(args.output).setup(logger)
        iso = fetch.fetch_iso(logger, args.version, space.iso(args.version), force=args.force)
        logger.info("ISO: %s", iso)
        if args.patch:
            shell.require(["xorriso", ("7z", "bsdtar")], "xorriso and 7z or bsdtar are needed to patch the ISO")
            answers = autoinstall.Answers(args.version, sets_location="cd0")
            patched, = build.compose_media(logger, space, args.version, iso, answers,
                                           media=build.PATCHED_ISO)
            logger.info("patched ISO: %s", patched)
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
