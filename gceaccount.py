#!/usr/bin/env python3

# Set up, check, or remove the image import service account
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

from bsdimage import account
from bsdimage import argutil
from bsdimage import errors
from bsdimage import gcloud
from bsdimage import logutil

SETUP = "setup"
CHECK = "check"
CLEANUP = "cleanup"


def confirm(prompt):
    try:
        return input(prompt).strip().lower() == "yes"
    except EOFError:
        return False


def main():

    parser = argparse.ArgumentParser(description="Manage the service account used to import OpenBSD images",
                                     epilog=("setup: create the account, grant roles, write a key"
                                             "; check: verify all of that"
                                             "; cleanup: remove it all"))
    parser.add_argument("command", choices=[SETUP, CHECK, CLEANUP],
                        help="what to do")
    parser.add_argument("--key-file", default=account.KEY_FILE,
                        help="service account key file (default: %(default)s)")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="do not ask for confirmation before cleanup")
    argutil.add_project_arguments(parser, zone=False)
    logutil.add_arguments(parser)

    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("gceaccount", args.command)

    logger.info("Account arguments:")
    logger.info("  command: %s", args.command)
    logger.info("  key-file: %s", args.key_file)
    argutil.log_project_arguments(logger, args)
    logutil.log_arguments(logger, args)

    try:
        gcloud.require([gcloud.GCLOUD])
        cloud = gcloud.GCloud(logger, args.project_id)
        manager = account.Account(logger, cloud, key_file=args.key_file)
        logger.info("project %s, service account %s", args.project_id, manager)

        if args.command == SETUP:
            manager.setup()
        elif args.command == CHECK:
            cloud.set_project()
            if manager.check():
                logger.error("some checks failed; run: %s setup", parser.prog)
                return 1
            logger.info("all checks passed")
        elif args.command == CLEANUP:
            if not args.yes and not confirm("This will remove %s and its keys. Are you sure? (yes/no): "
                                            % manager):
                logger.info("cleanup cancelled")
                return 0
            manager.cleanup()
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
