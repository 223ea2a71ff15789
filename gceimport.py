#!/usr/bin/env python3

# Import an uploaded OpenBSD disk as a GCE image, optionally booting it
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

from bsdimage import argutil
from bsdimage import errors
from bsdimage import gcloud
from bsdimage import importer
from bsdimage import logutil


def main():

    parser = argparse.ArgumentParser(description="Import an OpenBSD disk from GCS as a data disk image and optionally create a VM",
                                     epilog="gcloud warns 'This is a data disk'; that is expected for OpenBSD")
    importer.add_arguments(parser)
    argutil.add_project_arguments(parser)
    logutil.add_arguments(parser)

    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("gceimport", args.name)

    importer.log_arguments(logger, args)
    argutil.log_project_arguments(logger, args)
    logutil.log_arguments(logger, args)

    try:
        gcloud.require([gcloud.GCLOUD])
        cloud = gcloud.GCloud(logger, args.project_id, zone=args.zone)
        importer.run(logger, cloud, args.source_file, args.name,
                     create=args.create_vm, vm=args.vm_name,
                     machine_type=args.machine_type, force=args.force)
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
