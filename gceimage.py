#!/usr/bin/env python3

# Turn openbsd-VERSION.raw.gz into GCE images (MBR, UEFI, or both)
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
from bsdimage import gceimage
from bsdimage import gcloud
from bsdimage import logutil


def main():

    parser = argparse.ArgumentParser(description="Create GCE images from a compressed raw OpenBSD disk",
                                     epilog=("MBR images suit N1 and E2 machine types"
                                             "; UEFI images suit N2, C2 and Tau machine types"))
    gceimage.add_arguments(parser)
    argutil.add_project_arguments(parser, bucket=True)
    logutil.add_arguments(parser)

    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("gceimage")

    gceimage.log_arguments(logger, args)
    argutil.log_project_arguments(logger, args)
    logutil.log_arguments(logger, args)

    bucket = args.bucket or args.project_id + "-images"
    try:
        cloud = gcloud.GCloud(logger, args.project_id, zone=args.zone)
        images = gceimage.run(logger, cloud, args.image_file, bucket,
                              name=args.name, boot=args.boot_type, family=args.family,
                              force=args.force)
        for image in images:
            logger.info("create a VM with: gcloud compute instances create openbsd-vm --image=%s"
                        " --zone=%s --project=%s", image, args.zone, args.project_id)
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
