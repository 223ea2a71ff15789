#!/usr/bin/env python3

# Delete the VMs, images and GCS objects an import created
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
from bsdimage import cleanup
from bsdimage import errors
from bsdimage import gcloud
from bsdimage import logutil


def main():

    parser = argparse.ArgumentParser(description="Delete OpenBSD GCP resources (VMs, images, GCS files)")
    parser.add_argument("--vm", default=None, metavar="NAME",
                        help="delete the VM %(metavar)s")
    parser.add_argument("--image", default=None, metavar="NAME",
                        help="delete the image %(metavar)s")
    parser.add_argument("--gcs-file", default=None, metavar="NAME",
                        help="delete %(metavar)s from the bucket")
    parser.add_argument("--dry-run", action="store_true",
                        help="show what would be deleted without deleting anything")
    argutil.add_project_arguments(parser, bucket=True)
    logutil.add_arguments(parser)

    args = parser.parse_args()
    if not (args.vm or args.image or args.gcs_file):
        parser.error("no resources specified; use --vm, --image or --gcs-file")

    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("gcecleanup")

    logger.info("Cleanup arguments:")
    logger.info("  vm: %s", args.vm)
    logger.info("  image: %s", args.image)
    logger.info("  gcs-file: %s", args.gcs_file)
    logger.info("  dry-run: %s", args.dry_run)
    argutil.log_project_arguments(logger, args)
    logutil.log_arguments(logger, args)

    bucket = args.bucket or args.project_id + "-images"
    try:
        gcloud.require()
        cloud = gcloud.GCloud(logger, args.project_id, zone=args.zone)
        report = cleanup.cleanup(logger, cloud, vm=args.vm, image=args.image,
                                 bucket=bucket, gcs_file=args.gcs_file,
                                 dry_run=args.dry_run)
        for target, outcome in report:
            logger.info("%s: %s", target, outcome)
        if any(outcome == cleanup.FAILED for _, outcome in report):
            logger.error("some resources could not be deleted")
            return 1
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
