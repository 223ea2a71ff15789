#!/usr/bin/env python3

# Upload a built image to Cloud Storage
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
from bsdimage import logutil
from bsdimage import upload


def main():

    parser = argparse.ArgumentParser(description="Upload an OpenBSD image to a GCS bucket, creating the bucket if needed")
    parser.add_argument("--source-file", required=True, metavar="PATH",
                        help="local image (for instance build/artifacts/openbsd-7.8.vmdk)")
    parser.add_argument("--object-name", default=None,
                        help="object name in the bucket (default: the file's basename)")
    argutil.add_project_arguments(parser, zone=False, bucket=True)
    logutil.add_arguments(parser)

    args = parser.parse_args()
    logutil.config(args, sys.stderr)
    logger = logutil.getLogger("gceupload")

    logger.info("Upload arguments:")
    logger.info("  source-file: %s", args.source_file)
    logger.info("  object-name: %s", args.object_name)
    argutil.log_project_arguments(logger, args)
    logutil.log_arguments(logger, args)

    bucket = args.bucket or args.project_id + "-images"
    try:
        gcloud.require([gcloud.GSUTIL])
        cloud = gcloud.GCloud(logger, args.project_id)
        path = upload.upload(logger, cloud, args.source_file, bucket, name=args.object_name)
        logger.info("next: gceimport.py --source-file %s --name NAME", path)
    except errors.Error as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
