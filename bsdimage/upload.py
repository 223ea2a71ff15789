# Copy a local artifact into Cloud Storage.
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

from bsdimage import errors
from bsdimage import gcloud


def ensure_bucket(logger, cloud, bucket):
    if cloud.bucket_exists(bucket):
        logger.debug("bucket gs://%s exists", bucket)
        return False
    logger.info("creating bucket gs://%s", bucket)
    cloud.make_bucket(bucket)
    return True


def upload(logger, cloud, source, bucket, name=None, composite=True):
    """Upload SOURCE to gs://BUCKET/NAME; return that path

    NAME defaults to SOURCE's basename.  The bucket is created when
    missing.

    """
    if not os.path.isfile(source):
        raise errors.Error("file not found: %s" % source)
    path = gcloud.gcs_path(bucket, name or os.path.basename(source))
    logger.info("uploading %s (%d bytes) to %s", source, os.path.getsize(source), path)
    ensure_bucket(logger, cloud, bucket)
    with logger.time("uploading %s", path):
        cloud.copy(source, path, composite=composite)
    logger.info("upload complete: %s", path)
    return path
