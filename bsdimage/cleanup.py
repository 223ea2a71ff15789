# Delete the cloud resources an import left behind.
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

# Each target is looked up first; missing is a warning, not an error.
# A dry run does the lookups (they change nothing) but never deletes.
# A failed delete is logged and reported; the remaining targets are
# still tried.

from bsdimage import errors
from bsdimage import gcloud

DELETED = "deleted"
WOULD_DELETE = "would delete"
NOT_FOUND = "not found"
FAILED = "failed"


class Target:

    def __init__(self, kind, name, exists, delete):
        self.kind = kind
        self.name = name
        self.exists = exists
        self.delete = delete

    def __str__(self):
        return "%s %s" % (self.kind, self.name)


def targets(cloud, vm=None, image=None, bucket=None, gcs_file=None):
    result = []
    if vm:
        result.append(Target("VM", vm, cloud.instance_exists, cloud.delete_instance))
    if image:
        result.append(Target("image", image, cloud.image_exists, cloud.delete_image))
    if gcs_file:
        if gcs_file.startswith("gs://"):
            path = gcs_file
        elif bucket:
            path = gcloud.gcs_path(bucket, gcs_file)
        else:
            raise errors.Error("a bucket is needed to delete %s" % gcs_file)
        result.append(Target("GCS file", path, cloud.object_exists, cloud.remove_object))
    return result


def cleanup(logger, cloud, vm=None, image=None, bucket=None, gcs_file=None, dry_run=False):
    """Delete the named resources; return [(target, outcome), ...]"""
    todo = targets(cloud, vm=vm, image=image, bucket=bucket, gcs_file=gcs_file)
    if not todo:
        raise errors.Error("no resources specified; use --vm, --image or --gcs-file")
    if dry_run:
        logger.warning("DRY RUN: no resources will be deleted")
    logger.info("project %s, zone %s", cloud.project, cloud.zone)

    report = []
    for target in todo:
        if not target.exists(target.name):
            logger.warning("%s not found", target)
            outcome = NOT_FOUND
        elif dry_run:
            logger.info("would delete %s", target)
            outcome = WOULD_DELETE
        else:
            logger.info("deleting %s", target)
            try:
                target.delete(target.name)
            except errors.CommandError as e:
                logger.warning("failed to delete %s: %s", target, e)
                outcome = FAILED
            else:
                logger.info("%s deleted", target)
                outcome = DELETED
        report.append((str(target), outcome))
    return report
