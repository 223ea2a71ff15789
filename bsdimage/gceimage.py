# Create GCE images straight from a compressed raw disk.
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

# The raw.gz is unpacked to disk.raw and re-packed as a sparse
# tar.gz; that, and not the 30G raw disk, is what gets uploaded.
#
# The upload must be a single (non-composite) object, and is read
# back with gsutil cat to make sure GCE will find disk.raw in it.
#
# MBR images suit the older (N1, E2) machine types; UEFI images (the
# UEFI_COMPATIBLE guest feature) the newer ones.  Nothing checks which
# is used where.

import os
import tempfile
import time

from bsdimage import errors
from bsdimage import gcloud
from bsdimage import package
from bsdimage import profile
from bsdimage import shell
from bsdimage import timing
from bsdimage import upload
from bsdimage import workspace

FAMILY = "openbsd"

MBR = "mbr"
UEFI = "uefi"
BOTH = "both"

APIS = [
    "compute.googleapis.com",
    "storage-component.googleapis.com",
]
# seconds
API_WAIT = 10

TOOLS = ["tar", gcloud.GCLOUD, gcloud.GSUTIL]

DESCRIPTIONS = {
    MBR: "OpenBSD image (MBR/Legacy BIOS)",
    UEFI: "OpenBSD image (UEFI/GPT)",
}


def default_name():
    return "openbsd-" + timing.stamp()


def image_names(name, boot):
    """[(image, boot), ...] to create; BOTH adds -mbr and -uefi suffixes"""
    if boot == BOTH:
        return [(name + "-" + MBR, MBR), (name + "-" + UEFI, UEFI)]
    return [(name, boot)]


def existing_images(logger, cloud, names, force=False):
    """Return the NAMES already taken; without FORCE that is an error"""
    existing = [name for name in names if cloud.image_exists(name)]
    if existing and not force:
        raise errors.NameConflictError(existing)
    if existing:
        logger.warning("found existing images %s; they will be replaced (--force enabled)",
                       ", ".join(existing))
    return existing


def delete_images(logger, cloud, names):
    for name in names:
        logger.info("deleting existing image %s", name)
        cloud.delete_image(name)


def check_conflicts(logger, cloud, names, force=False):
    """Deal with images that already exist

    Without FORCE they are an error; with it they are deleted.

    """
    existing = existing_images(logger, cloud, names, force=force)
    delete_images(logger, cloud, existing)
    return existing


def enable_apis(logger, cloud, sleep=time.sleep):
    needed = [api for api in APIS if not cloud.service_enabled(api)]
    for api in needed:
        logger.info("enabling %s", api)
        if not cloud.enable_service(api):
            logger.warning("failed to enable %s", api)
    if needed:
        logger.info("waiting %s seconds for API activation", API_WAIT)
        sleep(API_WAIT)
    return needed


def verify_remote(logger, cloud, path):
    """Re-read PATH from the bucket and check its structure"""
    if cloud.is_composite(path):
        logger.warning("%s was uploaded as a composite object; the import may not be able to read it",
                       path)
    else:
        logger.info("%s uploaded as a single object", path)
    process = cloud.cat(path)
    try:
        package.verify_tar(logger, fileobj=process.stdout)
    finally:
        process.stdout.close()
        status = process.wait()
    if status:
        raise errors.CommandError([gcloud.GSUTIL, "cat", path], status, "")
    logger.info("%s is readable and contains %s", path, workspace.DISK_RAW)


def prepare(logger, cloud, image_file, bucket, name, directory):
    """raw.gz to tar.gz to gs://BUCKET/NAME.tar.gz; return the GCS path"""
    raw = package.decompress(logger, image_file, directory)
    archive = os.path.join(directory, name + ".tar.gz")
    package.archive(logger, raw, archive)
    path = upload.upload(logger, cloud, archive, bucket, composite=False)
    verify_remote(logger, cloud, path)
    return path


def create_images(logger, cloud, path, images, family=FAMILY):
    """Create each of IMAGES; fail only when none could be"""
    created = []
    for name, boot in images:
        logger.info("creating %s image %s", boot, name)
        try:
            cloud.create_image(name, path, family, uefi=(boot == UEFI),
                               description=DESCRIPTIONS[boot])
        except errors.CommandError as e:
            logger.error("failed to create %s image %s: %s", boot, name, e)
            continue
        created.append(name)
    if not created:
        raise errors.Error("no images were created")
    return created


def run(logger, cloud, image_file, bucket,
        name=None, boot=MBR, family=FAMILY, force=False,
        boto=None, sleep=time.sleep):
    """The whole thing; returns the names of the images created"""
    if not os.path.isfile(image_file):
        raise errors.Error("image file does not exist: %s" % image_file)
    shell.require(TOOLS, "tar and the Google Cloud SDK are needed to create images")
    name = name or default_name()
    images = image_names(name, boot)
    logger.info("creating %s from %s in %s", ", ".join(n for n, _ in images), image_file, cloud)

    profile.ensure_boto(logger, boto)
    enable_apis(logger, cloud, sleep=sleep)
    # Existing images are only deleted once the replacement is uploaded.
    existing = existing_images(logger, cloud, [n for n, _ in images], force=force)

    with tempfile.TemporaryDirectory(prefix="bsdimage-") as directory:
        path = prepare(logger, cloud, image_file, bucket, name, directory)

    delete_images(logger, cloud, existing)
    created = create_images(logger, cloud, path, images, family=family)
    for image in created:
        logger.info("created image %s (family %s)", image, family)
    return created


def add_arguments(parser):
    parser.add_argument("--image-file", required=True,
                        help="compressed raw disk to import (openbsd-VERSION.raw.gz)")
    parser.add_argument("--name", default=None,
                        help="image name (default: openbsd-<timestamp>)")
    parser.add_argument("--family", default=FAMILY,
                        help="image family (default: %(default)s)")
    boot = parser.add_mutually_exclusive_group()
    boot.add_argument("--boot-type", choices=[MBR, UEFI], default=MBR,
                      help="boot type (default: %(default)s)")
    boot.add_argument("--create-both", dest="boot_type", action="store_const", const=BOTH,
                      help="create both an MBR and a UEFI image")
    parser.add_argument("--force", action="store_true",
                        help="delete existing images with the same name and recreate them")


def log_arguments(logger, args):
    logger.info("Image arguments:")
    logger.info("  image-file: %s", args.image_file)
    logger.info("  name: %s", args.name)
    logger.info("  family: %s", args.family)
    logger.info("  boot-type: %s", args.boot_type)
    logger.info("  force: %s", args.force)
