# Import an uploaded disk as a GCE image, and maybe boot it.
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

# The import treats the disk as a data disk: GCE's OS adaptation only
# knows about Linux and Windows.  Expect gcloud to warn "This is a data
# disk".

from bsdimage import argutil
from bsdimage import errors
from bsdimage import gceimage

DEFAULT_MACHINE_TYPE = "e2-micro"


def vm_name(image):
    return image + "-vm"


def import_image(logger, cloud, source, name, force=False):
    if not source.startswith("gs://"):
        raise errors.Error("source must be a GCS path (gs://...), not %s; upload it first" % source)
    gceimage.check_conflicts(logger, cloud, [name], force=force)
    logger.info("importing %s as image %s (expect a 'This is a data disk' warning)", source, name)
    with logger.time("importing image %s", name):
        cloud.import_image(name, source)
    logger.info("image imported: %s", name)
    return name


def create_vm(logger, cloud, image, name=None, machine_type=DEFAULT_MACHINE_TYPE):
    name = name or vm_name(image)
    logger.info("creating VM %s from image %s (machine type %s)", name, image, machine_type)
    with logger.time("creating VM %s", name):
        cloud.create_instance(name, image, machine_type)
    logger.info("VM created: %s; connect with: gcloud compute ssh %s --zone=%s --project=%s",
                name, name, cloud.zone, cloud.project)
    return name


def run(logger, cloud, source, name, create=False, vm=None,
        machine_type=DEFAULT_MACHINE_TYPE, force=False):
    import_image(logger, cloud, source, name, force=force)
    if create:
        return create_vm(logger, cloud, name, name=vm, machine_type=machine_type)
    logger.info("to create a VM: gcloud compute instances create %s --image=%s --zone=%s"
                " --machine-type=%s --project=%s",
                vm or vm_name(name), name, cloud.zone, machine_type, cloud.project)
    return None


def add_arguments(parser):
    parser.add_argument("--source-file", required=True, type=argutil.gcs_path,
                        help="GCS path of the uploaded disk (gs://BUCKET/openbsd-VERSION.vmdk)")
    parser.add_argument("--name", required=True,
                        help="image name")
    parser.add_argument("--create-vm", action="store_true",
                        help="also create a VM from the image")
    parser.add_argument("--vm-name", default=None,
                        help="VM name (default: <NAME>-vm)")
    parser.add_argument("--machine-type", default=DEFAULT_MACHINE_TYPE,
                        help="machine type (default: %(default)s)")
    parser.add_argument("--force", action="store_true",
                        help="delete an existing image with the same name first")


def log_arguments(logger, args):
    logger.info("Import arguments:")
    logger.info("  source-file: %s", args.source_file)
    logger.info("  name: %s", args.name)
    logger.info("  create-vm: %s", args.create_vm)
    logger.info("  vm-name: %s", args.vm_name)
    logger.info("  machine-type: %s", args.machine_type)
    logger.info("  force: %s", args.force)
