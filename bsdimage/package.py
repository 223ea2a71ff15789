# Turn the installed raw disk into something that can be shipped.
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

# GCE only accepts a gzipped tar containing exactly one member called
# disk.raw; anything else is rejected long after the upload finished,
# so the archive is checked before it leaves the machine.

import gzip
import os
import shutil
import tarfile

from bsdimage import argutil
from bsdimage import errors
from bsdimage import shell
from bsdimage import workspace

QEMU_IMG = "qemu-img"


class Formats(argutil.List):
    qcow2 = "qcow2"
    vmdk = "vmdk"
    raw_gz = "raw.gz"
    tar_gz = "tar.gz"


DEFAULT_FORMATS = "qcow2,tar.gz"


def _qemu_img(logger, raw, target, fmt):
    command = [QEMU_IMG, "convert", "-f", "raw", "-O", fmt, raw, target]
    with logger.time("converting %s to %s", raw, fmt):
        status, output = shell.run(logger, command)
    if status:
        raise errors.PackageError("%s failed with status %s creating %s\n%s"
                                  % (QEMU_IMG, status, target, output))


def _gzip(logger, raw, target):
    with logger.time("compressing %s", raw):
        with open(raw, "rb") as src, gzip.open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)


def archive(logger, raw, target):
    """Write TARGET, a GCE style tar.gz of RAW (which must be disk.raw)"""
    directory = os.path.dirname(raw) or "."
    name = os.path.basename(raw)
    if name != workspace.DISK_RAW:
        raise errors.PackageError("GCE archives must contain %s, not %s"
                                  % (workspace.DISK_RAW, name))
    command = ["tar", "-C", directory, "-Szcf", target, name]
    with logger.time("archiving %s", raw):
        status, output = shell.run(logger, command)
    if status:
        raise errors.PackageError("tar failed with status %s creating %s\n%s"
                                  % (status, target, output))
    verify_tar(logger, target)


def verify_tar(logger, path=None, fileobj=None):
    """Check that the archive holds disk.raw and nothing else

    Either PATH or an open (binary) FILEOBJ, which is read as a stream.

    """
    try:
        if fileobj is not None:
            tar = tarfile.open(fileobj=fileobj, mode="r|gz")
        else:
            tar = tarfile.open(path, mode="r:gz")
        with tar:
            names = [member.name for member in tar]
    except (tarfile.TarError, OSError, EOFError) as e:
        raise errors.PackageError("cannot read %s: %s" % (path or "archive", e)) from e
    logger.debug("archive contents: %s", names)
    if names != [workspace.DISK_RAW]:
        raise errors.PackageError("invalid archive structure: expected a single %s, found %s"
                                  % (workspace.DISK_RAW, names or "nothing"))
    logger.info("archive structure verified: contains %s", workspace.DISK_RAW)
    return names


def decompress(logger, raw_gz, directory):
    """Expand RAW_GZ into DIRECTORY/disk.raw; return the path"""
    raw = os.path.join(directory, workspace.DISK_RAW)
    if os.path.exists(raw):
        os.remove(raw)
    with logger.time("decompressing %s", raw_gz):
        try:
            with gzip.open(raw_gz, "rb") as src, open(raw, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except (OSError, EOFError) as e:
            raise errors.PackageError("cannot decompress %s: %s" % (raw_gz, e)) from e
    logger.info("disk.raw size: %d bytes", os.path.getsize(raw))
    return raw


def package(logger, raw, space, version, formats):
    """Write each of FORMATS; return {format: path}

    Stops at the first failure.

    """
    if not os.path.isfile(raw):
        raise errors.PackageError("raw disk %s does not exist" % raw)
    artifacts = {}
    for fmt in formats:
        target = space.artifact(version, fmt)
        if os.path.exists(target):
            os.remove(target)
        logger.info("creating %s image %s", fmt, target)
        if fmt in (Formats.qcow2, Formats.vmdk):
            _qemu_img(logger, raw, target, fmt)
        elif fmt == Formats.raw_gz:
            _gzip(logger, raw, target)
        elif fmt == Formats.tar_gz:
            archive(logger, raw, target)
        else:
            raise errors.PackageError("unknown format %s" % fmt)
        artifacts[fmt] = target
    return artifacts


def add_arguments(parser):
    parser.add_argument("--formats", type=Formats, default=Formats(DEFAULT_FORMATS),
                        metavar=str(Formats),
                        help="image formats to create (default: %(default)s)")


def log_arguments(logger, args):
    logger.info("Package arguments:")
    logger.info("  formats: %s", args.formats)
