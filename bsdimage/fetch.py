# Download, and cache, the OpenBSD install ISO.
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

# XXX: the size test is the only integrity check.  It catches a
# truncated download or an HTML error page, not a corrupt or tampered
# image; SHA256.sig is never looked at.

import os

from bsdimage import errors
from bsdimage import shell
from bsdimage import workspace

# install78.iso is ~650MB; anything under this is junk.
MINIMUM_ISO_SIZE = 300000000


def _size(path):
    try:
        return os.path.getsize(path)
    except FileNotFoundError:
        return 0


def _remove(logger, path):
    if os.path.exists(path):
        logger.debug("removing %s", path)
        os.remove(path)


def download_command(url, path):
    """The command that fetches URL into PATH, or None"""
    if shell.which("curl"):
        return ["curl", "-L", "--fail", "--progress-bar", "-o", path, url]
    if shell.which("wget"):
        return ["wget", "--progress=bar:force", "-O", path, url]
    return None


def fetch_iso(logger, version, path, force=False, minimum=MINIMUM_ISO_SIZE):
    """Make PATH a verified install ISO for VERSION; return PATH

    A file of at least MINIMUM bytes already at PATH is used as is.

    """

    url = workspace.iso_url(version)

    size = _size(path)
    if size >= minimum and not force:
        logger.info("ISO %s already exists and looks valid (%d bytes), skipping download",
                    path, size)
        return path
    if size:
        if force:
            logger.info("forcing download of %s, removing existing ISO", url)
        else:
            logger.warning("ISO %s exists but seems too small (%d bytes), re-downloading",
                           path, size)
    _remove(logger, path)

    command = download_command(url, path)
    if not command:
        raise errors.DownloadError("neither curl nor wget is available to download %s" % url)

    os.makedirs(os.path.dirname(path), exist_ok=True)
    with logger.time("downloading OpenBSD %s ISO from %s", version, url):
        status = shell.stream(logger, command)
    if status:
        _remove(logger, path)
        raise errors.DownloadError("%s exited with status %s downloading %s"
                                   % (command[0], status, url))

    if not os.path.exists(path):
        raise errors.DownloadError("download of %s did not create %s" % (url, path))
    size = _size(path)
    if size < minimum:
        _remove(logger, path)
        raise errors.DownloadError("downloaded ISO is too small (%d bytes), may be corrupted"
                                   % size)

    logger.info("ISO downloaded: %s (%d bytes); note: only the size was checked, no checksum",
                path, size)
    return path
