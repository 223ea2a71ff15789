# Edit the operator's shell profile and gsutil's .boto file.
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

# Edits are line based: earlier "export KEY=" lines and the marker
# comment are dropped and a fresh block is appended, so running setup
# twice leaves one block.  The file is backed up first when possible.

import os
import shutil

from bsdimage import timing

MARKER = "# Google Cloud credentials for OpenBSD VM deployment"

BOTO = os.path.join("~", ".config", "gcloud", ".boto")
BOTO_THRESHOLD = "parallel_composite_upload_threshold"
BOTO_SETTINGS = """[GSUtil]
# Enable parallel composite uploads for files larger than 50MB
parallel_composite_upload_threshold = 50M

# Additional performance settings
parallel_thread_count = 10
max_upload_compression_buffer_size = 2G

# Use resumable uploads for large files
resumable_threshold = 50M

# Additional optimization settings
parallel_process_count = 10
max_queue_requests = 50
"""


def shell_config(home=None, shell=None):
    """The profile the login shell reads: ~/.zshrc, ~/.bashrc, ..."""
    home = home or os.path.expanduser("~")
    shell = os.path.basename(shell if shell is not None else os.environ.get("SHELL", ""))
    if shell == "zsh":
        return os.path.join(home, ".zshrc")
    if shell == "bash":
        bashrc = os.path.join(home, ".bashrc")
        if os.path.isfile(bashrc):
            return bashrc
        return os.path.join(home, ".bash_profile")
    return os.path.join(home, ".profile")


def backup(logger, path, fmt=timing.BACKUP_STAMP):
    """Copy PATH to PATH.backup.<stamp>; a failure is only a warning"""
    if not os.path.isfile(path):
        return None
    target = "%s.backup.%s" % (path, timing.stamp(fmt))
    try:
        shutil.copy2(path, target)
    except OSError as e:
        logger.warning("could not back up %s: %s", path, e)
        return None
    logger.info("backed up %s to %s", path, target)
    return target


def _read(path):
    if not os.path.isfile(path):
        return []
    with open(path) as f:
        return f.read().splitlines()


def _write(path, lines):
    with open(path, "w") as f:
        for line in lines:
            f.write(line + "\n")


def _strip(lines, keys, marker):
    prefixes = tuple("export %s=" % key for key in keys)
    kept = [line for line in lines
            if not line.startswith(prefixes) and line != marker]
    while kept and not kept[-1].strip():
        kept.pop()
    return kept


def upsert_exports(logger, path, exports, marker=MARKER):
    """Replace any earlier EXPORTS, a list of (KEY, VALUE), in PATH"""
    backup(logger, path)
    lines = _strip(_read(path), [key for key, _ in exports], marker)
    if lines:
        lines.append("")
    lines.append(marker)
    for key, value in exports:
        lines.append('export %s="%s"' % (key, value))
    _write(path, lines)
    logger.info("environment variables set in %s", path)


def remove_exports(logger, path, keys, marker=MARKER):
    if not os.path.isfile(path):
        logger.info("%s not found, skipping", path)
        return False
    backup(logger, path)
    _write(path, _strip(_read(path), keys, marker))
    logger.info("environment variables removed from %s", path)
    return True


def mentions(path, keys):
    """True when every KEY appears somewhere in PATH"""
    text = "\n".join(_read(path))
    return all(key in text for key in keys)


def ensure_boto(logger, path=None):
    """Make sure gsutil is set up for parallel composite uploads"""
    path = os.path.expanduser(path or BOTO)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if os.path.isfile(path):
        backup(logger, path, fmt=timing.IMAGE_STAMP)
        with open(path) as f:
            existing = f.read()
        if BOTO_THRESHOLD in existing:
            logger.info("parallel composite upload settings already configured in %s", path)
            return path
        logger.info("adding parallel composite upload settings to %s", path)
        with open(path, "a") as f:
            f.write("\n# Added by bsdimage\n" + BOTO_SETTINGS)
    else:
        logger.info("creating %s with parallel composite upload configuration", path)
        with open(path, "w") as f:
            f.write("# .boto configuration for faster gsutil uploads\n\n" + BOTO_SETTINGS)
    os.chmod(path, 0o600)
    return path
