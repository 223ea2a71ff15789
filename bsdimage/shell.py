# Run the external tools that do the real work.
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

# Everything that leaves this process (curl, qemu-img, xorriso, tar,
# gcloud, gsutil, ...) goes through here so that it is logged the same
# way; tests replace these functions.

import os
import shutil
import subprocess

from bsdimage import errors


def _log_command(logger, command, verbose):
    if verbose:
        logger.info("running: %s", " ".join(command))
    else:
        logger.debug("running: %s", " ".join(command))


def run(logger, command, verbose=False):
    """Run COMMAND, return (status, output); stderr is folded into output"""
    _log_command(logger, command, verbose)
    process = subprocess.Popen(command,
                               stdin=subprocess.DEVNULL,
                               stdout=subprocess.PIPE,
                               stderr=subprocess.STDOUT)
    stdout, _ = process.communicate()
    status = process.returncode
    output = stdout.decode("utf-8", errors="replace").strip()
    if status:
        logger.debug("%s exited with unexpected status code %s\n%s",
                     command[0], status, output)
    else:
        logger.debug("output: %s", output)
    return status, output


def check(logger, command, verbose=False):
    """Like run() but raise CommandError on a non-zero exit"""
    status, output = run(logger, command, verbose=verbose)
    if status:
        raise errors.CommandError(command, status, output)
    return output


def stream(logger, command, logfile=None):
    """Run COMMAND logging each line of output as it appears

    For the long running tools (downloads, uploads, imports) where
    buffering everything until exit would leave the operator staring
    at nothing.  Output is also appended to LOGFILE when given.

    """
    _log_command(logger, command, True)
    process = subprocess.Popen(command,
                               stdin=subprocess.DEVNULL,
                               stdout=subprocess.PIPE,
                               stderr=subprocess.STDOUT)
    log = open(logfile, "a") if logfile else None
    try:
        for line in process.stdout:
            line = line.decode("utf-8", errors="replace").rstrip()
            logger.info("| %s", line)
            if log:
                log.write(line + "\n")
    finally:
        if log:
            log.close()
        process.stdout.close()
    status = process.wait()
    if status:
        logger.debug("%s exited with unexpected status code %s", command[0], status)
    return status


def pipe(logger, command):
    """Start COMMAND and return the process; read from .stdout"""
    _log_command(logger, command, False)
    return subprocess.Popen(command,
                            stdin=subprocess.DEVNULL,
                            stdout=subprocess.PIPE,
                            stderr=subprocess.DEVNULL)


def which(tool):
    return shutil.which(tool)


def missing(tools):
    """Return the TOOLS that are not on PATH

    An entry can be a tuple of alternatives, any one of which will do.

    """
    absent = []
    for tool in tools:
        if isinstance(tool, tuple):
            if not any(which(t) for t in tool):
                absent.append(" or ".join(tool))
        elif not which(tool):
            absent.append(tool)
    return absent


def require(tools, remedy=None):
    absent = missing(tools)
    if absent:
        raise errors.MissingDependencyError(absent, remedy)


def is_root():
    return os.geteuid() == 0


def sudo(command):
    """Prefix COMMAND with sudo unless already root"""
    if is_root():
        return list(command)
    return ["sudo"] + list(command)
