# Things that can go wrong while building and importing an image.
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

# Every error is fatal to the script that raises it; main() logs the
# message and exits non-zero.  Nothing here is retried.


class Error(Exception):
    pass


class MissingDependencyError(Error):

    def __init__(self, tools, remedy=None):
        self.tools = list(tools)
        self.remedy = remedy
        message = "missing dependencies: %s" % ", ".join(self.tools)
        if remedy:
            message += "; " + remedy
        super().__init__(message)


class DownloadError(Error):
    pass


class ComposeError(Error):
    pass


class InstallTimeoutError(Error):

    def __init__(self, state, patterns, timeout, before=""):
        self.state = state
        self.patterns = patterns
        self.timeout = timeout
        self.before = before
        super().__init__("%s: timeout after %s seconds waiting for %s"
                         % (state, timeout, patterns))


class InstallFailedError(Error):

    def __init__(self, log):
        self.log = log
        super().__init__("autoinstall failed; installer log:\n%s" % log)


class PackageError(Error):
    pass


class CommandError(Error):

    def __init__(self, command, status, output):
        self.command = command
        self.status = status
        self.output = output
        super().__init__("'%s' exited with status %s\n%s"
                         % (" ".join(command), status, output))


class NameConflictError(Error):

    def __init__(self, names):
        self.names = list(names)
        super().__init__("images already exist: %s"
                         "; use --force to delete and recreate them"
                         ", delete them manually"
                         ", or choose a different name with --name"
                         % ", ".join(self.names))
