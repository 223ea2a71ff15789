# Talk to a VM's serial console, for the installer.
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

import pexpect

TIMEOUT = 10

# This file-like class passes all writes on to the LOGGER at DEBUG.
# It is used to direct pexpect's .logfile_read and .logfile_send
# files into the logging system.

class _Debug:

    def __init__(self, logger, message):
        self.logger = logger
        self.message = message

    def close(self):
        pass

    def write(self, text):
        self.logger.debug(self.message, ascii(text))

    def flush(self):
        pass


class _Tee:

    def __init__(self, *files):
        self.files = [f for f in files if f]

    def close(self):
        pass

    def write(self, text):
        for f in self.files:
            f.write(text)

    def flush(self):
        for f in self.files:
            f.flush()


class Console(pexpect.spawn):
    """The VM process, with its console output logged

    Everything read is sent to the logger (DEBUG) and, when given, to
    TRANSCRIPT (a text file) so that a failed install can be
    diagnosed afterwards.

    """

    def __init__(self, command, logger, transcript=None, timeout=TIMEOUT):
        logger.debug("spawning '%s'", " ".join(command))
        # Leave searchwindowsize set to the infinite default so that
        # expect patterns do not mysteriously fail.
        pexpect.spawn.__init__(self, command[0], args=command[1:],
                               timeout=timeout, echo=False,
                               encoding="utf-8", codec_errors="replace")
        self.logger = logger
        self.transcript = transcript
        self.logfile_read = _Tee(_Debug(self.logger, "read <<%s>>>"), transcript)
        self.logfile_send = _Debug(self.logger, "send <<%s>>>")

