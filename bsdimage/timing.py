# When did this build start, and how long has it been running?
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

# Everything uses this as the reference time: derived image names,
# profile backups and log prefixes all agree on when the run started.

from datetime import datetime


START_TIME = datetime.now()

# GCE image names allow lowercase letters, digits and hyphens only.
IMAGE_STAMP = "%Y%m%d-%H%M%S"
BACKUP_STAMP = "%Y%m%d_%H%M%S"


def stamp(fmt=IMAGE_STAMP, now=None):
    return (now or datetime.now()).strftime(fmt)


class Lapsed:
    """A lapsed timer that prints as seconds by default

    As part of 'with' it automatically starts/stops.

    """

    def __init__(self, start=None):
        self.start = start or datetime.now()
        self.stop = None

    def format(self, now=None):
        """H:MM:SS.d, M:SS.d or S.d; a day or more falls back to str()"""
        delta = (now or self.stop or datetime.now()) - self.start
        if delta.days:
            return str(delta)
        minutes, seconds = divmod(delta.seconds, 60)
        hours, minutes = divmod(minutes, 60)
        tenths = delta.microseconds // 100000
        if hours:
            return "%d:%02d:%02d.%d" % (hours, minutes, seconds, tenths)
        if minutes:
            return "%d:%02d.%d" % (minutes, seconds, tenths)
        return "%d.%d" % (seconds, tenths)

    def seconds(self, now=None):
        now = now or self.stop or datetime.now()
        return (now - self.start).total_seconds()

    def __enter__(self):
        self.start = datetime.now()
        self.stop = None
        return self

    def __exit__(self, type, value, traceback):
        self.stop = datetime.now()

    def __str__(self):
        return "%.01f seconds" % self.seconds()
