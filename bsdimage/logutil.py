# Logging for the image builder.
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

# Implement log-level inversion.
#
# The root logger passes every record through; the handlers do the
# filtering.  That way a DEBUG-level log can be written to a file
# (--debug) while the console only shows INFO-level records (the
# --log-level default).

# Add a '"%(name)s %(runtime)s: ' prefix to all messages.
#
# Ref: https://docs.python.org/3/howto/logging-cookbook.html#using-loggeradapters-to-impart-contextual-information
#
# The runtime is the time since the run started; timers nest so a
# sub-step (the installer, an upload) shows its own lapsed time as
# well.

import logging
import sys
from datetime import datetime

from bsdimage import timing

# Avoid having code include both "logging" and "logutil" by
# re-exporting useful stuff here.

ERROR = logging.ERROR
WARNING = logging.WARNING
INFO = logging.INFO
DEBUG = logging.DEBUG

_LOG_LEVEL = "info"
_FORMATTER = logging.Formatter("%(message)s")
_DEBUG_FORMATTER = logging.Formatter("%(levelname)s %(message)s")


class StreamProxy:
    """Lets the console handler switch streams after argument parsing"""

    def __init__(self):
        self.stream = None

    def write(self, record):
        self.stream.write(record)

    def flush(self):
        self.stream.flush()

    def delegate(self, stream):
        if self.stream:
            self.stream.flush()
        self.stream = stream
        return self


_DEFAULT_STREAM = StreamProxy().delegate(sys.stderr)
_DEFAULT_HANDLER = logging.StreamHandler(_DEFAULT_STREAM)
_DEFAULT_HANDLER.setFormatter(_FORMATTER)
_DEFAULT_HANDLER.setLevel(_LOG_LEVEL.upper())
_DEBUG_HANDLER = None

# Force the root-logger to pass everything on; let the handlers
# filter.
_ROOT = logging.getLogger("bsdimage")
_ROOT.setLevel(logging.NOTSET + 1)
_ROOT.addHandler(_DEFAULT_HANDLER)
_ROOT.propagate = False


def getLogger(*names):
    """Return an adapter named by the non-empty NAMES

    For instance getLogger("bsdbuild", "7.8") logs as "bsdbuild 7.8
    1.2: message".

    """
    prefix = " ".join(name for name in names if name)
    logger = logging.getLogger("bsdimage." + prefix.replace(" ", "."))
    return CustomMessageAdapter(logger, prefix)


def add_arguments(parser):
    group = parser.add_argument_group("Logging arguments",
                                      "Options for directing logging level and output")
    group.add_argument("--log-level", default=_LOG_LEVEL, metavar="LEVEL",
                       type=str.lower,
                       choices=["debug", "info", "warning", "error"],
                       help="console log level (default: %(default)s)")
    group.add_argument("--debug", "-d", default=None, metavar="FILE",
                       help=("also write a debug-level log to %(metavar)s"
                             "; append '+' to the front to append-to instead of overwrite %(metavar)s"))


def log_arguments(logger, args):
    logger.info("Logging arguments:")
    logger.info("  log-level: %s", args.log_level)
    logger.info("  debug: %s", args.debug)


def config(args, stream=None):
    global _DEBUG_HANDLER
    if stream:
        _DEFAULT_STREAM.delegate(stream)
    _DEFAULT_HANDLER.setLevel(args.log_level.upper())
    if _DEBUG_HANDLER:
        _ROOT.removeHandler(_DEBUG_HANDLER)
        _DEBUG_HANDLER.close()
        _DEBUG_HANDLER = None
    if args.debug:
        if args.debug.startswith("+"):
            _DEBUG_HANDLER = logging.FileHandler(args.debug[1:], mode="a")
        else:
            _DEBUG_HANDLER = logging.FileHandler(args.debug, mode="w")
        _DEBUG_HANDLER.setFormatter(_DEBUG_FORMATTER)
        _DEBUG_HANDLER.setLevel(DEBUG)
        _ROOT.addHandler(_DEBUG_HANDLER)


class LogTimeWithContext:
    """Push a new timer onto the runtime stack"""

    def __init__(self, logger_adapter, loglevel, action):
        self.logger_adapter = logger_adapter
        self.action = action
        self.timer = timing.Lapsed()
        self.loglevel = loglevel

    def __enter__(self):
        timer = self.timer.__enter__()
        self.logger_adapter.log(self.loglevel, "start %s at %s",
                                self.action, timer.start)
        self.logger_adapter.runtimes.append(timer)
        return timer

    def __exit__(self, exception_type, exception_value, exception_traceback):
        self.logger_adapter.runtimes.pop()
        self.timer.__exit__(exception_type, exception_value, exception_traceback)
        if exception_type:
            self.logger_adapter.log(self.loglevel, "abort %s after %s",
                                    self.action, self.timer)
        else:
            self.logger_adapter.log(self.loglevel, "stop %s after %s",
                                    self.action, self.timer)


class CustomMessageAdapter(logging.LoggerAdapter):

    def __init__(self, logger, prefix, runtimes=None):
        logging.LoggerAdapter.__init__(self, logger, {"prefix": prefix})
        self.runtimes = runtimes or [timing.Lapsed(timing.START_TIME)]
        self.prefix = prefix

    def process(self, msg, kwargs):
        now = datetime.now()
        runtimes = "/".join(r.format(now) for r in self.runtimes)
        msg = "%s %s: %s" % (self.prefix, runtimes, msg)
        return msg, kwargs

    def time(self, fmt, *args, loglevel=INFO):
        return LogTimeWithContext(logger_adapter=self, loglevel=loglevel,
                                  action=(fmt % args))

    def nest(self, prefix):
        """A child logger sharing this logger's timers"""
        return CustomMessageAdapter(self.logger, self.prefix + " " + prefix,
                                    self.runtimes)
