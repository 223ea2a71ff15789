# Fakes shared by the tests.
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

import os
import re
import tarfile

import pexpect
import pytest

from bsdimage import logutil
from bsdimage import shell


class FakeShell:
    """Stands in for bsdimage.shell; records every command

    Responses are matched on a command prefix, most recent first;
    anything unmatched succeeds with no output.

    """

    def __init__(self):
        self.commands = []
        self.responses = []
        self.tools = set()

    def respond(self, prefix, status=0, output="", effect=None):
        self.responses.insert(0, (list(prefix), status, output, effect))

    def _lookup(self, command):
        for prefix, status, output, effect in self.responses:
            if command[:len(prefix)] == prefix:
                if effect:
                    effect(command)
                return status, output
        return 0, ""

    def run(self, logger, command, verbose=False):
        self.commands.append(list(command))
        return self._lookup(command)

    def stream(self, logger, command, logfile=None):
        self.commands.append(list(command))
        return self._lookup(command)[0]

    def which(self, tool):
        if tool in self.tools:
            return "/usr/bin/" + tool
        return None

    def ran(self, *prefix):
        return [c for c in self.commands if c[:len(prefix)] == list(prefix)]


class FakeConsole:
    """Replays canned console OUTPUT to expect(), pexpect style

    Once the output is used up, expect() hits EOF (when EOF is set)
    or a timeout.

    """

    def __init__(self, output, eof=True):
        self.output = output
        self.eof = eof
        self.position = 0
        self.before = ""
        self.after = None
        self.sent = []
        self.expected = []

    def sendline(self, line=""):
        self.sent.append(line)

    def expect(self, patterns, timeout=-1):
        self.expected.append((list(patterns), timeout))
        best = None
        for index, pattern in enumerate(patterns):
            if pattern is pexpect.EOF or pattern is pexpect.TIMEOUT:
                continue
            match = re.compile(pattern).search(self.output, self.position)
            if match and (best is None or match.start() < best[1].start()):
                best = (index, match)
        if best:
            index, match = best
            self.before = self.output[self.position:match.start()]
            self.after = match.group(0)
            self.position = match.end()
            return index
        self.before = self.output[self.position:]
        self.position = len(self.output)
        special = pexpect.EOF if self.eof else pexpect.TIMEOUT
        for index, pattern in enumerate(patterns):
            if pattern is special:
                return index
        raise special("canned output exhausted")


def fake_tar(command):
    """Do what 'tar -C DIR -Szcf OUT NAME' would"""
    directory = command[command.index("-C") + 1]
    target = command[command.index("-Szcf") + 1]
    name = command[-1]
    with tarfile.open(target, "w:gz") as tar:
        tar.add(os.path.join(directory, name), arcname=name)


@pytest.fixture
def logger():
    return logutil.getLogger("test")


@pytest.fixture
def fake_shell(monkeypatch):
    fake = FakeShell()
    monkeypatch.setattr(shell, "run", fake.run)
    monkeypatch.setattr(shell, "stream", fake.stream)
    monkeypatch.setattr(shell, "which", fake.which)
    return fake
