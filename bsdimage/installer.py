# Drive the OpenBSD installer over the serial console.
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

# The install is a straight line of states.  Each state sends
# something and then blocks in expect_one_of() for one of a few
# patterns; a timeout (or qemu exiting) is fatal everywhere except
# while waiting for the final power-off, by which point the disk is
# complete.
#
# Nothing is retried and nothing is resumed: after a failure the raw
# disk is junk and the build starts again from scratch.
#
# Rather than going straight to (A)utoinstall, the installer's shell
# is used to copy auto_install.conf and disklabel.template from the
# config volume (cd0) to /, where autoinstall(8) looks for them.

import enum

import pexpect

from bsdimage import errors


class State(enum.Enum):
    AWAIT_BOOT_PROMPT = 1
    CONFIGURE_CONSOLE = 2
    BOOT = 3
    ENTER_SHELL = 4
    STAGE_CONFIG = 5
    TRIGGER_AUTOINSTALL = 6
    AWAIT_COMPLETION = 7
    POST_INSTALL_LOGIN = 8
    AWAIT_SHUTDOWN = 9
    DONE = 10

    def __str__(self):
        return self.name.lower().replace("_", "-")


ORDER = list(State)

BOOT_PROMPT = r"boot>"
INSTALLER_MENU = r"\(I\)nstall, \(U\)pgrade, \(A\)utoinstall or \(S\)hell\?"
SHELL_PROMPT = r"# "
SUCCESS = r"CONGRATULATIONS!"
FAILURE = r"failed"
LOGIN_PROMPT = r"login:"
PASSWORD_PROMPT = r"Password:"

# seconds
TIMEOUTS = {
    State.AWAIT_BOOT_PROMPT: 180,
    State.CONFIGURE_CONSOLE: 30,
    State.BOOT: 300,
    State.ENTER_SHELL: 60,
    State.STAGE_CONFIG: 60,
    State.AWAIT_COMPLETION: 1800,
    State.POST_INSTALL_LOGIN: 600,
    State.AWAIT_SHUTDOWN: 120,
}

CONSOLE_COMMANDS = [
    "stty com0",
    "set tty com0",
]

CONFIG_DEVICE = "cd0"
CONFIG_MOUNT = "/mnt2"

STAGE_COMMANDS = [
    "cd /dev && sh MAKEDEV %s" % CONFIG_DEVICE,
    "mkdir -p %s" % CONFIG_MOUNT,
    "mount -t cd9660 /dev/%sc %s" % (CONFIG_DEVICE, CONFIG_MOUNT),
    "ls %s/" % CONFIG_MOUNT,
    "cp %(m)s/auto_install.conf %(m)s/disklabel.template /" % {"m": CONFIG_MOUNT},
    "chmod a+r /disklabel.template",
    "ls -la /auto_install.conf /disklabel.template",
    "umount %s" % CONFIG_MOUNT,
]

INSTALL_LOG = "/tmp/ai/ai.log"


class Installer:
    """The installer state machine, bound to one console

    CONSOLE needs pexpect's expect(), sendline() and .before.  Call
    run() once; .history lists the states that completed.

    """

    def __init__(self, console, logger, root_password="root", timeouts=None):
        self.console = console
        self.logger = logger
        self.root_password = root_password
        self.timeouts = dict(TIMEOUTS)
        self.timeouts.update(timeouts or {})
        self.state = State.AWAIT_BOOT_PROMPT
        self.history = []
        self.install_log = None
        self._handlers = {
            State.AWAIT_BOOT_PROMPT: self._await_boot_prompt,
            State.CONFIGURE_CONSOLE: self._configure_console,
            State.BOOT: self._boot,
            State.ENTER_SHELL: self._enter_shell,
            State.STAGE_CONFIG: self._stage_config,
            State.TRIGGER_AUTOINSTALL: self._trigger_autoinstall,
            State.AWAIT_COMPLETION: self._await_completion,
            State.POST_INSTALL_LOGIN: self._post_install_login,
            State.AWAIT_SHUTDOWN: self._await_shutdown,
        }

    def expect_one_of(self, patterns, timeout=None, fatal=True):
        """Wait for one of PATTERNS; return its index

        A timeout or EOF raises InstallTimeoutError; unless not FATAL
        in which case None is returned.

        """
        if timeout is None:
            timeout = self.timeouts[self.state]
        self.logger.debug("%s: expecting %s (%s seconds)", self.state, patterns, timeout)
        try:
            return self.console.expect(list(patterns), timeout=timeout)
        except (pexpect.TIMEOUT, pexpect.EOF) as e:
            if not fatal:
                self.logger.debug("%s: %s", self.state, type(e).__name__)
                return None
            raise errors.InstallTimeoutError(str(self.state), patterns, timeout,
                                             before=self.console.before) from e

    def send(self, line):
        self.logger.debug("%s: sending '%s'", self.state, line)
        self.console.sendline(line)

    def command(self, line):
        """Send LINE to the installer shell and wait for the next prompt"""
        self.send(line)
        self.expect_one_of([SHELL_PROMPT])
        return self.console.before

    def step(self):
        """Run the current state; advance to its successor"""
        if self.state is State.DONE:
            raise AssertionError("installer already finished")
        self.logger.info("installer state: %s", self.state)
        next_state = self._handlers[self.state]()
        successor = ORDER[ORDER.index(self.state) + 1]
        if next_state is not successor:
            raise AssertionError("state %s tried to skip to %s; expecting %s"
                                 % (self.state, next_state, successor))
        self.history.append(self.state)
        self.state = next_state
        return self.state

    def run(self):
        while self.state is not State.DONE:
            self.step()
        return self.history

    def _await_boot_prompt(self):
        self.expect_one_of([BOOT_PROMPT])
        return State.CONFIGURE_CONSOLE

    def _configure_console(self):
        # Each boot> command gets its own prompt back.
        for line in CONSOLE_COMMANDS:
            self.send(line)
            self.expect_one_of([BOOT_PROMPT])
        return State.BOOT

    def _boot(self):
        self.send("boot")
        self.expect_one_of([INSTALLER_MENU])
        return State.ENTER_SHELL

    def _enter_shell(self):
        self.send("s")
        self.expect_one_of([SHELL_PROMPT])
        return State.STAGE_CONFIG

    def _stage_config(self):
        for line in STAGE_COMMANDS:
            output = self.command(line)
            self.logger.debug("%s output: %s", line, output)
        self.send("exit")
        self.expect_one_of([INSTALLER_MENU])
        return State.TRIGGER_AUTOINSTALL

    def _trigger_autoinstall(self):
        self.send("a")
        return State.AWAIT_COMPLETION

    def _await_completion(self):
        if self.expect_one_of([SUCCESS, FAILURE]) == 0:
            self.logger.info("installation completed successfully")
            return State.POST_INSTALL_LOGIN
        self.logger.error("autoinstall failed, checking error log")
        self.install_log = self._read_install_log()
        raise errors.InstallFailedError(self.install_log)

    def _read_install_log(self):
        # Back to the menu's shell for the log; failing that, the
        # error still gets reported.
        try:
            self.send("s")
            self.expect_one_of([SHELL_PROMPT])
            log = self.command("cat %s" % INSTALL_LOG)
            self.send("exit")
        except errors.InstallTimeoutError as e:
            self.logger.error("could not read %s: %s", INSTALL_LOG, e)
            return "(%s unavailable)" % INSTALL_LOG
        for line in log.splitlines():
            self.logger.error("| %s", line)
        return log

    def _post_install_login(self):
        self.expect_one_of([LOGIN_PROMPT])
        self.logger.info("system has rebooted, logging in")
        self.send("root")
        self.expect_one_of([PASSWORD_PROMPT])
        self.send(self.root_password)
        self.expect_one_of([SHELL_PROMPT])
        self.logger.info("logged in, powering off")
        self.send("halt -p")
        return State.AWAIT_SHUTDOWN

    def _await_shutdown(self):
        if self.expect_one_of([pexpect.EOF], fatal=False) is None:
            self.logger.warning("shutdown timeout, but installation completed successfully")
        else:
            self.logger.info("system shut down")
        return State.DONE
