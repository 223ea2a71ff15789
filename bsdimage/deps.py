# Make sure the host has the tools the build drives.
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

import platform

from bsdimage import errors
from bsdimage import shell


class OS:
    MACOS = "macos"
    DEBIAN = "debian"
    RHEL = "rhel"
    FEDORA = "fedora"
    LINUX = "linux"
    UNKNOWN = "unknown"


BUILD_TOOLS = [
    "qemu-system-x86_64",
    "qemu-img",
    "xorriso",
    "tar",
    ("curl", "wget"),
]

# Only needed to unpack the install ISO when patching it.
EXTRACT_TOOLS = [
    ("7z", "bsdtar"),
]

PACKAGES = {
    OS.MACOS: ["qemu", "xorriso", "p7zip"],
    OS.DEBIAN: ["qemu-system-x86", "qemu-utils", "xorriso", "p7zip-full", "curl"],
    OS.RHEL: ["qemu-kvm", "qemu-img", "xorriso", "p7zip", "curl"],
    OS.FEDORA: ["qemu-kvm", "qemu-img", "xorriso", "p7zip", "curl"],
}

MANUAL = ("install qemu-system-x86_64, qemu-img, xorriso and curl (or wget)"
          " using the system's package manager")


def detect_os(system=None):
    system = system or platform.system()
    if system == "Darwin":
        return OS.MACOS
    if system != "Linux":
        return OS.UNKNOWN
    if shell.which("apt-get"):
        return OS.DEBIAN
    if shell.which("yum"):
        return OS.RHEL
    if shell.which("dnf"):
        return OS.FEDORA
    return OS.LINUX


def tools(patch_iso=False):
    if patch_iso:
        return BUILD_TOOLS + EXTRACT_TOOLS
    return list(BUILD_TOOLS)


def install_commands(os_type):
    """The package manager commands that install the build tools"""
    packages = PACKAGES.get(os_type)
    if packages is None:
        return None
    if os_type == OS.MACOS:
        return [["brew", "install"] + packages]
    if os_type == OS.DEBIAN:
        return [shell.sudo(["apt-get", "update"]),
                shell.sudo(["apt-get", "install", "-y"] + packages)]
    manager = "dnf" if shell.which("dnf") else "yum"
    return [shell.sudo([manager, "install", "-y"] + packages)]


def install(logger, os_type):
    logger.info("detected OS: %s", os_type)
    if os_type == OS.MACOS and not shell.which("brew"):
        raise errors.MissingDependencyError(["brew"], "install Homebrew from https://brew.sh first")
    commands = install_commands(os_type)
    if commands is None:
        raise errors.MissingDependencyError(["qemu-system-x86_64", "qemu-img", "xorriso"],
                                            "unsupported operating system '%s'; %s"
                                            % (os_type, MANUAL))
    if not shell.is_root() and os_type != OS.MACOS:
        logger.warning("not running as root, using sudo")
    for command in commands:
        status = shell.stream(logger, command)
        if status:
            raise errors.MissingDependencyError(PACKAGES[os_type],
                                                "'%s' failed with status %s; %s"
                                                % (" ".join(command), status, MANUAL))
    logger.info("dependencies installed")


def _ask(prompt):
    try:
        return input(prompt)
    except EOFError:
        return ""


def check(logger, auto_install=False, skip_install=False, patch_iso=False, ask=_ask):
    """Ensure the build tools are present, installing them if allowed"""

    logger.info("checking dependencies")
    needed = tools(patch_iso)
    absent = shell.missing(needed)
    if not absent:
        logger.info("all dependencies are installed")
        return

    logger.warning("missing dependencies: %s", ", ".join(absent))
    if skip_install:
        raise errors.MissingDependencyError(absent, "--skip-install specified")

    if not auto_install:
        for tool in absent:
            logger.warning("  - %s", tool)
        answer = ask("Would you like to install them now? (y/N) ")
        if answer.strip().lower() not in ("y", "yes"):
            raise errors.MissingDependencyError(absent, "to install them automatically next time, use --auto-install")

    install(logger, detect_os())
    absent = shell.missing(needed)
    if absent:
        raise errors.MissingDependencyError(absent, MANUAL)


def add_arguments(parser):
    group = parser.add_argument_group("Dependency arguments",
                                      "By default missing tools are reported and installation is offered")
    exclusive = group.add_mutually_exclusive_group()
    exclusive.add_argument("--auto-install", action="store_true",
                           help="install missing tools without asking")
    exclusive.add_argument("--skip-install", action="store_true",
                           help="fail immediately when tools are missing")
