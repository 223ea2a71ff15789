# Generate the files that drive OpenBSD's autoinstall(8).
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

# Ref: https://man.openbsd.org/autoinstall.8
#
# Apart from random.seed, everything written here is a pure function
# of the parameters: same parameters, same bytes.
#
# The disk layout is passed straight through; disklabel(8) decides if
# it adds up.

import gzip
import io
import os
import tarfile

from bsdimage import workspace

ANSWERS = "auto_install.conf"
DISKLABEL = "disklabel.template"
BOOT_CONF = os.path.join("etc", "boot.conf")
RANDOM_SEED = os.path.join("etc", "random.seed")
INSTALL_SITE = "install.site"

SEED_SIZE = 4096

# GCE has no graphical console; everything happens on com0.
CONSOLE = "com0"
CONSOLE_SPEED = 115200


class Partition:

    def __init__(self, mount, size, percent=None):
        self.mount = mount
        self.size = size
        self.percent = percent

    def __str__(self):
        fields = [self.mount, self.size]
        if self.percent:
            fields.append(self.percent)
        return "\t".join(fields)


DEFAULT_LAYOUT = (
    Partition("/", "5G-*", "95%"),
    Partition("swap", "2G"),
)


class Answers:
    """The parameters that go into the answers file"""

    def __init__(self, version,
                 hostname=None,
                 interface="vio0",
                 root_password="root",
                 user="swarming",
                 user_fullname="Swarming User",
                 user_password="swarming",
                 timezone="UTC",
                 disk="sd0",
                 sets_location="cd1",
                 sets="+* -x* -game* -man*",
                 layout=DEFAULT_LAYOUT):
        self.version = version
        self.hostname = hostname or "openbsd-" + version
        self.interface = interface
        self.root_password = root_password
        self.user = user
        self.user_fullname = user_fullname
        self.user_password = user_password
        self.timezone = timezone
        self.disk = disk
        self.sets_location = sets_location
        self.sets = sets
        self.layout = list(layout)

    def questions(self):
        """(question, answer) in the order the installer asks"""
        return [
            ("System hostname", self.hostname),
            ("Which network interface", self.interface),
            ("IPv4 address for %s" % self.interface, "dhcp"),
            ("IPv6 address for %s" % self.interface, "none"),
            ("Password for root account", self.root_password),
            ("Do you expect to run the X Window System", "no"),
            ("Change the default console to %s" % CONSOLE, "yes"),
            ("Which speed should %s use" % CONSOLE, str(CONSOLE_SPEED)),
            ("Setup a user", self.user),
            ("Full name for user %s" % self.user, self.user_fullname),
            ("Password for user %s" % self.user, self.user_password),
            ("Allow root ssh login", "yes"),
            ("What timezone", self.timezone),
            ("Which disk", self.disk),
            ("Use (W)hole disk or (E)dit the MBR", "whole"),
            ("Use (A)uto layout, (E)dit auto layout, or create (C)ustom layout", "auto"),
            ("URL to autopartitioning template for disklabel", "file://" + DISKLABEL),
            ("Location of sets", self.sets_location),
            ("Set name(s)", self.sets),
            ("Directory does not contain SHA256.sig. Continue without verification", "yes"),
        ]


def answers_text(answers):
    return "".join("%s = %s\n" % qa for qa in answers.questions())


def disklabel_text(layout):
    return "".join("%s\n" % partition for partition in layout)


def boot_conf_text():
    return "set tty %s\nset timeout 5\nboot bsd.rd\n" % CONSOLE


def install_site_text(answers):
    """The post-install script, run by the installer inside the new system"""
    return """#!/bin/sh
echo "Running post-installation setup..."

# Configure serial console
echo 'set tty %(console)s' > /etc/boot.conf

# Configure package repository
echo "%(mirror)s" > /etc/installurl

# Install essential packages
pkg_add -I bash curl git vim htop

# Configure network
echo "dhcp" > /etc/hostname.%(interface)s

# Enable SSH
rcctl enable sshd
rcctl start sshd

# Configure system limits
cat > /etc/login.conf.d/moreres <<EOLOGIN
moreres:\\\\
  :datasize-max=infinity: \\\\
  :datasize-cur=infinity: \\\\
  :vmemoryuse-max=infinity: \\\\
  :vmemoryuse-cur=infinity: \\\\
  :memoryuse-max=infinity: \\\\
  :memoryuse-cur=infinity: \\\\
  :maxproc-max=2048: \\\\
  :maxproc-cur=2048: \\\\
  :openfiles-max=4096: \\\\
  :openfiles-cur=4096: \\\\
  :tc=default:
EOLOGIN

# Configure sysctl
cat > /etc/sysctl.conf <<EOSYSCTL
hw.smt=1
kern.timecounter.hardware=tsc
EOSYSCTL

# Configure rc.local for startup
cat > /etc/rc.local <<EORC
echo "OpenBSD system started successfully"
EORC

chmod 700 /root

echo "Post-installation setup completed"
""" % {
        "console": CONSOLE,
        "mirror": workspace.MIRROR,
        "interface": answers.interface,
    }


def _write(path, data, mode=0o644):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if isinstance(data, str):
        data = data.encode()
    with open(path, "wb") as f:
        f.write(data)
    os.chmod(path, mode)
    return path


def _site_tgz(path, answers):
    """site*.tgz, the set the installer extracts over / before running install.site"""
    script = install_site_text(answers).encode()
    # pin metadata (gzip header included) so that the archive doesn't
    # depend on who ran it, or when
    with gzip.GzipFile(path, "wb", mtime=0) as gz, \
         tarfile.open(fileobj=gz, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        info = tarfile.TarInfo("./" + INSTALL_SITE)
        info.size = len(script)
        info.mode = 0o755
        info.mtime = 0
        tar.addfile(info, io.BytesIO(script))
    return path


class Bundle:
    """The generated files, laid out the way the config volume wants them"""

    def __init__(self, directory, answers):
        self.directory = directory
        self.answers = answers
        self.version = answers.version

    def path(self, name):
        return os.path.join(self.directory, name)

    def site_tgz(self):
        return os.path.join(self.directory, self.version, workspace.ARCH,
                            workspace.site_name(self.version))

    def files(self):
        """Relative paths of everything in the bundle"""
        return [ANSWERS, DISKLABEL, BOOT_CONF, RANDOM_SEED, INSTALL_SITE,
                os.path.relpath(self.site_tgz(), self.directory)]


def generate(logger, directory, answers, seed=os.urandom):
    """Write the autoinstall files into DIRECTORY; returns a Bundle"""

    logger.info("creating autoinstall configuration in %s", directory)
    bundle = Bundle(directory, answers)
    _write(bundle.path(ANSWERS), answers_text(answers))
    _write(bundle.path(DISKLABEL), disklabel_text(answers.layout))
    _write(bundle.path(BOOT_CONF), boot_conf_text())
    _write(bundle.path(RANDOM_SEED), seed(SEED_SIZE), mode=0o600)
    _write(bundle.path(INSTALL_SITE), install_site_text(answers), mode=0o755)
    os.makedirs(os.path.dirname(bundle.site_tgz()), exist_ok=True)
    _site_tgz(bundle.site_tgz(), answers)
    for name in bundle.files():
        logger.debug("  %s", name)
    return bundle
