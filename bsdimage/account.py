# Manage the service account that the image import runs as.
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

# A freshly created account takes a while to be visible to IAM, hence
# the pauses and the retried bindings.  Only creating the account and
# its key are fatal; everything else is best-effort.

import os
import time

from bsdimage import errors
from bsdimage import profile
from bsdimage import retry

NAME = "openbsd-vm-migration"
DISPLAY_NAME = "OpenBSD VM Migration Service Account"
KEY_FILE = os.path.join("~", ".gcp", "openbsd-vm-migration-key.json")

APIS = [
    "vmmigration.googleapis.com",
    "compute.googleapis.com",
    "storage-component.googleapis.com",
]

ROLES = [
    "roles/vmmigration.admin",
    "roles/compute.instanceAdmin.v1",
    "roles/storage.admin",
]

# seconds
CREATE_WAIT = 10
GRANT_WAIT = 15

CREDENTIALS = "GOOGLE_APPLICATION_CREDENTIALS"
PROJECT = "GOOGLE_CLOUD_PROJECT"


def email(project, name=NAME):
    return "%s@%s.iam.gserviceaccount.com" % (name, project)


class Account:

    def __init__(self, logger, cloud,
                 key_file=KEY_FILE, shell_config=None,
                 policy=retry.IAM, sleep=time.sleep, environ=None):
        self.logger = logger
        self.cloud = cloud
        self.email = email(cloud.project)
        self.key_file = os.path.expanduser(key_file)
        self.shell_config = shell_config or profile.shell_config()
        self.policy = policy
        self.sleep = sleep
        self.environ = os.environ if environ is None else environ

    def __str__(self):
        return self.email

    def _exports(self):
        return [(CREDENTIALS, self.key_file), (PROJECT, self.cloud.project)]

    def setup(self):
        self.logger.info("setting up service account %s", self.email)
        self.cloud.set_project()

        self.logger.info("enabling required Google Cloud APIs")
        for api in APIS:
            if not self.cloud.enable_service(api):
                self.logger.warning("failed to enable %s (may already be enabled)", api)

        if self.cloud.service_account_exists(self.email):
            self.logger.info("service account already exists")
        else:
            self.cloud.create_service_account(NAME, DISPLAY_NAME)
            self.logger.info("service account created; waiting %s seconds for IAM propagation",
                             CREATE_WAIT)
            self.sleep(CREATE_WAIT)

        for role in ROLES:
            self.logger.info("granting role %s", role)
            self.policy.call(self.logger, "granting %s" % role,
                             self.cloud.add_iam_binding, self.email, role)
        self.logger.info("waiting %s seconds for IAM policy propagation", GRANT_WAIT)
        self.sleep(GRANT_WAIT)

        os.makedirs(os.path.dirname(self.key_file), exist_ok=True)
        if os.path.exists(self.key_file):
            self.logger.info("removing old key file %s", self.key_file)
            os.remove(self.key_file)
        self.cloud.create_key(self.key_file, self.email)
        if not os.path.isfile(self.key_file):
            raise errors.Error("key file %s was not created" % self.key_file)
        os.chmod(self.key_file, 0o600)
        self.logger.info("key written to %s with mode 600", self.key_file)

        profile.upsert_exports(self.logger, self.shell_config, self._exports())
        for key, value in self._exports():
            self.environ[key] = value

        self.logger.info("service account setup complete")
        self.logger.info("add the target project in the console before importing:"
                         " https://console.cloud.google.com/compute/instances/migrate?project=%s",
                         self.cloud.project)

    def check(self):
        """Return the list of problems; empty when all is well"""
        problems = []

        for api in APIS:
            if self.cloud.service_enabled(api):
                self.logger.info("API %s: enabled", api)
            else:
                problems.append("API %s is not enabled" % api)

        if self.cloud.service_account_exists(self.email):
            self.logger.info("service account %s: exists", self.email)
        else:
            problems.append("service account %s not found" % self.email)

        for role in ROLES:
            if self.cloud.has_role(self.email, role):
                self.logger.info("role %s: granted", role)
            else:
                problems.append("role %s is not granted" % role)

        if os.path.isfile(self.key_file):
            mode = os.stat(self.key_file).st_mode & 0o777
            self.logger.info("key file %s: exists", self.key_file)
            if mode != 0o600:
                self.logger.warning("key file permissions are %o (should be 600); run: chmod 600 %s",
                                    mode, self.key_file)
        else:
            problems.append("key file %s not found" % self.key_file)

        in_profile = profile.mentions(self.shell_config, [CREDENTIALS, PROJECT])
        for key, expected in self._exports():
            value = self.environ.get(key)
            if value:
                self.logger.info("%s is set: %s", key, value)
                if value != expected:
                    self.logger.warning("%s points to %s; expecting %s", key, value, expected)
            elif in_profile:
                self.logger.warning("%s is not set in this session; load it with: source %s",
                                    key, self.shell_config)
            else:
                problems.append("%s is not set" % key)

        for problem in problems:
            self.logger.error("%s", problem)
        return problems

    def cleanup(self):
        self.logger.info("cleaning up service account %s", self.email)
        self.cloud.set_project()

        keys = self.cloud.user_managed_keys(self.email)
        if not keys:
            self.logger.info("no keys found to delete")
        for key in keys:
            self.logger.info("deleting key %s", key)
            if not self.cloud.delete_key(key, self.email):
                self.logger.warning("failed to delete key %s", key)

        for role in ROLES:
            self.logger.info("removing role %s", role)
            if not self.cloud.remove_iam_binding(self.email, role):
                self.logger.warning("role %s may not exist", role)

        if os.path.isfile(self.key_file):
            os.remove(self.key_file)
            self.logger.info("deleted key file %s", self.key_file)
        else:
            self.logger.info("key file %s not found, skipping", self.key_file)

        if not self.cloud.delete_service_account(self.email):
            self.logger.warning("service account %s may not exist", self.email)

        profile.remove_exports(self.logger, self.shell_config, [CREDENTIALS, PROJECT])
        for key, _ in self._exports():
            self.environ.pop(key, None)
        self.logger.info("cleanup complete; to finalize in this terminal: source %s",
                         self.shell_config)
