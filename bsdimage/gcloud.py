# A thin layer over the gcloud and gsutil command line tools.
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

# Three kinds of call:
#
# - queries (describe, ls, list) return True/False or the output and
#   never raise; a non-zero exit means "no"
#
# - best-effort changes (enable, add/remove binding, delete key)
#   return True/False and leave it to the caller to warn
#
# - changes that matter (create, import, delete, cp) raise
#   CommandError; the long running ones stream their output

from bsdimage import errors
from bsdimage import shell

GCLOUD = "gcloud"
GSUTIL = "gsutil"

TOOLS = [GCLOUD, GSUTIL]


def require(tools=TOOLS):
    shell.require(tools, "install the Google Cloud SDK: https://cloud.google.com/sdk/docs/install")


def gcs_path(bucket, name):
    return "gs://%s/%s" % (bucket, name)


class GCloud:

    def __init__(self, logger, project, zone=None):
        self.logger = logger
        self.project = project
        self.zone = zone

    def __str__(self):
        return "project %s" % self.project

    def _project(self):
        return ["--project=%s" % self.project]

    def _zone(self):
        return ["--zone=%s" % self.zone] if self.zone else []

    def _ok(self, command):
        status, _ = shell.run(self.logger, command)
        return status == 0

    def _stream(self, command):
        status = shell.stream(self.logger, command)
        if status:
            raise errors.CommandError(command, status, "(output logged above)")

    # project and services

    def set_project(self):
        shell.check(self.logger, [GCLOUD, "config", "set", "project", self.project])

    def service_enabled(self, api):
        status, output = shell.run(self.logger,
                                   [GCLOUD, "services", "list", "--enabled"]
                                   + self._project()
                                   + ["--filter=name:%s" % api, "--format=value(name)"])
        return status == 0 and api in output

    def enable_service(self, api):
        return self._ok([GCLOUD, "services", "enable", api] + self._project())

    # service accounts

    def service_account_exists(self, email):
        return self._ok([GCLOUD, "iam", "service-accounts", "describe", email]
                        + self._project())

    def create_service_account(self, name, display_name):
        shell.check(self.logger,
                    [GCLOUD, "iam", "service-accounts", "create", name,
                     "--display-name=%s" % display_name] + self._project())

    def delete_service_account(self, email):
        return self._ok([GCLOUD, "iam", "service-accounts", "delete", email]
                        + self._project() + ["--quiet"])

    def add_iam_binding(self, email, role):
        return self._ok([GCLOUD, "projects", "add-iam-policy-binding", self.project,
                         "--member=serviceAccount:%s" % email,
                         "--role=%s" % role,
                         "--condition=None",
                         "--no-user-output-enabled"])

    def remove_iam_binding(self, email, role):
        return self._ok([GCLOUD, "projects", "remove-iam-policy-binding", self.project,
                         "--member=serviceAccount:%s" % email,
                         "--role=%s" % role,
                         "--all"])

    def has_role(self, email, role):
        status, output = shell.run(self.logger,
                                   [GCLOUD, "projects", "get-iam-policy", self.project,
                                    "--flatten=bindings[].members",
                                    "--filter=bindings.role:%s" % role,
                                    "--format=value(bindings.members)"])
        return status == 0 and email in output

    def create_key(self, path, email):
        shell.check(self.logger,
                    [GCLOUD, "iam", "service-accounts", "keys", "create", path,
                     "--iam-account=%s" % email] + self._project())

    def user_managed_keys(self, email):
        status, output = shell.run(self.logger,
                                   [GCLOUD, "iam", "service-accounts", "keys", "list",
                                    "--iam-account=%s" % email]
                                   + self._project()
                                   + ["--filter=keyType:USER_MANAGED", "--format=value(name)"])
        if status:
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def delete_key(self, key, email):
        return self._ok([GCLOUD, "iam", "service-accounts", "keys", "delete", key,
                         "--iam-account=%s" % email] + self._project() + ["--quiet"])

    # images

    def image_exists(self, name):
        return self._ok([GCLOUD, "compute", "images", "describe", name] + self._project())

    def create_image(self, name, source_uri, family, uefi=False, description=None):
        command = [GCLOUD, "compute", "images", "create", name,
                   "--source-uri=%s" % source_uri,
                   "--family=%s" % family]
        if uefi:
            command.append("--guest-os-features=UEFI_COMPATIBLE")
        command += self._project()
        if description:
            command.append("--description=%s" % description)
        self._stream(command)

    def import_image(self, name, source_file):
        # --cmd-deprecated: gcloud otherwise refuses, pointing at the
        # migration API; --data-disk skips the Linux-only OS adaptation
        self._stream([GCLOUD, "compute", "images", "import", name,
                      "--cmd-deprecated",
                      "--source-file=%s" % source_file,
                      "--data-disk"] + self._project() + self._zone())

    def delete_image(self, name):
        shell.check(self.logger, [GCLOUD, "compute", "images", "delete", name]
                    + self._project() + ["--quiet"], verbose=True)

    # instances

    def instance_exists(self, name):
        return self._ok([GCLOUD, "compute", "instances", "describe", name]
                        + self._zone() + self._project())

    def create_instance(self, name, image, machine_type):
        self._stream([GCLOUD, "compute", "instances", "create", name,
                      "--image=%s" % image]
                     + self._zone()
                     + ["--machine-type=%s" % machine_type]
                     + self._project())

    def delete_instance(self, name):
        self._stream([GCLOUD, "compute", "instances", "delete", name]
                     + self._zone() + self._project() + ["--quiet"])

    # storage

    def bucket_exists(self, bucket):
        return self._ok([GSUTIL, "ls", "gs://%s" % bucket])

    def make_bucket(self, bucket):
        shell.check(self.logger, [GSUTIL, "mb", "-p", self.project, "gs://%s" % bucket],
                    verbose=True)

    def copy(self, source, destination, composite=True):
        command = [GSUTIL]
        if not composite:
            command += ["-o", "GSUtil:parallel_composite_upload_threshold=0"]
        command += ["cp", source, destination]
        self._stream(command)

    def object_exists(self, path):
        return self._ok([GSUTIL, "ls", path])

    def is_composite(self, path):
        status, output = shell.run(self.logger, [GSUTIL, "ls", "-L", path])
        return status == 0 and "Component" in output

    def cat(self, path):
        """Start 'gsutil cat PATH'; the object is read from .stdout"""
        return shell.pipe(self.logger, [GSUTIL, "cat", path])

    def remove_object(self, path):
        shell.check(self.logger, [GSUTIL, "rm", path], verbose=True)
