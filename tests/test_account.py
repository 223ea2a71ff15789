import os
import stat

import pytest

from bsdimage import account
from bsdimage import errors
from bsdimage import gcloud
from bsdimage import profile
from bsdimage import retry

EMAIL = "openbsd-vm-migration@proj.iam.gserviceaccount.com"


@pytest.fixture
def cloud(logger):
    return gcloud.GCloud(logger, "proj")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def environ():
    return {}


@pytest.fixture
def sa(tmp_path, logger, cloud, sleeps, environ):
    return account.Account(logger, cloud,
                           key_file=str(tmp_path / ".gcp" / "key.json"),
                           shell_config=str(tmp_path / ".zshrc"),
                           policy=retry.Policy(attempts=3, delay=5, sleep=sleeps.append),
                           sleep=sleeps.append, environ=environ)


def write_key(command):
    with open(command[5], "w") as f:
        f.write("{}")


def test_email():
    assert account.email("proj") == EMAIL


def test_setup(tmp_path, fake_shell, sa, sleeps, environ):
    fake_shell.respond(["gcloud", "iam", "service-accounts", "describe"], status=1)
    fake_shell.respond(["gcloud", "iam", "service-accounts", "keys", "create"], effect=write_key)

    sa.setup()

    assert fake_shell.ran("gcloud", "config", "set", "project", "proj")
    assert len(fake_shell.ran("gcloud", "services", "enable")) == len(account.APIS)
    create, = fake_shell.ran("gcloud", "iam", "service-accounts", "create")
    assert create[4] == account.NAME
    roles = [c[5] for c in fake_shell.ran("gcloud", "projects", "add-iam-policy-binding")]
    assert roles == ["--role=" + role for role in account.ROLES]
    assert sleeps == [account.CREATE_WAIT, account.GRANT_WAIT]
    assert stat.S_IMODE(os.stat(sa.key_file).st_mode) == 0o600
    assert environ == {account.CREDENTIALS: sa.key_file, account.PROJECT: "proj"}
    assert 'export GOOGLE_CLOUD_PROJECT="proj"' in (tmp_path / ".zshrc").read_text()


def test_setup_existing_account(fake_shell, sa, sleeps):
    fake_shell.respond(["gcloud", "iam", "service-accounts", "keys", "create"], effect=write_key)
    sa.setup()
    assert fake_shell.ran("gcloud", "iam", "service-accounts", "create") == []
    assert sleeps == [account.GRANT_WAIT]


def test_setup_replaces_the_key(fake_shell, sa):
    os.makedirs(os.path.dirname(sa.key_file))
    with open(sa.key_file, "w") as f:
        f.write("old")
    fake_shell.respond(["gcloud", "iam", "service-accounts", "keys", "create"], effect=write_key)
    sa.setup()
    with open(sa.key_file) as f:
        assert f.read() == "{}"


def test_bindings_are_retried(fake_shell, sa, sleeps):
    fake_shell.respond(["gcloud", "iam", "service-accounts", "keys", "create"], effect=write_key)
    fake_shell.respond(["gcloud", "projects", "add-iam-policy-binding"], status=1)
    sa.setup()
    bindings = fake_shell.ran("gcloud", "projects", "add-iam-policy-binding")
    assert len(bindings) == 3 * len(account.ROLES)
    assert sleeps == [5, 5] * len(account.ROLES) + [account.GRANT_WAIT]


def test_setup_fails_without_a_key(fake_shell, sa):
    with pytest.raises(errors.Error, match="not created"):
        sa.setup()


def test_check_all_well(tmp_path, fake_shell, sa, environ):
    fake_shell.respond(["gcloud", "services", "list"], output="\n".join(account.APIS))
    fake_shell.respond(["gcloud", "projects", "get-iam-policy"], output="serviceAccount:" + EMAIL)
    os.makedirs(os.path.dirname(sa.key_file))
    with open(sa.key_file, "w") as f:
        f.write("{}")
    os.chmod(sa.key_file, 0o644)
    environ.update({account.CREDENTIALS: sa.key_file, account.PROJECT: "proj"})
    assert sa.check() == []


def test_check_reports_problems(fake_shell, sa):
    fake_shell.respond(["gcloud", "iam", "service-accounts", "describe"], status=1)
    problems = sa.check()
    assert "service account %s not found" % EMAIL in problems
    assert "key file %s not found" % sa.key_file in problems
    assert "GOOGLE_APPLICATION_CREDENTIALS is not set" in problems
    assert len([p for p in problems if p.startswith("API")]) == len(account.APIS)


def test_check_unsourced_profile(tmp_path, logger, fake_shell, sa):
    profile.upsert_exports(logger, sa.shell_config, sa._exports())
    problems = sa.check()
    assert not [p for p in problems if "is not set" in p]


def test_cleanup(tmp_path, fake_shell, sa, environ):
    fake_shell.respond(["gcloud", "iam", "service-accounts", "keys", "list"], output="k1\nk2\n")
    fake_shell.respond(["gcloud", "iam", "service-accounts", "delete"], status=1)
    os.makedirs(os.path.dirname(sa.key_file))
    with open(sa.key_file, "w") as f:
        f.write("{}")
    (tmp_path / ".zshrc").write_text('alias ll=ls\n\n%s\nexport GOOGLE_CLOUD_PROJECT="proj"\n'
                                     % profile.MARKER)
    environ.update({account.PROJECT: "proj"})

    sa.cleanup()

    assert [c[5] for c in fake_shell.ran("gcloud", "iam", "service-accounts", "keys", "delete")] == ["k1", "k2"]
    assert len(fake_shell.ran("gcloud", "projects", "remove-iam-policy-binding")) == len(account.ROLES)
    assert not os.path.exists(sa.key_file)
    assert (tmp_path / ".zshrc").read_text() == "alias ll=ls\n"
    assert environ == {}
