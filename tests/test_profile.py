import glob
import os
import stat

from bsdimage import profile

EXPORTS = [("GOOGLE_APPLICATION_CREDENTIALS", "/home/me/.gcp/key.json"),
           ("GOOGLE_CLOUD_PROJECT", "my-project")]
KEYS = [key for key, _ in EXPORTS]


def test_shell_config(tmp_path):
    home = str(tmp_path)
    assert profile.shell_config(home, "/bin/zsh") == os.path.join(home, ".zshrc")
    assert profile.shell_config(home, "/usr/local/bin/bash") == os.path.join(home, ".bash_profile")
    (tmp_path / ".bashrc").write_text("")
    assert profile.shell_config(home, "/bin/bash") == os.path.join(home, ".bashrc")
    assert profile.shell_config(home, "/bin/ksh") == os.path.join(home, ".profile")
    assert profile.shell_config(home, "") == os.path.join(home, ".profile")


def test_upsert_creates_the_file(tmp_path, logger):
    path = str(tmp_path / ".profile")
    profile.upsert_exports(logger, path, EXPORTS)
    assert open(path).read() == (profile.MARKER + "\n"
                                 'export GOOGLE_APPLICATION_CREDENTIALS="/home/me/.gcp/key.json"\n'
                                 'export GOOGLE_CLOUD_PROJECT="my-project"\n')


def test_upsert_is_idempotent(tmp_path, logger):
    path = tmp_path / ".bashrc"
    path.write_text("alias ll='ls -l'\nexport PATH=$PATH:/opt/bin\n")
    profile.upsert_exports(logger, str(path), EXPORTS)
    once = path.read_text()
    profile.upsert_exports(logger, str(path), EXPORTS)
    assert path.read_text() == once
    assert once.startswith("alias ll='ls -l'\nexport PATH=$PATH:/opt/bin\n\n")
    assert once.count("GOOGLE_CLOUD_PROJECT") == 1


def test_upsert_replaces_old_values(tmp_path, logger):
    path = tmp_path / ".zshrc"
    path.write_text('export GOOGLE_CLOUD_PROJECT="old"\n')
    profile.upsert_exports(logger, str(path), EXPORTS)
    text = path.read_text()
    assert '"old"' not in text
    assert 'export GOOGLE_CLOUD_PROJECT="my-project"' in text


def test_upsert_backs_up(tmp_path, logger):
    path = tmp_path / ".zshrc"
    path.write_text("original\n")
    profile.upsert_exports(logger, str(path), EXPORTS)
    backup, = glob.glob(str(path) + ".backup.*")
    assert open(backup).read() == "original\n"


def test_remove(tmp_path, logger):
    path = tmp_path / ".zshrc"
    path.write_text("alias ll='ls -l'\n")
    profile.upsert_exports(logger, str(path), EXPORTS)
    assert profile.mentions(str(path), KEYS)
    assert profile.remove_exports(logger, str(path), KEYS)
    assert path.read_text() == "alias ll='ls -l'\n"
    assert not profile.mentions(str(path), KEYS)


def test_remove_missing_file(tmp_path, logger):
    assert not profile.remove_exports(logger, str(tmp_path / ".zshrc"), KEYS)


def test_boto_is_created_once(tmp_path, logger):
    path = str(tmp_path / "gcloud" / ".boto")
    profile.ensure_boto(logger, path)
    first = open(path).read()
    assert "[GSUtil]" in first
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    profile.ensure_boto(logger, path)
    assert open(path).read() == first


def test_boto_block_is_appended(tmp_path, logger):
    path = tmp_path / ".boto"
    path.write_text("[Credentials]\ngs_oauth2_refresh_token = x\n")
    profile.ensure_boto(logger, str(path))
    text = path.read_text()
    assert text.startswith("[Credentials]\n")
    assert text.count(profile.BOTO_THRESHOLD) == 1
