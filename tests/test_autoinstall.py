import os
import tarfile

from bsdimage import autoinstall


def seed(size):
    return b"\0" * size


def read_tree(directory):
    tree = {}
    for root, _, files in os.walk(directory):
        for name in files:
            path = os.path.join(root, name)
            with open(path, "rb") as f:
                tree[os.path.relpath(path, directory)] = f.read()
    return tree


def test_same_parameters_same_bytes(tmp_path, logger):
    answers = autoinstall.Answers("7.8", hostname="builder")
    autoinstall.generate(logger, str(tmp_path / "a"), answers, seed=seed)
    autoinstall.generate(logger, str(tmp_path / "b"), answers, seed=seed)
    a = read_tree(tmp_path / "a")
    b = read_tree(tmp_path / "b")
    assert a == b
    assert sorted(a) == sorted(autoinstall.Bundle(str(tmp_path / "a"), answers).files())


def test_random_seed_is_the_only_difference(tmp_path, logger):
    answers = autoinstall.Answers("7.8")
    autoinstall.generate(logger, str(tmp_path / "a"), answers)
    autoinstall.generate(logger, str(tmp_path / "b"), answers)
    a = read_tree(tmp_path / "a")
    b = read_tree(tmp_path / "b")
    differ = [name for name in a if a[name] != b[name]]
    assert differ == [autoinstall.RANDOM_SEED]
    assert len(a[autoinstall.RANDOM_SEED]) == autoinstall.SEED_SIZE


def test_answers(tmp_path):
    text = autoinstall.answers_text(autoinstall.Answers("7.8"))
    lines = text.splitlines()
    assert lines[0] == "System hostname = openbsd-7.8"
    assert "Password for root account = root" in lines
    assert "Change the default console to com0 = yes" in lines
    assert "Which speed should com0 use = 115200" in lines
    assert "Location of sets = cd1" in lines
    assert "Set name(s) = +* -x* -game* -man*" in lines
    assert "URL to autopartitioning template for disklabel = file://disklabel.template" in lines


def test_answers_follow_parameters():
    answers = autoinstall.Answers("7.8", hostname="gce", root_password="pw",
                                  sets_location="cd0", interface="em0")
    lines = autoinstall.answers_text(answers).splitlines()
    assert "System hostname = gce" in lines
    assert "Password for root account = pw" in lines
    assert "Location of sets = cd0" in lines
    assert "IPv4 address for em0 = dhcp" in lines


def test_disklabel_template():
    assert autoinstall.disklabel_text(autoinstall.DEFAULT_LAYOUT) == "/\t5G-*\t95%\nswap\t2G\n"


def test_boot_conf():
    assert autoinstall.boot_conf_text().startswith("set tty com0\n")


def test_site_tgz(tmp_path, logger):
    answers = autoinstall.Answers("7.8")
    bundle = autoinstall.generate(logger, str(tmp_path), answers, seed=seed)
    assert bundle.site_tgz() == str(tmp_path / "7.8" / "amd64" / "site78.tgz")
    with tarfile.open(bundle.site_tgz()) as tar:
        member, = tar.getmembers()
        assert member.name == "./install.site"
        assert member.mtime == 0
        assert member.mode == 0o755
        script = tar.extractfile(member).read().decode()
    assert script == autoinstall.install_site_text(answers)
    assert "rcctl enable sshd" in script
    assert "/etc/hostname.vio0" in script
