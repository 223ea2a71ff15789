import os

import pytest

from bsdimage import autoinstall
from bsdimage import build
from bsdimage import errors
from bsdimage import iso
from bsdimage import workspace

ALL = {"xorriso", "7z"}


def xorriso(command):
    """Write the -o file, remembering what was staged"""
    staging = command[-1]
    xorriso.staged = sorted(os.path.relpath(os.path.join(root, name), staging)
                            for root, _, files in os.walk(staging) for name in files)
    with open(command[command.index("-o") + 1], "wb") as f:
        f.write(b"CD001")


def seven_zip(command):
    """Pretend to extract an install ISO with a nested boot image"""
    directory = command[3][len("-o"):]
    nested = os.path.join(directory, "7.8", "amd64")
    os.makedirs(nested)
    for name in ("cdboot", "bsd.rd"):
        path = os.path.join(nested, name)
        with open(path, "wb") as f:
            f.write(b"x")
        os.chmod(path, 0o444)


@pytest.fixture
def bundle(tmp_path, logger):
    return autoinstall.generate(logger, str(tmp_path / "bundle"), autoinstall.Answers("7.8"),
                                seed=lambda n: b"\0" * n)


def test_config_iso(tmp_path, logger, fake_shell, bundle):
    fake_shell.tools = set(ALL)
    fake_shell.respond(["xorriso"], effect=xorriso)
    target = str(tmp_path / "config.iso")
    assert iso.compose_config_iso(logger, bundle, target) == target
    command, = fake_shell.ran("xorriso")
    assert command[:7] == ["xorriso", "-as", "mkisofs", "-o", target, "-R", "-J"]
    assert xorriso.staged == sorted(bundle.files())
    assert not os.path.exists(target + ".d")


def test_xorriso_failure(tmp_path, logger, fake_shell, bundle):
    fake_shell.tools = set(ALL)
    fake_shell.respond(["xorriso"], status=1)
    target = str(tmp_path / "config.iso")
    with pytest.raises(errors.ComposeError, match="status 1"):
        iso.compose_config_iso(logger, bundle, target, logfile=str(tmp_path / "xorriso.log"))
    assert not os.path.exists(target + ".d")


def test_needs_xorriso(tmp_path, logger, fake_shell, bundle):
    with pytest.raises(errors.MissingDependencyError):
        iso.compose_config_iso(logger, bundle, str(tmp_path / "config.iso"))


def test_boot_file_at_the_root(tmp_path, logger):
    (tmp_path / "cdbr").write_bytes(b"x")
    (tmp_path / "cdboot").write_bytes(b"x")
    assert iso.find_boot_file(logger, str(tmp_path), "7.8") == "cdbr"


def test_boot_file_is_missing(tmp_path, logger):
    with pytest.raises(errors.ComposeError, match="cdbr or cdboot"):
        iso.find_boot_file(logger, str(tmp_path), "7.8")


def test_extract_command(fake_shell):
    assert iso.extract_command("in.iso", "out") is None
    fake_shell.tools = {"bsdtar"}
    assert iso.extract_command("in.iso", "out") == ["bsdtar", "-xf", "in.iso", "-C", "out"]
    fake_shell.tools = {"bsdtar", "7z"}
    assert iso.extract_command("in.iso", "out") == ["7z", "x", "-y", "-oout", "in.iso"]


def test_patched_iso(tmp_path, logger, fake_shell, bundle):
    fake_shell.tools = set(ALL)
    fake_shell.respond(["7z"], effect=seven_zip)
    fake_shell.respond(["xorriso"], effect=xorriso)
    target = str(tmp_path / "patched.iso")
    iso.patch_install_iso(logger, "install78.iso", target, bundle, "7.8")
    command, = fake_shell.ran("xorriso")
    assert command[command.index("-b") + 1] == "cdboot"
    assert command[command.index("-V") + 1] == "OpenBSD_7.8"
    assert "cdboot" in xorriso.staged
    assert "auto_install.conf" in xorriso.staged
    assert os.path.join("7.8", "amd64", "bsd.rd") in xorriso.staged
    assert not os.path.exists(target + ".d")


def test_patching_needs_an_extractor(tmp_path, logger, fake_shell, bundle):
    fake_shell.tools = {"xorriso"}
    with pytest.raises(errors.MissingDependencyError):
        iso.patch_install_iso(logger, "install78.iso", str(tmp_path / "patched.iso"), bundle, "7.8")


@pytest.mark.parametrize("media, count", [(build.CONFIG_ISO, 2), (build.PATCHED_ISO, 1)])
def test_compose_media(tmp_path, logger, fake_shell, media, count):
    fake_shell.tools = set(ALL)
    fake_shell.respond(["7z"], effect=seven_zip)
    fake_shell.respond(["xorriso"], effect=xorriso)
    space = workspace.Workspace(str(tmp_path)).setup(logger)
    install_iso = space.iso("7.8")
    cdroms = build.compose_media(logger, space, "7.8", install_iso,
                                 autoinstall.Answers("7.8"), media=media)
    assert len(cdroms) == count
    if media == build.CONFIG_ISO:
        assert cdroms == [space.config_iso(), install_iso]
    else:
        assert cdroms == [space.patched_iso("7.8")]
    assert not os.path.exists(os.path.join(space.temp, "autoinstall"))
