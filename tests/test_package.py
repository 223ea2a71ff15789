import gzip
import io
import os
import tarfile

import pytest

from bsdimage import errors
from bsdimage import package
from bsdimage import workspace

from conftest import fake_tar


def make_tar(path, *names):
    with tarfile.open(path, "w:gz") as tar:
        for name in names:
            data = b"disk"
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def raw(tmp_path):
    path = tmp_path / "temp" / "disk.raw"
    path.parent.mkdir()
    path.write_bytes(b"\0" * 4096 + b"OpenBSD")
    return str(path)


@pytest.fixture
def space(tmp_path, logger):
    return workspace.Workspace(str(tmp_path)).setup(logger)


def test_single_disk_raw_passes(tmp_path, logger):
    path = make_tar(str(tmp_path / "ok.tar.gz"), "disk.raw")
    assert package.verify_tar(logger, path) == ["disk.raw"]


@pytest.mark.parametrize("names", [
    ("disk.raw", "extra"),
    ("build/disk.raw",),
    ("./disk.raw",),
    (),
])
def test_anything_else_fails(tmp_path, logger, names):
    path = make_tar(str(tmp_path / "bad.tar.gz"), *names)
    with pytest.raises(errors.PackageError):
        package.verify_tar(logger, path)


def test_verify_stream(tmp_path, logger):
    path = make_tar(str(tmp_path / "ok.tar.gz"), "disk.raw")
    with open(path, "rb") as f:
        assert package.verify_tar(logger, fileobj=f) == ["disk.raw"]


def test_not_a_tar(tmp_path, logger):
    path = tmp_path / "junk.tar.gz"
    path.write_bytes(b"junk")
    with pytest.raises(errors.PackageError):
        package.verify_tar(logger, str(path))


def test_archive_runs_sparse_tar_and_verifies(tmp_path, logger, fake_shell, raw):
    fake_shell.respond(["tar"], effect=fake_tar)
    target = str(tmp_path / "out.tar.gz")
    package.archive(logger, raw, target)
    command, = fake_shell.ran("tar")
    assert command == ["tar", "-C", os.path.dirname(raw), "-Szcf", target, "disk.raw"]


def test_archive_needs_disk_raw(tmp_path, logger, fake_shell):
    other = tmp_path / "other.raw"
    other.write_bytes(b"x")
    with pytest.raises(errors.PackageError):
        package.archive(logger, str(other), str(tmp_path / "out.tar.gz"))
    assert fake_shell.commands == []


def test_default_formats(logger, fake_shell, raw, space):
    fake_shell.respond(["tar"], effect=fake_tar)
    artifacts = package.package(logger, raw, space, "7.8", package.Formats(package.DEFAULT_FORMATS))
    assert list(artifacts) == ["qcow2", "tar.gz"]
    assert artifacts["tar.gz"] == space.artifact("7.8", "tar.gz")
    command, = fake_shell.ran("qemu-img")
    assert command == ["qemu-img", "convert", "-f", "raw", "-O", "qcow2",
                       raw, space.artifact("7.8", "qcow2")]


def test_raw_gz_and_decompress(tmp_path, logger, raw, space):
    artifacts = package.package(logger, raw, space, "7.8", package.Formats("raw.gz"))
    with gzip.open(artifacts["raw.gz"]) as f, open(raw, "rb") as r:
        assert f.read() == r.read()
    out = tmp_path / "out"
    out.mkdir()
    assert package.decompress(logger, artifacts["raw.gz"], str(out)) == str(out / "disk.raw")


def test_first_failure_stops(logger, fake_shell, raw, space):
    fake_shell.respond(["qemu-img"], status=1, output="qemu-img: out of space")
    with pytest.raises(errors.PackageError, match="out of space"):
        package.package(logger, raw, space, "7.8", package.Formats("qcow2,tar.gz"))
    assert fake_shell.ran("tar") == []


def test_missing_raw_disk(tmp_path, logger, space):
    with pytest.raises(errors.PackageError):
        package.package(logger, str(tmp_path / "nope"), space, "7.8", package.Formats("qcow2"))


def test_formats():
    assert list(package.Formats("tar.gz,qcow2,tar.gz")) == ["tar.gz", "qcow2"]
    with pytest.raises(ValueError):
        package.Formats("iso")
