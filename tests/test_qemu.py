import pytest

from bsdimage import errors
from bsdimage import qemu


def test_command_orders_the_cdroms():
    machine = qemu.Machine(None, "/w/temp/disk.raw", ["/w/temp/config.iso", "/w/cache/install78.iso"],
                           memory="4G", cpus=4)
    command = machine.command()
    assert command[:6] == ["qemu-system-x86_64", "-nographic", "-smp", "4", "-m", "4G"]
    drives = [command[i + 1] for i, arg in enumerate(command) if arg == "-drive"]
    assert drives == ["if=virtio,file=/w/temp/disk.raw,format=raw",
                      "file=/w/temp/config.iso,media=cdrom,readonly=on",
                      "file=/w/cache/install78.iso,media=cdrom,readonly=on"]
    assert command[-2:] == ["-boot", "once=d"]


def test_create_disk(tmp_path, logger, fake_shell):
    disk = tmp_path / "disk.raw"
    disk.write_bytes(b"old")
    assert qemu.create_disk(logger, str(disk), "30G") == str(disk)
    assert not disk.exists()
    assert fake_shell.commands == [["qemu-img", "create", "-f", "raw", str(disk), "30G"]]


def test_create_disk_failure(tmp_path, logger, fake_shell):
    fake_shell.respond(["qemu-img"], status=1, output="no space")
    with pytest.raises(errors.CommandError, match="no space"):
        qemu.create_disk(logger, str(tmp_path / "disk.raw"), "30G")


def test_nothing_to_destroy(logger):
    machine = qemu.Machine(logger, "disk.raw", [])
    assert machine.destroy()
    assert machine.wait_for_shutdown(1)
