import dataclasses
import os

import pytest

from v86_system import config as app_config
from v86_system.args import parse_args
from v86_system.machine import ImageReference, MachineConfiguration, build_machine_config
from v86_system.values import InvalidSizeFormat


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Runs the test from an empty working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def build(argv, cwd=None):
    return build_machine_config(parse_args(argv), cwd=cwd)


def test_end_to_end_configuration(workdir):
    """--hda disk.img --m 1G --boot d builds the expected machine."""
    machine_config = build(["--hda", "disk.img", "--m", "1G", "--boot", "d"])
    assert machine_config.memory_size == 1073741824
    assert machine_config.hda == ImageReference(url=os.path.join(str(workdir), "disk.img"))
    assert machine_config.boot_order == 0x81


def test_defaults(workdir):
    """Without flags, only defaults are set and optional fields stay absent."""
    machine_config = build([])
    assert machine_config.memory_size == 512 * 1024 ** 2
    assert machine_config.vga_memory_size == 8 * 1024 ** 2
    assert machine_config.boot_order is None
    assert machine_config.log_level == 0
    assert machine_config.autostart is True
    assert machine_config.acpi is False
    assert machine_config.net_device is None
    assert machine_config.filesystem is None
    for field in ("hda", "hdb", "fda", "fdb", "cdrom", "kernel", "initrd", "cmdline"):
        assert getattr(machine_config, field) is None


def test_default_firmware_comes_from_install_location(workdir):
    """Bundled firmware is located next to the package, not in the working directory."""
    machine_config = build([])
    assert machine_config.bios.url == str(app_config.ASSETS_DIR / app_config.BIOS_IMAGE)
    assert machine_config.vga_bios.url == str(app_config.ASSETS_DIR / app_config.VGA_BIOS_IMAGE)
    assert not machine_config.bios.url.startswith(str(workdir))


def test_firmware_overrides_are_resolved(workdir):
    machine_config = build(["-bios", "my-bios.bin", "-vga-bios", "/opt/vga.bin"])
    assert machine_config.bios.url == os.path.join(str(workdir), "my-bios.bin")
    assert machine_config.vga_bios.url == "/opt/vga.bin"


def test_all_images_are_resolved(tmp_path):
    argv = [
        "-hda", "a.img", "-hdb", "b.img", "-fda", "fa.img", "-fdb", "fb.img",
        "-cdrom", "cd.iso", "-kernel", "bzImage", "-initrd", "initrd.gz",
    ]
    machine_config = build(argv, cwd=str(tmp_path))
    assert machine_config.hda.url == str(tmp_path / "a.img")
    assert machine_config.hdb.url == str(tmp_path / "b.img")
    assert machine_config.fda.url == str(tmp_path / "fa.img")
    assert machine_config.fdb.url == str(tmp_path / "fb.img")
    assert machine_config.cdrom.url == str(tmp_path / "cd.iso")
    assert machine_config.kernel.url == str(tmp_path / "bzImage")
    assert machine_config.initrd.url == str(tmp_path / "initrd.gz")


def test_url_images_are_left_unresolved(workdir):
    machine_config = build(["-cdrom", "https://example.com/boot.iso"])
    assert machine_config.cdrom.url == "https://example.com/boot.iso"


def test_kernel_command_line(workdir):
    machine_config = build(["-kernel", "vmlinuz", "-append", "console=ttyS0 quiet"])
    assert machine_config.cmdline == "console=ttyS0 quiet"


class TestBootOrderField:
    """Tests for how the boot order ends up in the configuration."""

    def test_default_letter_is_omitted(self, workdir):
        """Explicitly asking for 'c' leaves the field absent, like the default."""
        assert build(["-boot", "c"]).boot_order is None

    def test_other_letters_are_encoded(self, workdir):
        assert build(["-boot", "a"]).boot_order == app_config.BOOT_FLOPPY_A
        assert build(["-boot", "n"]).boot_order == app_config.BOOT_NETWORK

    def test_unknown_letter_becomes_hard_disk(self, workdir):
        """The letter is not 'c' so the field is set, but to the hard disk code."""
        assert build(["-boot", "z"]).boot_order == app_config.BOOT_HARD_DISK

    def test_cdrom_boot_without_cdrom_is_not_validated(self, workdir):
        assert build(["-boot", "d"]).cdrom is None
        assert build(["-boot", "d"]).boot_order == app_config.BOOT_CDROM


def test_feature_flags(workdir):
    machine_config = build([
        "-acpi", "-fastboot", "--no-autostart",
        "-disable-keyboard", "-disable-mouse", "-disable-speaker",
    ])
    assert machine_config.acpi is True
    assert machine_config.fastboot is True
    assert machine_config.autostart is False
    assert machine_config.disable_keyboard is True
    assert machine_config.disable_mouse is True
    assert machine_config.disable_speaker is True


def test_log_level(workdir):
    assert build(["-log-level", "3"]).log_level == 3
    assert build(["-log-level", "verbose"]).log_level is None


def test_zero_memory_is_omitted(workdir):
    assert build(["-m", "0"]).memory_size is None


def test_compound_descriptors(workdir):
    machine_config = build(["-netdev", "user,type=virtio,relay_url=ws://x", "-virtfs", "proxy,ws://fs"])
    assert machine_config.net_device == {"type": "virtio", "relay_url": "ws://x"}
    assert machine_config.filesystem == {"proxy_url": "ws://fs"}


def test_unrecognized_compound_modes_are_dropped(workdir):
    machine_config = build(["-netdev", "bridge,foo=bar", "-virtfs", "local,/srv"])
    assert machine_config.net_device is None
    assert machine_config.filesystem is None


@pytest.mark.parametrize("flag", ["-m", "-vga-mem"])
def test_malformed_memory_size_fails_the_build(workdir, flag):
    with pytest.raises(InvalidSizeFormat):
        build([flag, "12X"])


def test_configuration_is_immutable(workdir):
    machine_config = build([])
    assert isinstance(machine_config, MachineConfiguration)
    with pytest.raises(dataclasses.FrozenInstanceError):
        machine_config.memory_size = 1
