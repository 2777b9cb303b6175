"""
The machine configuration handed to the engine, and the builder that
assembles it from parsed command-line options.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from . import config as app_config
from . import values

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageReference:
    """An image the engine should load: an absolute path or a URL. Never opened here."""
    url: str


@dataclass(frozen=True)
class MachineConfiguration:
    """
    Everything the engine needs to construct a machine.

    Fields left as None are absent: the engine falls back to its own
    default for them.
    """
    bios: ImageReference
    vga_bios: ImageReference
    memory_size: Optional[int] = None
    vga_memory_size: Optional[int] = None
    hda: Optional[ImageReference] = None
    hdb: Optional[ImageReference] = None
    fda: Optional[ImageReference] = None
    fdb: Optional[ImageReference] = None
    cdrom: Optional[ImageReference] = None
    kernel: Optional[ImageReference] = None
    initrd: Optional[ImageReference] = None
    cmdline: Optional[str] = None
    boot_order: Optional[int] = None
    acpi: bool = False
    fastboot: bool = False
    autostart: bool = True
    disable_keyboard: bool = False
    disable_mouse: bool = False
    disable_speaker: bool = False
    log_level: Optional[int] = None
    net_device: Optional[Dict[str, str]] = None
    filesystem: Optional[Dict[str, str]] = None


def create_image(location, cwd=None):
    """Wraps a location in an ImageReference, or returns None when no location was given."""
    if not location:
        return None
    return ImageReference(url=values.resolve_image_location(location, cwd))


def default_firmware(filename):
    return ImageReference(url=str(app_config.ASSETS_DIR / filename))


def build_machine_config(options, cwd=None):
    """
    Builds a MachineConfiguration from parsed command-line options.

    Args:
        options: The argparse namespace from args.parse_args().
        cwd: Directory that relative image paths are resolved against.
             Defaults to the current working directory.

    Returns:
        A complete MachineConfiguration.

    Raises:
        values.InvalidSizeFormat: If --mem or --vga-mem is malformed.
    """
    boot_order = None
    if options.boot and options.boot != app_config.DEFAULT_BOOT_ORDER:
        boot_order = values.parse_boot_order(options.boot)

    machine_config = MachineConfiguration(
        memory_size=values.parse_memory_size(options.mem) or None,
        vga_memory_size=values.parse_memory_size(options.vga_mem) or None,
        bios=create_image(options.bios, cwd) or default_firmware(app_config.BIOS_IMAGE),
        vga_bios=create_image(options.vga_bios, cwd) or default_firmware(app_config.VGA_BIOS_IMAGE),
        hda=create_image(options.hda, cwd),
        hdb=create_image(options.hdb, cwd),
        fda=create_image(options.fda, cwd),
        fdb=create_image(options.fdb, cwd),
        cdrom=create_image(options.cdrom, cwd),
        kernel=create_image(options.kernel, cwd),
        initrd=create_image(options.initrd, cwd),
        cmdline=options.append or None,
        boot_order=boot_order,
        acpi=options.acpi,
        fastboot=options.fastboot,
        autostart=options.autostart,
        disable_keyboard=options.disable_keyboard,
        disable_mouse=options.disable_mouse,
        disable_speaker=options.disable_speaker,
        log_level=values.parse_log_level(options.log_level),
        net_device=values.parse_network_descriptor(options.netdev),
        filesystem=values.parse_virtfs_descriptor(options.virtfs),
    )
    logger.debug("Built machine configuration: %s", machine_config)
    return machine_config
