import argparse

from . import config as app_config

EPILOG = """\
Examples:
  v86-system -hda disk.img
  v86-system -m 1G -hda disk.img -cdrom boot.iso
  v86-system -kernel vmlinuz -initrd initrd.img -append "console=ttyS0"
  v86-system -hda disk.img -netdev user,type=virtio,relay_url=wss://relay.example/
"""


def normalize_args(argv):
    """
    Rewrites single-dash long options (e.g. -hda) to the double-dash form
    argparse understands. Short flags like -m and tokens already using two
    dashes are left alone, so normalizing twice changes nothing.
    """
    return [
        "-" + arg if arg.startswith("-") and not arg.startswith("--") and len(arg) > 2 else arg
        for arg in argv
    ]


def build_parser():
    """Creates the parser for the launcher's command-line surface."""
    parser = argparse.ArgumentParser(
        prog=app_config.PROG_NAME,
        description=app_config.DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    standard = parser.add_argument_group("Standard options")
    standard.add_argument("-v", "--version", action="version", version=f"{app_config.PROG_NAME} {app_config.VERSION}")

    memory = parser.add_argument_group("Memory options")
    memory.add_argument("-m", "--mem", metavar="SIZE", default=app_config.DEFAULT_MEMORY, help=f"Set memory size (default: {app_config.DEFAULT_MEMORY}).")
    memory.add_argument("--vga-mem", metavar="SIZE", default=app_config.DEFAULT_VGA_MEMORY, help=f"Set VGA memory size (default: {app_config.DEFAULT_VGA_MEMORY}).")

    storage = parser.add_argument_group("Storage options")
    storage.add_argument("--hda", metavar="FILE", help="Primary hard disk image.")
    storage.add_argument("--hdb", metavar="FILE", help="Secondary hard disk image.")
    storage.add_argument("--fda", metavar="FILE", help="Floppy disk A image.")
    storage.add_argument("--fdb", metavar="FILE", help="Floppy disk B image.")
    storage.add_argument("--cdrom", metavar="FILE", help="CD-ROM image.")

    boot = parser.add_argument_group("Boot options")
    boot.add_argument("--boot", metavar="ORDER", default=app_config.DEFAULT_BOOT_ORDER, help=f"Boot device (a, b, c, d, n) (default: {app_config.DEFAULT_BOOT_ORDER}).")
    boot.add_argument("--kernel", metavar="FILE", help="Linux kernel image (bzImage).")
    boot.add_argument("--initrd", metavar="FILE", help="Initial ramdisk image.")
    boot.add_argument("--append", metavar="STRING", help="Kernel command line.")

    system = parser.add_argument_group("System options")
    system.add_argument("--bios", metavar="FILE", help="BIOS image file.")
    system.add_argument("--vga-bios", metavar="FILE", help="VGA BIOS image file.")
    system.add_argument("--acpi", action="store_true", help="Enable ACPI (default: off).")
    system.add_argument("--fastboot", action="store_true", help="Skip boot delays.")

    network = parser.add_argument_group("Network and filesystem options")
    network.add_argument("--netdev", metavar="CONFIG", help='Network device, e.g. "user,type=virtio,relay_url=URL".')
    network.add_argument("--virtfs", metavar="CONFIG", help='Shared filesystem, e.g. "proxy,URL".')

    launcher = parser.add_argument_group("V86 specific options")
    launcher.add_argument("--autostart", action=argparse.BooleanOptionalAction, default=True, help="Start emulation automatically.")
    launcher.add_argument("--disable-keyboard", action="store_true", help="Disable keyboard input.")
    launcher.add_argument("--disable-mouse", action="store_true", help="Disable mouse input.")
    launcher.add_argument("--disable-speaker", action="store_true", help="Disable speaker output.")

    debug = parser.add_argument_group("Debug options")
    debug.add_argument("--log-level", metavar="LEVEL", default=app_config.DEFAULT_LOG_LEVEL, help="Set engine logging level (0-3).")
    debug.add_argument("--debug-file", metavar="FILE", help="Write a timestamped launcher debug log to FILE.")

    parser.add_argument("--qemu-executable", default=None, help=argparse.SUPPRESS)

    return parser


def parse_args(argv):
    """Normalizes argv and parses it into an argparse namespace."""
    return build_parser().parse_args(normalize_args(argv))
