import signal
from pathlib import Path

# --- Program Identity ---

PROG_NAME = "v86-system-i386"
VERSION = "0.3.0"
DESCRIPTION = "Run an x86 virtual machine from the command line with its serial console on this terminal."

# --- Installation Assets ---

# Bundled firmware and engine runtime files live next to the package source,
# never relative to the caller's working directory.
ASSETS_DIR = Path(__file__).resolve().parent / "assets"
# The default system BIOS image, used when --bios is not given.
BIOS_IMAGE = "seabios.bin"
# The default VGA BIOS image, used when --vga-bios is not given.
VGA_BIOS_IMAGE = "vgabios.bin"

# --- Machine Defaults ---

# The default amount of RAM for the guest.
DEFAULT_MEMORY = "512M"
# The default amount of video memory for the guest.
DEFAULT_VGA_MEMORY = "8M"
# The default boot device letter (hard disk). The engine boots from it on its own.
DEFAULT_BOOT_ORDER = "c"
# The default engine log level, as typed on the command line.
DEFAULT_LOG_LEVEL = "0"

# --- Boot Order Codes ---

BOOT_FLOPPY_A = 0x01
BOOT_FLOPPY_B = 0x02
BOOT_HARD_DISK = 0x80
BOOT_CDROM = 0x81
BOOT_NETWORK = 0x82

BOOT_ORDER_CODES = {
    "a": BOOT_FLOPPY_A,
    "b": BOOT_FLOPPY_B,
    "c": BOOT_HARD_DISK,
    "d": BOOT_CDROM,
    "n": BOOT_NETWORK,
}

# --- Memory Size Units ---

MEMORY_UNIT_MULTIPLIERS = {
    "": 1024 ** 2,  # a bare number means megabytes
    "B": 1,
    "K": 1024,
    "M": 1024 ** 2,
    "G": 1024 ** 3,
    "T": 1024 ** 4,
}

# --- Compound Descriptor Modes ---

# The only --netdev mode that produces a network descriptor.
NETWORK_MODE = "user"
# The only --virtfs mode that produces a filesystem descriptor.
VIRTFS_MODE = "proxy"

# --- Terminal Bridge ---

# Ctrl-A starts a launcher command; the next byte selects it.
ESCAPE_BYTE = 0x01
EXIT_KEYS = b"xX"
USAGE_HINT = "Press Ctrl-A X to exit."

# Signals that end the session. SIGINT only arrives from outside while the
# terminal is in raw mode, since Ctrl-C is delivered to the guest as a byte.
TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP, signal.SIGINT)

# --- QEMU Engine ---

# The system emulator binary used as the engine runtime.
QEMU_EXECUTABLE = "qemu-system-i386"
# A copy installed under ASSETS_DIR/bin takes precedence over PATH.
QEMU_ASSET_PATH = ASSETS_DIR / "bin" / QEMU_EXECUTABLE
# Seconds to wait for the engine to exit before killing it.
QEMU_TERMINATE_TIMEOUT = 2
# Network backend id shared by -netdev and the NIC.
NETWORK_ID = "net0"
# NIC models selected by the "type" key of the network descriptor.
NIC_MODELS = {
    "virtio": "virtio-net-pci",
    "ne2k": "ne2k_pci",
    "e1000": "e1000",
}
DEFAULT_NIC_MODEL = "e1000"
# Network descriptor keys that QEMU's user-mode backend understands directly.
USER_NETWORK_OPTIONS = (
    "net", "host", "hostname", "dns", "dhcpstart", "domainname",
    "restrict", "hostfwd", "guestfwd", "tftp", "bootfile", "smb",
)
# Guest debug categories enabled for each log level (cumulative).
LOG_LEVEL_CATEGORIES = ("guest_errors", "unimp", "int")

# --- Directory Sharing Configuration ---
VIRTFS_SECURITY_MODEL = "mapped-xattr"
VIRTFS_MOUNT_TAG = "host9p"
