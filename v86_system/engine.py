"""
The virtual-machine engine collaborator.

The launcher only ever constructs an engine from a MachineConfiguration,
subscribes to the guest's serial output bytes, sends serial input bytes and
destroys the engine. QemuEngine implements those four calls on top of a
qemu-system-i386 child process whose first serial port is wired to its stdio.
"""

import asyncio
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod

from . import config as app_config
from . import values

logger = logging.getLogger(__name__)

_MIB = 1024 ** 2
_BOOT_LETTERS = {code: letter for letter, code in app_config.BOOT_ORDER_CODES.items()}


class EngineUnavailable(RuntimeError):
    """Raised when the engine runtime cannot be found or started."""


class Engine(ABC):
    """The interface the launcher consumes. Constructing an engine starts the machine."""

    def __init__(self, machine_config):
        self.machine_config = machine_config

    @abstractmethod
    def subscribe_output(self, callback):
        """Registers callback(byte) for every byte the guest writes to its serial console."""

    @abstractmethod
    def send(self, data):
        """Delivers bytes to the guest's serial console input without blocking."""

    @abstractmethod
    def destroy(self):
        """Releases all engine resources. Safe to call more than once."""


def find_qemu_executable(override=None):
    """Returns the engine runtime binary: an explicit override, the bundled copy, or the one on PATH."""
    if override:
        return override
    if os.access(app_config.QEMU_ASSET_PATH, os.X_OK):
        return str(app_config.QEMU_ASSET_PATH)
    executable = shutil.which(app_config.QEMU_EXECUTABLE)
    if not executable:
        raise EngineUnavailable(
            f"Could not find '{app_config.QEMU_EXECUTABLE}' in {app_config.QEMU_ASSET_PATH.parent} or on PATH."
        )
    return executable


def _size_in_mib(size):
    return max(1, size // _MIB)


def _is_bundled(image):
    return not values.is_url(image.url) and os.path.dirname(image.url) == str(app_config.ASSETS_DIR)


def _firmware_args(machine_config):
    """Returns the firmware flags, leaving missing bundled images to QEMU's built-in firmware."""
    args = []
    for image, flags in (
        (machine_config.bios, lambda url: ["-bios", url]),
        (machine_config.vga_bios, lambda url: ["-global", f"VGA.romfile={url}"]),
    ):
        if _is_bundled(image) and not os.path.exists(image.url):
            logger.warning("Bundled firmware %s is not installed; using the engine's built-in firmware.", image.url)
            continue
        args.extend(flags(image.url))
    return args


def _network_args(net_device):
    """Translates a network descriptor into a user-mode -netdev and a NIC."""
    backend = [f"user,id={app_config.NETWORK_ID}"]
    nic_model = app_config.DEFAULT_NIC_MODEL
    for key, value in net_device.items():
        if key == "type":
            nic_model = app_config.NIC_MODELS.get(value, app_config.DEFAULT_NIC_MODEL)
        elif key in app_config.USER_NETWORK_OPTIONS:
            backend.append(f"{key}={value}")
        else:
            logger.debug("Network option %r is not supported by the QEMU engine; ignored.", key)
    return ["-netdev", ",".join(backend), "-device", f"{nic_model},netdev={app_config.NETWORK_ID}"]


def _virtfs_args(filesystem):
    """Shares a local directory with the guest over 9p; other proxy targets are skipped."""
    target = filesystem.get("proxy_url", "")
    if values.is_url(target) or not os.path.isdir(target):
        logger.warning("VirtFS target %r is not a local directory; filesystem sharing disabled.", target)
        return []
    tag = app_config.VIRTFS_MOUNT_TAG
    return ["-virtfs", f"local,path={os.path.abspath(target)},mount_tag={tag},security_model={app_config.VIRTFS_SECURITY_MODEL},id={tag}"]


def build_qemu_args(machine_config, executable):
    """Constructs the QEMU command line for a MachineConfiguration."""
    args = [executable, "-display", "none", "-monitor", "none", "-serial", "stdio"]

    if machine_config.memory_size:
        args.extend(["-m", f"{_size_in_mib(machine_config.memory_size)}M"])
    if machine_config.vga_memory_size:
        args.extend(["-global", f"VGA.vgamem_mb={_size_in_mib(machine_config.vga_memory_size)}"])

    args.extend(_firmware_args(machine_config))

    for flag in ("hda", "hdb", "fda", "fdb", "cdrom", "kernel", "initrd"):
        image = getattr(machine_config, flag)
        if image:
            args.extend([f"-{flag}", image.url])
    if machine_config.cmdline:
        args.extend(["-append", machine_config.cmdline])

    boot_options = []
    if machine_config.boot_order is not None:
        boot_options.append(f"order={_BOOT_LETTERS.get(machine_config.boot_order, app_config.DEFAULT_BOOT_ORDER)}")
    if machine_config.fastboot:
        boot_options.append("menu=off")
    if boot_options:
        args.extend(["-boot", ",".join(boot_options)])

    if not machine_config.acpi:
        args.extend(["-machine", "acpi=off"])
    if not machine_config.autostart:
        args.append("-S")

    for flag in ("disable_keyboard", "disable_mouse", "disable_speaker"):
        if getattr(machine_config, flag):
            logger.debug("%s has no effect on a headless QEMU engine.", flag)

    if machine_config.log_level is not None and machine_config.log_level > 0:
        categories = app_config.LOG_LEVEL_CATEGORIES[:machine_config.log_level]
        args.extend(["-d", ",".join(categories)])

    if machine_config.net_device is not None:
        args.extend(_network_args(machine_config.net_device))
    if machine_config.filesystem is not None:
        args.extend(_virtfs_args(machine_config.filesystem))

    return args


class QemuEngine(Engine):
    """
    Runs the machine in a qemu-system-i386 child process.

    Must be constructed inside a running asyncio loop: the child's stdout is
    registered with the loop and every byte read is passed to the output
    subscribers in order.
    """

    def __init__(self, machine_config, executable=None):
        super().__init__(machine_config)
        self._loop = asyncio.get_running_loop()
        self._subscribers = []
        self._destroyed = False

        args = build_qemu_args(machine_config, find_qemu_executable(executable))
        logger.info("Starting engine: %s", subprocess.list2cmdline(args))
        try:
            self._process = subprocess.Popen(args, stdin=subprocess.PIPE, stdout=subprocess.PIPE, bufsize=0)
        except OSError as e:
            raise EngineUnavailable(f"Could not start '{args[0]}': {e}") from e

        self._stdout_fd = self._process.stdout.fileno()
        os.set_blocking(self._stdout_fd, False)
        self._loop.add_reader(self._stdout_fd, self._on_output_ready)

        # Input the child hasn't accepted yet; drained by a loop writer.
        self._stdin_fd = self._process.stdin.fileno()
        os.set_blocking(self._stdin_fd, False)
        self._pending_input = bytearray()

    def subscribe_output(self, callback):
        self._subscribers.append(callback)

    def _on_output_ready(self):
        try:
            data = os.read(self._stdout_fd, 4096)
        except BlockingIOError:
            return
        except OSError as e:
            logger.warning("Engine output read failed: %s", e)
            data = b""

        if not data:
            self._loop.remove_reader(self._stdout_fd)
            logger.warning("Engine exited with code %s. %s", self._process.poll(), app_config.USAGE_HINT)
            return

        for byte in data:
            for callback in self._subscribers:
                callback(byte)

    @property
    def pending_input(self):
        """Number of sent bytes still waiting for the child to read them."""
        return len(self._pending_input)

    def send(self, data):
        if self._destroyed or not data:
            return
        already_waiting = bool(self._pending_input)
        self._pending_input.extend(data)
        if not already_waiting:
            self._flush_input()

    def _flush_input(self):
        try:
            written = os.write(self._stdin_fd, self._pending_input)
        except BlockingIOError:
            written = 0
        except OSError as e:
            logger.debug("Engine input closed (%s); dropped %d bytes.", e, len(self._pending_input))
            self._pending_input.clear()
            self._loop.remove_writer(self._stdin_fd)
            return

        del self._pending_input[:written]
        if self._pending_input:
            self._loop.add_writer(self._stdin_fd, self._flush_input)
        else:
            self._loop.remove_writer(self._stdin_fd)

    def destroy(self):
        if self._destroyed:
            return
        self._destroyed = True
        logger.debug("Destroying engine (pid %d).", self._process.pid)

        self._loop.remove_reader(self._stdout_fd)
        self._loop.remove_writer(self._stdin_fd)
        self._pending_input.clear()
        for pipe in (self._process.stdin, self._process.stdout):
            try:
                pipe.close()
            except OSError:
                pass

        if self._process.poll() is None:
            self._process.terminate()
        try:
            self._process.wait(timeout=app_config.QEMU_TERMINATE_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.debug("Engine didn't exit, killing it.")
            self._process.kill()
            self._process.wait()
        logger.info("Engine exited with code %s.", self._process.returncode)
