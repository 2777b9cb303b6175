import asyncio
import contextlib
import logging
import os
import sys
from functools import partial

from prompt_toolkit.input.vt100 import raw_mode

from . import config as app_config
from .bridge import TerminalBridge
from .engine import QemuEngine

logger = logging.getLogger(__name__)

# Maximum number of host input bytes read per ready event.
_READ_SIZE = 4096


class Session:
    """
    Owns one interactive session: the engine, the terminal bridge, host
    terminal mode and the termination signals.

    Shutdown is requested either by the bridge's exit sequence or by a
    termination signal. Either way the terminal is restored first, then the
    engine is destroyed, and run() returns exit code 0.
    """

    def __init__(self, machine_config, engine_factory=QemuEngine, raw_mode_factory=raw_mode, stdin=None, stdout=None):
        self.machine_config = machine_config
        self._engine_factory = engine_factory
        self._raw_mode_factory = raw_mode_factory
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout.buffer
        self._stopped = None
        self.engine = None
        self.bridge = None
        self.raw_mode = False

    def request_shutdown(self, reason):
        """Ends the session. Later requests are ignored."""
        if self._stopped.is_set():
            return
        logger.info("Shutting down: %s", reason)
        self._stopped.set()

    def _on_input_ready(self, loop, stdin_fd):
        """Reads whatever the host sent and hands the raw bytes to the bridge."""
        try:
            data = os.read(stdin_fd, _READ_SIZE)
        except BlockingIOError:
            return
        except OSError as e:
            logger.warning("Host input read failed: %s", e)
            data = b""

        if not data:
            loop.remove_reader(stdin_fd)
            logger.info("Host input closed; guest output is still shown.")
            return
        self.bridge.feed(data)

    def _attach_terminal(self, loop, stack):
        """Switches an interactive stdin to raw mode and starts reading it."""
        stdin_fd = self._stdin.fileno()

        if self._stdin.isatty():
            print(app_config.USAGE_HINT, flush=True)
            stack.enter_context(self._raw_mode_factory(stdin_fd))
            self.raw_mode = True
            stack.callback(setattr, self, "raw_mode", False)

        try:
            loop.add_reader(stdin_fd, self._on_input_ready, loop, stdin_fd)
        except PermissionError:
            # epoll refuses regular files and /dev/null.
            logger.info("Host input is not readable; running without keyboard input.")
            return
        stack.callback(loop.remove_reader, stdin_fd)

    def _add_signal_handlers(self, loop, stack):
        for sig in app_config.TERMINATION_SIGNALS:
            loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            stack.callback(loop.remove_signal_handler, sig)

    async def run(self):
        """Runs the session until shutdown and returns the process exit code."""
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()

        self.engine = self._engine_factory(self.machine_config)
        try:
            self.bridge = TerminalBridge(
                send=self.engine.send,
                on_exit=partial(self.request_shutdown, "exit sequence"),
                output=self._stdout,
            )
            self.engine.subscribe_output(self.bridge.relay_output)

            with contextlib.ExitStack() as stack:
                self._attach_terminal(loop, stack)
                self._add_signal_handlers(loop, stack)
                await self._stopped.wait()
        finally:
            self.engine.destroy()

        return 0
