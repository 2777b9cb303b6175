import logging
from enum import Enum, auto
from typing import Callable, NamedTuple

from . import config as app_config

# Set up a logger for this module.
logger = logging.getLogger(__name__)


class BridgeState(Enum):
    """Represents the state of the terminal bridge."""
    NORMAL = auto()
    ESCAPE_PENDING = auto()


class Transition(NamedTuple):
    """The result of feeding one host byte to the bridge."""
    state: BridgeState
    forward: bytes
    shutdown: bool


def step(state: BridgeState, byte: int) -> Transition:
    """
    Computes the bridge transition for one byte of host input.

    In NORMAL state every byte goes to the guest, control characters such as
    Ctrl-C included, except the escape byte (Ctrl-A), which is held back.
    The byte after an escape is either an exit key, which requests shutdown
    and forwards nothing, or anything else, in which case the held escape
    byte and this byte are both forwarded.

    Args:
        state: The current bridge state.
        byte: The next input byte (0-255).

    Returns:
        A Transition with the next state, the bytes to send to the guest and
        whether shutdown was requested.
    """
    if state == BridgeState.ESCAPE_PENDING:
        if byte in app_config.EXIT_KEYS:
            return Transition(BridgeState.NORMAL, b"", True)
        return Transition(BridgeState.NORMAL, bytes((app_config.ESCAPE_BYTE, byte)), False)

    if byte == app_config.ESCAPE_BYTE:
        return Transition(BridgeState.ESCAPE_PENDING, b"", False)
    return Transition(BridgeState.NORMAL, bytes((byte,)), False)


class TerminalBridge:
    """
    Multiplexes host keyboard input between launcher commands and the
    guest's serial console, and relays guest output to the host display.

    Input bytes are processed strictly in order. Bytes forwarded from one
    chunk of input are sent to the guest with a single call. Once shutdown
    has been requested, the rest of the chunk and any later input is dropped.

    Attributes:
        _state (BridgeState): The escape state of the current session.
        _closed (bool): True once the exit sequence has been seen.
    """

    def __init__(self, send: Callable[[bytes], None], on_exit: Callable[[], None], output):
        """
        Initializes the bridge.

        Args:
            send: Delivers bytes to the guest's serial input.
            on_exit: Called once when the exit sequence is typed.
            output: A binary stream for guest output (the host's stdout).
        """
        self._send = send
        self._on_exit = on_exit
        self._output = output
        self._state = BridgeState.NORMAL
        self._closed = False

    @property
    def state(self):
        return self._state

    def feed(self, data: bytes):
        """Processes a chunk of host input."""
        if self._closed:
            return

        forward = bytearray()
        for byte in data:
            transition = step(self._state, byte)
            self._state = transition.state
            forward.extend(transition.forward)
            if transition.shutdown:
                logger.debug("Exit sequence received.")
                self._closed = True
                break

        if forward:
            self._send(bytes(forward))
        if self._closed:
            self._on_exit()

    def relay_output(self, byte: int):
        """Writes one guest output byte to the host display immediately."""
        self._output.write(bytes((byte,)))
        self._output.flush()
