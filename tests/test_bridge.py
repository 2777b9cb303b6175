import io
from unittest.mock import Mock

import pytest

from v86_system.bridge import BridgeState, TerminalBridge, step


@pytest.fixture
def send():
    return Mock()


@pytest.fixture
def on_exit():
    return Mock()


@pytest.fixture
def output():
    return io.BytesIO()


@pytest.fixture
def bridge(send, on_exit, output):
    """Provides a fresh TerminalBridge for each test."""
    return TerminalBridge(send=send, on_exit=on_exit, output=output)


def sent_bytes(send):
    return b"".join(call.args[0] for call in send.call_args_list)


# --- Transition Function Tests ---


def test_step_escape_byte_is_held():
    assert step(BridgeState.NORMAL, 0x01) == (BridgeState.ESCAPE_PENDING, b"", False)


def test_step_ordinary_byte_is_forwarded():
    assert step(BridgeState.NORMAL, ord("a")) == (BridgeState.NORMAL, b"a", False)


def test_step_ctrl_c_is_forwarded():
    """Ctrl-C is guest input, not a launcher command."""
    assert step(BridgeState.NORMAL, 0x03) == (BridgeState.NORMAL, b"\x03", False)


@pytest.mark.parametrize("key", [b"x", b"X"])
def test_step_exit_key_after_escape(key):
    assert step(BridgeState.ESCAPE_PENDING, key[0]) == (BridgeState.NORMAL, b"", True)


def test_step_other_key_after_escape_forwards_both():
    assert step(BridgeState.ESCAPE_PENDING, ord("q")) == (BridgeState.NORMAL, b"\x01q", False)


def test_step_double_escape_sends_literal_escape():
    """Ctrl-A Ctrl-A sends both bytes to the guest."""
    assert step(BridgeState.ESCAPE_PENDING, 0x01) == (BridgeState.NORMAL, b"\x01\x01", False)


# --- Bridge Input Tests ---


def test_exit_sequence(bridge, send, on_exit):
    """Ctrl-A x forwards nothing and triggers shutdown once."""
    bridge.feed(b"\x01x")
    send.assert_not_called()
    on_exit.assert_called_once_with()


def test_escape_then_other_key(bridge, send, on_exit):
    bridge.feed(b"\x01q")
    assert sent_bytes(send) == b"\x01q"
    assert bridge.state == BridgeState.NORMAL
    on_exit.assert_not_called()


def test_ctrl_c_reaches_guest(bridge, send, on_exit):
    bridge.feed(b"\x03")
    assert sent_bytes(send) == b"\x03"
    on_exit.assert_not_called()


def test_plain_text_is_sent_in_one_call(bridge, send):
    bridge.feed(b"ls -l\r")
    send.assert_called_once_with(b"ls -l\r")


def test_escape_split_across_chunks(bridge, send, on_exit):
    """The escape state survives between chunks."""
    bridge.feed(b"ab\x01")
    assert bridge.state == BridgeState.ESCAPE_PENDING
    assert sent_bytes(send) == b"ab"
    bridge.feed(b"X")
    on_exit.assert_called_once_with()


def test_bytes_before_exit_are_sent_and_rest_dropped(bridge, send, on_exit):
    bridge.feed(b"ok\x01xignored")
    assert sent_bytes(send) == b"ok"
    on_exit.assert_called_once_with()


def test_input_after_exit_is_ignored(bridge, send, on_exit):
    bridge.feed(b"\x01x")
    bridge.feed(b"more\x01x")
    send.assert_not_called()
    on_exit.assert_called_once_with()


def test_empty_input(bridge, send):
    bridge.feed(b"")
    send.assert_not_called()


def test_terminal_sequences_pass_through(bridge, send):
    """Escape sequences such as bracketed paste markers reach the guest untouched."""
    bridge.feed(b"\x1b[200~echo a\recho b\r\x1b[201~\x1b[A")
    assert sent_bytes(send) == b"\x1b[200~echo a\recho b\r\x1b[201~\x1b[A"


def test_every_non_escape_byte_is_forwarded(bridge, send, on_exit):
    data = bytes(b for b in range(256) if b != 0x01)
    bridge.feed(data)
    assert sent_bytes(send) == data
    on_exit.assert_not_called()


# --- Output Relay Tests ---


def test_output_bytes_are_written_in_order(bridge, output):
    for byte in b"Hello\r\n\x1b[0m\xff":
        bridge.relay_output(byte)
    assert output.getvalue() == b"Hello\r\n\x1b[0m\xff"


def test_output_is_flushed_per_byte(send, on_exit):
    stream = Mock()
    bridge = TerminalBridge(send=send, on_exit=on_exit, output=stream)
    bridge.relay_output(ord("A"))
    stream.write.assert_called_once_with(b"A")
    stream.flush.assert_called_once_with()
