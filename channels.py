"""
Brainfuck Processor Byte Channels
==================================
Flow-controlled single-byte channels between the core and the host.

Each channel is a ready/valid handshake carrying one 8-bit value:

  valid  producer has a byte on ``bits`` this step
  ready  consumer can take a byte this step

  tx  (OutputChannel)  core -> host.  The core drives valid/bits, the host
                       drives ready.  A byte moves when both are high.
  rx  (InputChannel)   host -> core.  The host drives valid/bits, the core
                       drives ready while a GET is waiting and raises
                       ``taken`` on the step it consumes the byte.  Ready
                       drops on that same step.

The UART class below is the host side of both channels, with the TX/RX
buffers a serial console would have.
"""

from __future__ import annotations
from typing import Callable, Optional
from collections import deque


# ---------------------------------------------------------------------------
#  Handshake signals
# ---------------------------------------------------------------------------

class Decoupled:
    """One ready/valid byte channel."""

    def __init__(self):
        self.valid: bool = False
        self.ready: bool = False
        self.bits: int = 0

    @property
    def fire(self) -> bool:
        return self.valid and self.ready

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(valid={self.valid}, "
                f"ready={self.ready}, bits={self.bits:#04x})")


class OutputChannel(Decoupled):
    """Core -> host.  Valid is only ever raised on a step where ready is high."""


class InputChannel(Decoupled):
    """Host -> core."""

    def __init__(self):
        super().__init__()
        self.taken: bool = False  # core consumed ``bits`` this step


# ---------------------------------------------------------------------------
#  UART — host endpoint
# ---------------------------------------------------------------------------

class UART:
    """Host side of the TX/RX channels.

    Call ``drive()`` before each core step and ``sample()`` after it.
    """

    def __init__(self, tx: OutputChannel, rx: InputChannel):
        self.tx = tx
        self.rx = rx
        self.tx_buffer: deque[int] = deque()   # bytes emitted by the core
        self.rx_buffer: deque[int] = deque()   # bytes waiting for a GET
        self.tx_ready: bool = True             # host can accept output

        # Callbacks
        self.on_tx: Optional[Callable[[int], None]] = None

    def drive(self):
        """Present host-side signals for the coming step."""
        self.tx.ready = self.tx_ready
        if self.rx_buffer:
            self.rx.valid = True
            self.rx.bits = self.rx_buffer[0]
        else:
            self.rx.valid = False
            self.rx.bits = 0

    def sample(self):
        """Collect the result of the step that just ran."""
        if self.tx.fire:
            value = self.tx.bits & 0xFF
            self.tx_buffer.append(value)
            if self.on_tx:
                self.on_tx(value)
        if self.rx.taken and self.rx_buffer:
            self.rx_buffer.popleft()

    def inject_input(self, data: bytes | str):
        """Queue bytes for the core's GET instructions."""
        if isinstance(data, str):
            data = data.encode("latin-1", errors="replace")
        for b in data:
            self.rx_buffer.append(b & 0xFF)

    @property
    def has_rx_data(self) -> bool:
        return len(self.rx_buffer) > 0

    def drain_tx_bytes(self) -> bytes:
        """Return all pending TX bytes and clear the buffer."""
        out = bytes(self.tx_buffer)
        self.tx_buffer.clear()
        return out

    def drain_tx(self) -> str:
        """Return all pending TX bytes as a string and clear the buffer."""
        return self.drain_tx_bytes().decode("latin-1")
