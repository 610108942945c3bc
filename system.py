"""
Brainfuck System Driver
========================
Wires together:
  - One BrainfuckCPU core (brainfuck.py)
  - A UART host endpoint on its TX/RX channels (channels.py)
  - The load / boot / run protocol that brings a compiled image up

Every clock is ``uart.drive(); cpu.step(); uart.sample()``.  Loading goes
through the core's INIT ports one word per step, exactly as an external
loader would drive the hardware; nothing here writes the memories
directly.
"""

from __future__ import annotations
import logging
from typing import Optional

from brainfuck import BrainfuckCPU, IENTRIES, DENTRIES
from channels import UART
from bfc import ProgramTooLarge, compile as compile_source, disassemble

logger = logging.getLogger(__name__)


class BrainfuckSystem:
    """A core, its UART, and the driver protocol around them."""

    def __init__(self, ientries: int = IENTRIES, dentries: int = DENTRIES):
        self.cpu = BrainfuckCPU(ientries=ientries, dentries=dentries)
        self.uart = UART(self.cpu.tx, self.cpu.rx)
        self.image_size = 0
        self._booted = False

    # -----------------------------------------------------------------
    #  Clock
    # -----------------------------------------------------------------

    def _clock(self) -> bool:
        self.uart.drive()
        retired = self.cpu.step()
        self.uart.sample()
        return retired

    # -----------------------------------------------------------------
    #  Loading
    # -----------------------------------------------------------------

    def load(self, image: bytes | bytearray, data: Optional[bytes | bytearray] = None,
             zero_data: bool = True) -> int:
        """Load a code image (and optionally data) through the INIT ports.

        Data memory is written first: the bytes of *data* from address 0,
        then zeros for every remaining cell when *zero_data* is set.  The
        image follows from code address 0.  Returns load steps used.
        """
        cpu = self.cpu
        if len(image) > cpu.ientries:
            raise ProgramTooLarge(
                f"image is {len(image)} words, code memory holds {cpu.ientries}")
        data = bytes(data or b"")
        if len(data) > cpu.dentries:
            raise ValueError(
                f"data is {len(data)} bytes, data memory holds {cpu.dentries}")

        cpu.init = True
        cpu.code_port.clear()
        steps = 0

        n_data = cpu.dentries if zero_data else len(data)
        for addr in range(n_data):
            cpu.data_port.present(addr, data[addr] if addr < len(data) else 0)
            self._clock()
            steps += 1
        cpu.data_port.clear()

        for addr, word in enumerate(image):
            cpu.code_port.present(addr, word)
            self._clock()
            steps += 1
        cpu.code_port.clear()
        cpu.init = False

        self.image_size = len(image)
        self._booted = False
        logger.info("loaded %d code words and %d data cells in %d steps",
                    len(image), n_data, steps)
        return steps

    def load_source(self, source: str, data: Optional[bytes | bytearray] = None,
                    zero_data: bool = True) -> int:
        """Compile *source* and load it.  Compile errors abort before any load step."""
        image = compile_source(source, ientries=self.cpu.ientries)
        return self.load(image, data=data, zero_data=zero_data)

    # -----------------------------------------------------------------
    #  Boot
    # -----------------------------------------------------------------

    def boot(self):
        """Pulse BOOT for one step: IP and DP return to 0."""
        self.cpu.boot = True
        self._clock()
        self.cpu.boot = False
        self._booted = True
        logger.debug("boot pulse")

    # -----------------------------------------------------------------
    #  Execution
    # -----------------------------------------------------------------

    def _check_booted(self):
        if not self._booted:
            raise RuntimeError("system not booted")

    def step(self) -> bool:
        """Run one clock.  Returns True if an instruction retired."""
        self._check_booted()
        return self._clock()

    def run(self, max_steps: int) -> int:
        """Run *max_steps* clocks.  Returns instructions retired."""
        self._check_booted()
        retired = 0
        for _ in range(max_steps):
            if self._clock():
                retired += 1
        return retired

    def run_to(self, addr: int, max_steps: int = 1_000_000) -> int:
        """Run until IP equals *addr* or max_steps.  Returns clocks used."""
        self._check_booted()
        addr &= self.cpu.ientries - 1
        for i in range(max_steps):
            if self.cpu.ip == addr:
                return i
            self._clock()
        return max_steps

    def run_until_output(self, n: int, max_steps: int = 1_000_000) -> str:
        """Run until *n* bytes are waiting in the TX buffer (or max_steps),
        then drain and return them."""
        self._check_booted()
        for _ in range(max_steps):
            if len(self.uart.tx_buffer) >= n:
                break
            self._clock()
        if len(self.uart.tx_buffer) < n:
            logger.warning("only %d of %d output bytes after %d steps",
                           len(self.uart.tx_buffer), n, max_steps)
        return self.uart.drain_tx()

    # -----------------------------------------------------------------
    #  Convenience
    # -----------------------------------------------------------------

    def inject_input(self, data: bytes | str):
        self.uart.inject_input(data)

    def get_tx_output(self) -> str:
        """Get any UART output that has been produced."""
        return self.uart.drain_tx()

    def dump_state(self) -> str:
        """Registers, channel state and a listing around IP."""
        cpu = self.cpu
        lines = ["=== Core ===", cpu.dump_regs(),
                 f"  Cycles: {cpu.cycle_count}  Stalls: {cpu.stall_count}  "
                 f"Booted: {self._booted}",
                 "",
                 "=== UART ===",
                 f"  TX buf={len(self.uart.tx_buffer)} "
                 f"RX buf={len(self.uart.rx_buffer)} "
                 f"tx_ready={int(self.uart.tx_ready)}"]
        if self.image_size:
            lines.append("")
            lines.append("=== Code ===")
            for text in disassemble(cpu.code, 0, self.image_size, cpu.ientries):
                marker = ">" if int(text[:4], 16) == cpu.ip else " "
                lines.append(f" {marker}{text}")
        return "\n".join(lines)
