"""
Brainfuck Processor Core
=========================
A step emulator for the eight-opcode Brainfuck machine.

Two byte memories (code and data), two modular registers (IP and DP) and
two flow-controlled byte channels.  Each call to ``step()`` is one clock:
every value is computed from the state at the start of the clock and then
committed together, the way the synchronous registers of the hardware
update on a clock edge.

Instruction encoding (one byte per word):

  bits 2:0  opcode
  bits 7:3  unused

JZ and JMP are followed by a literal byte holding the jump distance.
"""

from __future__ import annotations
from typing import Optional

from channels import InputChannel, OutputChannel

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

IENTRIES = 1024    # code memory words
DENTRIES = 32768   # data memory cells

OP_INC  = 0  # +
OP_DEC  = 1  # -
OP_PINC = 2  # >
OP_PDEC = 3  # <
OP_PUT  = 4  # .
OP_GET  = 5  # ,
OP_JZ   = 6  # [  (followed by distance literal)
OP_JMP  = 7  # ]  (followed by distance literal)

OP_MASK = 0b111

OP_NAMES = {
    OP_INC: "INC", OP_DEC: "DEC", OP_PINC: "PINC", OP_PDEC: "PDEC",
    OP_PUT: "PUT", OP_GET: "GET", OP_JZ: "JZ", OP_JMP: "JMP",
}

# Opcodes that write the current cell back in the commit phase
_WRITES_CELL = (OP_INC, OP_DEC, OP_GET)

# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def u8(v: int) -> int:
    """Mask to unsigned 8 bits."""
    return v & 0xFF

def addr_bits(entries: int) -> int:
    """Register width for a memory of *entries* words (must be 2**k)."""
    if entries < 2 or entries & (entries - 1):
        raise ValueError(f"memory size must be a power of two >= 2, got {entries}")
    return entries.bit_length() - 1

# ---------------------------------------------------------------------------
#  Load ports
# ---------------------------------------------------------------------------

class InitPort:
    """Load-mode write port for one memory.  Sampled only while INIT is high."""

    def __init__(self):
        self.valid: bool = False
        self.addr: int = 0
        self.bits: int = 0

    def present(self, addr: int, bits: int):
        self.valid = True
        self.addr = addr
        self.bits = bits

    def clear(self):
        self.valid = False
        self.addr = 0
        self.bits = 0

# ---------------------------------------------------------------------------
#  CPU
# ---------------------------------------------------------------------------

class BrainfuckCPU:
    """Brainfuck processor core, one instruction per step."""

    def __init__(self, ientries: int = IENTRIES, dentries: int = DENTRIES):
        self.ip_bits = addr_bits(ientries)
        self.dp_bits = addr_bits(dentries)
        self.ientries = ientries
        self.dentries = dentries
        self._imask = ientries - 1
        self._dmask = dentries - 1

        self.code = bytearray(ientries)
        self.data = bytearray(dentries)
        self.ip: int = 0
        self.dp: int = 0

        # Control inputs (driven by the loader)
        self.init: bool = False
        self.boot: bool = False
        self.code_port = InitPort()
        self.data_port = InitPort()

        # Byte channels
        self.tx = OutputChannel()
        self.rx = InputChannel()

        self.cycle_count: int = 0
        self.stall_count: int = 0

    # -- Inspection --

    @property
    def current_opcode(self) -> int:
        return self.code[self.ip] & OP_MASK

    @property
    def cell(self) -> int:
        return self.data[self.dp]

    # -- Clock --

    def step(self) -> bool:
        """Advance one clock.

        Returns True if an instruction retired, False on load, boot and
        stalled steps.
        """
        ip, dp = self.ip, self.dp
        next_ip, next_dp = ip, dp
        code_write: Optional[tuple[int, int]] = None
        data_write: Optional[tuple[int, int]] = None
        tx_valid, tx_bits = False, 0
        rx_ready, rx_taken = False, False
        retired = False

        if self.init:
            if self.code_port.valid:
                code_write = (self.code_port.addr & self._imask, u8(self.code_port.bits))
            if self.data_port.valid:
                data_write = (self.data_port.addr & self._dmask, u8(self.data_port.bits))
        if self.boot:
            next_ip, next_dp = 0, 0

        if not (self.init or self.boot):
            # fetch
            inst = self.code[ip]
            addr = self.code[(ip + 1) & self._imask]
            op = inst & OP_MASK

            # read
            operand = self.data[dp]

            # exec
            res = operand
            if op == OP_INC:
                res = u8(operand + 1)
            elif op == OP_DEC:
                res = u8(operand - 1)
            elif op == OP_GET:
                res = self.rx.bits if self.rx.valid else operand

            # write
            if op in _WRITES_CELL:
                data_write = (dp, u8(res))

            # advance / IO
            if op in (OP_INC, OP_DEC):
                next_ip = ip + 1
            elif op == OP_PINC:
                next_ip = ip + 1
                next_dp = dp + 1
            elif op == OP_PDEC:
                next_ip = ip + 1
                next_dp = dp - 1
            elif op == OP_JZ:
                if operand == 0:
                    next_ip = ip + 1 + addr
                else:
                    next_ip = ip + 2  # skip distance literal
            elif op == OP_JMP:
                next_ip = ip + 1 - addr
            elif op == OP_PUT:
                if self.tx.ready:
                    tx_valid, tx_bits = True, operand
                    next_ip = ip + 1
            elif op == OP_GET:
                if self.rx.valid:
                    rx_taken = True
                    next_ip = ip + 1
                else:
                    rx_ready = True

            stalled = (op == OP_PUT and not tx_valid) or (op == OP_GET and not rx_taken)
            if stalled:
                self.stall_count += 1
            retired = not stalled

        # commit
        if code_write is not None:
            self.code[code_write[0]] = code_write[1]
        if data_write is not None:
            self.data[data_write[0]] = data_write[1]
        self.ip = next_ip & self._imask
        self.dp = next_dp & self._dmask
        self.tx.valid = tx_valid
        self.tx.bits = tx_bits
        self.rx.ready = rx_ready
        self.rx.taken = rx_taken
        self.cycle_count += 1
        return retired

    def run(self, max_steps: int) -> int:
        """Step *max_steps* times.  Returns the number of instructions retired.

        The machine has no halt state, so the caller always bounds the run.
        """
        retired = 0
        for _ in range(max_steps):
            if self.step():
                retired += 1
        return retired

    # -- Debug / introspection --

    def dump_regs(self) -> str:
        op = self.current_opcode
        lines = [
            f"  IP = {self.ip:#05x}  DP = {self.dp:#06x}",
            f"  INST = {self.code[self.ip]:#04x} ({OP_NAMES[op]})  "
            f"CELL = {self.cell:#04x}",
            f"  TX valid={int(self.tx.valid)} ready={int(self.tx.ready)} "
            f"bits={self.tx.bits:#04x}",
            f"  RX valid={int(self.rx.valid)} ready={int(self.rx.ready)} "
            f"bits={self.rx.bits:#04x}",
        ]
        return "\n".join(lines)
