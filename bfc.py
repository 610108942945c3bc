"""
Brainfuck Compiler
===================
Translates Brainfuck source text into a code-memory image for the
Brainfuck processor core (brainfuck.py).

Each of ``+ - > < . ,`` becomes one opcode word.  A loop ``[ body ]``
whose body compiles to n words becomes:

  JZ  n+3  <body, n words>  JMP  n+3

The same distance serves both jumps: JZ at address p skips to p+n+4 (just
past the JMP literal) and JMP at p+n+2 lands back on p.  Distances are one
byte, so a loop body is capped at JUMP_MAX - 3 words.

Any other character is a comment.

Usage:
  from bfc import compile
  image = compile(source_text)
"""

from __future__ import annotations
import logging
from typing import Optional

from brainfuck import (
    IENTRIES, OP_INC, OP_DEC, OP_PINC, OP_PDEC, OP_PUT, OP_GET, OP_JZ, OP_JMP,
    OP_MASK, OP_NAMES,
)

logger = logging.getLogger(__name__)

JUMP_MAX = 0xFF   # largest distance literal
LOOP_OVERHEAD = 4  # JZ, literal, JMP, literal

SIMPLE_OPS = {
    "+": OP_INC, "-": OP_DEC,
    ">": OP_PINC, "<": OP_PDEC,
    ".": OP_PUT, ",": OP_GET,
}

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class CompileError(Exception):
    """Structural error in Brainfuck source, located by source offset.

    Without a source (e.g. a prebuilt image) there is no position and the
    message carries no location prefix.
    """

    def __init__(self, msg: str, source: Optional[str] = None, pos: int = 0):
        self.msg = msg
        if source is None:
            self.pos = self.line = self.col = None
            super().__init__(msg)
            return
        self.pos = pos
        self.line = source.count("\n", 0, pos) + 1
        self.col = pos - (source.rfind("\n", 0, pos) + 1) + 1
        super().__init__(f"Line {self.line}, col {self.col}: {msg}")


class UnmatchedBracket(CompileError):
    pass


class ProgramTooLarge(CompileError):
    pass

# ---------------------------------------------------------------------------
#  Compiler
# ---------------------------------------------------------------------------

class _Compiler:
    """Recursive descent over the source; one call to _block per loop level."""

    def __init__(self, source: str, ientries: int):
        self.source = source
        self.ientries = ientries
        self.i = 0

    def _block(self, depth: int) -> bytearray:
        src = self.source
        bc = bytearray()
        while self.i < len(src):
            ch = src[self.i]
            op = SIMPLE_OPS.get(ch)
            if op is not None:
                self.i += 1
                bc.append(op)
            elif ch == "[":
                start = self.i
                # every open loop adds LOOP_OVERHEAD words to each enclosing body
                limit = min(self.ientries, JUMP_MAX + 1)
                if LOOP_OVERHEAD * (depth + 1) > limit:
                    raise ProgramTooLarge(
                        f"loops nested {depth + 1} deep cannot fit in "
                        f"{limit} words", src, start)
                self.i += 1
                body = self._block(depth + 1)
                if self.i >= len(src):
                    raise UnmatchedBracket("'[' is never closed", src, start)
                self.i += 1  # consume ']'
                dist = len(body) + 3
                if dist > JUMP_MAX:
                    raise ProgramTooLarge(
                        f"loop body is {len(body)} words, jump distance "
                        f"{dist} exceeds {JUMP_MAX}", src, start)
                bc.append(OP_JZ)
                bc.append(dist)
                bc += body
                bc.append(OP_JMP)
                bc.append(dist)
            elif ch == "]":
                if depth == 0:
                    raise UnmatchedBracket("']' without matching '['", src, self.i)
                return bc
            else:
                self.i += 1
        return bc

    def run(self) -> bytearray:
        image = self._block(0)
        if len(image) > self.ientries:
            raise ProgramTooLarge(
                f"program is {len(image)} words, code memory holds "
                f"{self.ientries}", self.source, len(self.source))
        return image


def compile(source: str, ientries: int = IENTRIES) -> bytearray:
    """Compile Brainfuck *source* into a code-memory image.

    Raises UnmatchedBracket or ProgramTooLarge; nothing is returned for a
    partially compiled program.
    """
    try:
        image = _Compiler(source, ientries).run()
    except CompileError as e:
        logger.debug("compile failed: %s", e)
        raise
    logger.debug("compiled %d source chars into %d words", len(source), len(image))
    return image

# ---------------------------------------------------------------------------
#  Disassembler
# ---------------------------------------------------------------------------

def disasm_one(code: bytes | bytearray, addr: int,
               ientries: int = IENTRIES) -> tuple[str, int]:
    """Disassemble one instruction at `addr`. Returns (text, word_count).

    Jump targets wrap like IP does, at the code-memory size *ientries*,
    whatever the length of *code*.
    """
    size = len(code)
    imask = ientries - 1
    op = code[addr % size] & OP_MASK
    name = OP_NAMES[op]
    if op == OP_JZ or op == OP_JMP:
        dist = code[(addr + 1) % size]
        if op == OP_JZ:
            target = (addr + 1 + dist) & imask
        else:
            target = (addr + 1 - dist) & imask
        return f"{name} {dist}  ; -> {target:#05x}", 2
    return name, 1


def disassemble(code: bytes | bytearray, start: int = 0,
                end: Optional[int] = None,
                ientries: int = IENTRIES) -> list[str]:
    """Address / raw bytes / mnemonic listing of code[start:end]."""
    if end is None:
        end = len(code)
    size = len(code)
    lines = []
    addr = start
    while addr < end:
        text, n = disasm_one(code, addr, ientries)
        raw = " ".join(f"{code[(addr + k) % size]:02X}" for k in range(n))
        lines.append(f"{addr:04X}: {raw:<6} {text}")
        addr += n
    return lines
