"""
Brainfuck compiler tests: encoding, loop layout, error reporting and the
disassembler listing.
"""

import unittest

from brainfuck import (
    OP_INC, OP_DEC, OP_PINC, OP_PDEC, OP_PUT, OP_GET, OP_JZ, OP_JMP, OP_MASK,
)
from bfc import (
    compile, disassemble, disasm_one, CompileError, UnmatchedBracket,
    ProgramTooLarge, JUMP_MAX,
)

HELLO = ("+++++++++[>++++++++>+++++++++++>+++++<<<-]>.>++.+++++++..+++.>-."
         "------------.<++++++++.--------.+++.------.--------.>+.")


def loop_pairs(image) -> list[tuple[int, int]]:
    """Walk an image and return (jz_addr, jmp_addr) pairs, checking nesting."""
    pairs = []
    stack = []
    addr = 0
    while addr < len(image):
        op = image[addr] & OP_MASK
        if op == OP_JZ:
            stack.append(addr)
            addr += 2
        elif op == OP_JMP:
            pairs.append((stack.pop(), addr))
            addr += 2
        else:
            addr += 1
    assert not stack, "unbalanced image"
    return pairs


class TestEncoding(unittest.TestCase):
    def test_simple_ops(self):
        self.assertEqual(list(compile("+-><.,")),
                         [OP_INC, OP_DEC, OP_PINC, OP_PDEC, OP_PUT, OP_GET])

    def test_empty(self):
        self.assertEqual(compile(""), bytearray())

    def test_comments_skipped(self):
        self.assertEqual(compile("helloworld: " + HELLO), compile(HELLO))
        self.assertEqual(compile("a+b\n-c"), bytearray([OP_INC, OP_DEC]))

    def test_returns_bytearray(self):
        self.assertIsInstance(compile("+"), bytearray)


class TestLoops(unittest.TestCase):
    def test_copy_loop_layout(self):
        self.assertEqual(list(compile("+[->+<]")),
                         [OP_INC, OP_JZ, 7, OP_DEC, OP_PINC, OP_INC, OP_PDEC,
                          OP_JMP, 7])

    def test_empty_loop(self):
        self.assertEqual(list(compile("[]")), [OP_JZ, 3, OP_JMP, 3])

    def test_nested_loops(self):
        image = compile("[>[-]<]")
        # inner "[-]" is 5 words, outer body is 7
        self.assertEqual(list(image),
                         [OP_JZ, 10, OP_PINC, OP_JZ, 4, OP_DEC, OP_JMP, 4,
                          OP_PDEC, OP_JMP, 10])

    def test_literals_match_and_span(self):
        for src in ("[]", "+[->+<]", "[[[]]]", "[-][+]>[<[.,]>]", HELLO):
            image = compile(src)
            for jz, jmp in loop_pairs(image):
                dist = image[jz + 1]
                self.assertEqual(dist, image[jmp + 1], src)
                self.assertLessEqual(dist, JUMP_MAX)
                # JZ exits one past JMP's literal, JMP lands on JZ
                self.assertEqual(jz + 1 + dist, jmp + 2)
                self.assertEqual(jmp + 1 - dist, jz)

    def test_longest_loop_body(self):
        image = compile("[" + "+" * (JUMP_MAX - 3) + "]")
        self.assertEqual(image[1], JUMP_MAX)


class TestErrors(unittest.TestCase):
    def test_stray_close(self):
        with self.assertRaises(UnmatchedBracket) as cm:
            compile("+]")
        self.assertEqual(cm.exception.pos, 1)

    def test_unclosed_open(self):
        with self.assertRaises(UnmatchedBracket) as cm:
            compile("[[]")
        self.assertEqual(cm.exception.pos, 0)

    def test_innermost_unclosed_reported(self):
        with self.assertRaises(UnmatchedBracket) as cm:
            compile("[+[-")
        self.assertEqual(cm.exception.pos, 2)

    def test_line_and_column(self):
        with self.assertRaises(UnmatchedBracket) as cm:
            compile("++\n+\n  ]")
        e = cm.exception
        self.assertEqual((e.line, e.col), (3, 3))
        self.assertTrue(str(e).startswith("Line 3, col 3:"))

    def test_errors_share_base(self):
        self.assertTrue(issubclass(UnmatchedBracket, CompileError))
        self.assertTrue(issubclass(ProgramTooLarge, CompileError))

    def test_program_fills_code_memory(self):
        self.assertEqual(len(compile("+" * 1024)), 1024)

    def test_program_too_long(self):
        with self.assertRaises(ProgramTooLarge):
            compile("+" * 1025)

    def test_smaller_code_memory(self):
        with self.assertRaises(ProgramTooLarge):
            compile("+" * 17, ientries=16)

    def test_loop_body_too_long(self):
        with self.assertRaises(ProgramTooLarge) as cm:
            compile("+[" + "+" * (JUMP_MAX - 2) + "]")
        self.assertEqual(cm.exception.pos, 1)

    def test_deep_nesting(self):
        with self.assertRaises(ProgramTooLarge):
            compile("[" * 5000 + "]" * 5000)

    def test_deepest_fitting_nesting(self):
        # 64 levels: the outer body is 252 words, the longest a literal spans
        image = compile("[" * 64 + "]" * 64)
        self.assertEqual(len(image), 256)
        self.assertEqual(image[1], JUMP_MAX)

    def test_nesting_past_literal_range(self):
        with self.assertRaises(ProgramTooLarge):
            compile("[" * 65 + "]" * 65)

    def test_deep_nesting_large_code_memory(self):
        # the literal range bounds nesting even when code memory would not
        with self.assertRaises(ProgramTooLarge) as cm:
            compile("[" * 5000 + "]" * 5000, ientries=1 << 20)
        self.assertEqual(cm.exception.pos, 64)

    def test_error_without_source(self):
        e = ProgramTooLarge("image is 17 words")
        self.assertEqual(str(e), "image is 17 words")
        self.assertIsNone(e.line)
        self.assertIsNone(e.pos)


class TestDisassembler(unittest.TestCase):
    def test_one_word(self):
        self.assertEqual(disasm_one(bytes([OP_PUT]), 0), ("PUT", 1))

    def test_jump_targets(self):
        image = compile("[-]")
        self.assertEqual(disasm_one(image, 0), ("JZ 4  ; -> 0x005", 2))
        self.assertEqual(disasm_one(image, 3), ("JMP 4  ; -> 0x000", 2))

    def test_targets_wrap_at_code_memory_size(self):
        self.assertEqual(disasm_one(bytes([OP_JMP, 5]), 0),
                         ("JMP 5  ; -> 0x3fc", 2))
        self.assertEqual(disasm_one(bytes([OP_JZ, 200]), 0, ientries=64),
                         ("JZ 200  ; -> 0x009", 2))

    def test_listing(self):
        lines = disassemble(compile("+[-]."))
        self.assertEqual(lines, [
            "0000: 00     INC",
            "0001: 06 04  JZ 4  ; -> 0x006",
            "0003: 01     DEC",
            "0004: 07 04  JMP 4  ; -> 0x001",
            "0006: 04     PUT",
        ])


if __name__ == "__main__":
    unittest.main()
