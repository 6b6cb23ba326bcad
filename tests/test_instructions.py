import unittest

from pycdecode.config import DEFAULT_OPTIONS
from pycdecode.context import DecodeContext
from pycdecode.instructions import block_leaders, decode_all, decode_one, terminates_block
from pycdecode.opcodes import InsnFlag, OperandKind, table_for_version
from pycdecode.pymarshal import CodeObject
from pycdecode.version import Family

PY27 = table_for_version(2, 7)
PY310 = table_for_version(3, 10)
PY311 = table_for_version(3, 11)
PY312 = table_for_version(3, 12)


class DecodeOneTests(unittest.TestCase):
    def test_extended_arg_chain(self):
        code = bytes([144, 1, 144, 0, 124, 5])
        insn = decode_one(code, 0, Family.PY3_6_310, PY310)
        self.assertEqual(insn.mnemonic, "LOAD_FAST")
        self.assertEqual(insn.arg, 0x10005)
        self.assertEqual(insn.size, 6)
        self.assertEqual(insn.prefix_size, 4)

    def test_trailing_extended_arg_decodes_as_itself(self):
        insn = decode_one(bytes([144, 7]), 0, Family.PY3_6_310, PY310)
        self.assertEqual(insn.mnemonic, "EXTENDED_ARG")
        self.assertEqual(insn.arg, 7)
        self.assertEqual(insn.size, 2)

    def test_variable_width(self):
        code = bytes([100, 0x34, 0x12, 83])
        first = decode_one(code, 0, Family.PY2X, PY27)
        self.assertEqual((first.mnemonic, first.arg, first.size), ("LOAD_CONST", 0x1234, 3))
        second = decode_one(code, 3, Family.PY2X, PY27)
        self.assertEqual((second.mnemonic, second.arg, second.size), ("RETURN_VALUE", 0, 1))
        self.assertEqual(second.kind, OperandKind.NONE)

    def test_variable_width_extended_arg(self):
        code = bytes([145, 0x01, 0x00, 100, 0x02, 0x00])
        insn = decode_one(code, 0, Family.PY2X, PY27)
        self.assertEqual(insn.arg, 0x10002)
        self.assertEqual(insn.size, 6)

    def test_inline_cache_size(self):
        code = bytes([106, 1]) + bytes(8)
        insn = decode_one(code, 0, Family.PY3_11_313, PY311)
        self.assertEqual(insn.mnemonic, "LOAD_ATTR")
        self.assertEqual(insn.cache_size, 8)
        self.assertEqual(insn.size, 10)

    def test_caches_ignored_outside_cache_families(self):
        code = bytes([106, 1, 0, 0])
        insn = decode_one(code, 0, Family.PY3_6_310, PY311)
        self.assertEqual(insn.size, 2)

    def test_forward_and_backward_jumps(self):
        code = bytes(100) + bytes([110, 3]) + bytes(10)
        forward = decode_one(code, 100, Family.PY3_11_313, PY312)
        self.assertEqual(forward.mnemonic, "JUMP_FORWARD")
        self.assertEqual(forward.target, 108)
        code = bytes(100) + bytes([140, 3]) + bytes(10)
        back = decode_one(code, 100, Family.PY3_11_313, PY312)
        self.assertEqual(back.mnemonic, "JUMP_BACKWARD")
        self.assertEqual(back.kind, OperandKind.JBACK)
        self.assertEqual(back.target, 96)

    def test_jump_targets_use_base_address(self):
        code = bytes([110, 3, 9, 0])
        insn = decode_one(code, 0, Family.PY2X, PY27, base_address=0x10000)
        self.assertEqual(insn.address, 0x10000)
        self.assertEqual(insn.target, 0x10000 + 3 + 0x0903)

    def test_absolute_jump(self):
        code = bytes([113, 4, 0])
        insn = decode_one(code, 0, Family.PY2X, PY27, base_address=0x100)
        self.assertEqual(insn.target, 0x104)
        wordcode = decode_one(bytes([113, 4]), 0, Family.PY3_6_310, PY310, base_address=0x100)
        self.assertEqual(wordcode.target, 0x108)
        byte_offsets = decode_one(bytes([113, 4]), 0, Family.PY3_6_310, PY310, 0x100, jump_unit=1)
        self.assertEqual(byte_offsets.target, 0x104)

    def test_unknown_opcode(self):
        insn = decode_one(bytes([0xFD, 0x11]), 0, Family.PY3_11_313, PY312)
        self.assertFalse(insn.known)
        self.assertEqual(insn.mnemonic, "op_FD")
        self.assertEqual(insn.arg, 0)
        self.assertEqual(insn.size, 2)
        self.assertEqual(insn.flags, InsnFlag.NONE)
        narrow = decode_one(bytes([0x06]), 0, Family.PY2X, PY27)
        self.assertEqual((narrow.mnemonic, narrow.size), ("op_06", 1))

    def test_truncated_instruction(self):
        insn = decode_one(bytes([100, 0x05]), 0, Family.PY2X, PY27)
        self.assertTrue(insn.truncated)
        self.assertEqual(insn.arg, 5)
        self.assertEqual(insn.size, 3)
        cached = decode_one(bytes([106, 1, 0]), 0, Family.PY3_11_313, PY311)
        self.assertTrue(cached.truncated)

    def test_offset_out_of_range(self):
        with self.assertRaises(IndexError):
            decode_one(b"\x01\x00", 2, Family.PY3_6_310, PY310)


class JumpUnitTests(unittest.TestCase):
    # 50 NOPs then JUMP_FORWARD 3
    CODE = CodeObject(co_code=bytes([9, 0] * 50 + [110, 3]))

    def test_wordcode_jumps_count_code_units(self):
        context = DecodeContext.for_version(3, 8)
        self.assertEqual(context.jump_unit, 2)
        self.assertEqual(context.instructions(self.CODE)[-1].target, 108)

    def test_byte_jumps_before_310(self):
        context = DecodeContext.for_version(3, 8, DEFAULT_OPTIONS.replace(cpython_operands=True))
        self.assertEqual(context.jump_unit, 1)
        self.assertEqual(context.instructions(self.CODE)[-1].target, 105)
        later = DecodeContext.for_version(3, 10, DEFAULT_OPTIONS.replace(cpython_operands=True))
        self.assertEqual(later.jump_unit, 2)


class DecodeAllTests(unittest.TestCase):
    def test_walks_whole_buffer(self):
        code = bytes([100, 0, 0, 90, 1, 0, 83])
        insns = decode_all(code, Family.PY2X, PY27)
        self.assertEqual([i.mnemonic for i in insns], ["LOAD_CONST", "STORE_NAME", "RETURN_VALUE"])
        self.assertEqual([i.offset for i in insns], [0, 3, 6])
        self.assertEqual(sum(i.size for i in insns), len(code))

    def test_reports_unknown_opcodes(self):
        seen = []
        decode_all(bytes([0xFD, 0, 100, 0]), Family.PY3_6_310, PY310, on_unknown=seen.append)
        self.assertEqual([i.offset for i in seen], [0])

    def test_block_leaders(self):
        # LOAD_CONST; POP_JUMP_IF_FALSE 4; LOAD_CONST; RETURN_VALUE; LOAD_CONST; RETURN_VALUE
        code = bytes([100, 0, 114, 4, 100, 0, 83, 0, 100, 1, 83, 0])
        insns = decode_all(code, Family.PY3_6_310, PY310)
        self.assertEqual(block_leaders(insns), [0, 4, 8])
        self.assertTrue(terminates_block(insns[3]))
        self.assertFalse(terminates_block(insns[1]))
        self.assertTrue(terminates_block(insns[3].definition))
        self.assertTrue(terminates_block(int(InsnFlag.RET)))


if __name__ == "__main__":
    unittest.main()
