import io
import struct
import time
import unittest

from pycbuild import NONE, code_27, code_38, code_311, i32, m_int, m_str, m_tuple, u16

from pycdecode import pymarshal
from pycdecode.config import DEFAULT_OPTIONS
from pycdecode.context import DecodeContext
from pycdecode.errors import (
    DecodeError,
    MalformedDictTerminator,
    MarshalError,
    RecursionLimitExceeded,
    TruncatedInput,
    UnsupportedMarshalTag,
)
from pycdecode.linetable import line_starts
from pycdecode.pymarshal import CodeObject, LongInt, Ref


def ctx(major=3, minor=12, **options):
    return DecodeContext.for_version(major, minor, DEFAULT_OPTIONS.replace(**options))


class ValueDecodingTests(unittest.TestCase):
    def test_small_tuple_of_ints(self):
        context = ctx()
        data = b")\x02" + m_int(1) + m_int(2)
        self.assertEqual(pymarshal.loads(data, context), (1, 2))
        self.assertEqual(context.end_offset, len(data))

    def test_empty_dict_stops_at_terminator(self):
        context = ctx()
        self.assertEqual(pymarshal.loads(b"{0N", context), {})
        self.assertEqual(context.end_offset, 2)

    def test_dict_entries(self):
        context = ctx()
        data = b"{" + m_str("a") + m_int(1) + m_str("b") + NONE + b"0"
        self.assertEqual(pymarshal.loads(data, context), {"a": 1, "b": None})

    def test_dict_without_terminator(self):
        with self.assertRaises(MalformedDictTerminator):
            pymarshal.loads(b"{" + m_str("a") + NONE, ctx())

    def test_singletons(self):
        context = ctx()
        self.assertIs(pymarshal.loads(b"T", context), True)
        self.assertIs(pymarshal.loads(b"F", context), False)
        self.assertIs(pymarshal.loads(b"N", context), None)
        self.assertIs(pymarshal.loads(b".", context), Ellipsis)
        self.assertIs(pymarshal.loads(b"S", context), StopIteration)

    def test_numbers(self):
        context = ctx()
        self.assertEqual(pymarshal.loads(b"I" + struct.pack("<q", -(1 << 40)), context), -(1 << 40))
        self.assertEqual(pymarshal.loads(b"g" + struct.pack("<d", 1.5), context), 1.5)
        self.assertEqual(pymarshal.loads(b"y" + struct.pack("<dd", 1.0, 2.0), context), complex(1, 2))
        self.assertEqual(pymarshal.loads(b"f\x032.5", context), 2.5)
        value = pymarshal.loads(b"l" + i32(2) + u16(1) + u16(1), context)
        self.assertIsInstance(value, LongInt)
        self.assertEqual(value, 1 + (1 << 15))
        self.assertEqual(pymarshal.loads(b"l" + i32(-1) + u16(7), context), -7)
        self.assertEqual(pymarshal.loads(b"l" + i32(0), context), 0)

    def test_long_spanning_many_runs(self):
        digits = [(i * 7919) & 0x7FFF for i in range(1000)]
        data = b"l" + i32(-len(digits)) + struct.pack("<%dH" % len(digits), *digits)
        expected = sum(d << (15 * i) for i, d in enumerate(digits))
        self.assertEqual(pymarshal.loads(data, ctx()), -expected)

    def test_long_digit_out_of_range(self):
        with self.assertRaises(MarshalError):
            pymarshal.loads(b"l" + i32(2) + u16(1) + u16(0x8000), ctx())

    def test_huge_long_decodes_quickly(self):
        n = 10 ** 6
        data = b"l" + i32(n) + b"\xff\x7f" * n
        context = ctx()
        started = time.perf_counter()
        value = pymarshal.loads(data, context)
        elapsed = time.perf_counter() - started
        self.assertLess(elapsed, 1.0)
        self.assertEqual(value.bit_length(), 15 * n)
        self.assertEqual(context.end_offset, len(data))

    def test_strings(self):
        context = ctx()
        self.assertEqual(pymarshal.loads(b"s" + i32(3) + b"abc", context), b"abc")
        self.assertEqual(pymarshal.loads(b"u" + i32(2) + "é".encode("utf8"), context), "é")
        self.assertEqual(pymarshal.loads(b"a" + i32(2) + b"hi", context), "hi")
        self.assertEqual(pymarshal.loads(b"Z\x02hi", context), "hi")

    def test_sets_and_slice(self):
        context = ctx()
        data = b"<" + i32(2) + m_str("a") + m_str("b")
        self.assertEqual(pymarshal.loads(data, context), {"a", "b"})
        frozen = pymarshal.loads(b">" + i32(1) + m_int(3), context)
        self.assertEqual(frozen, frozenset([3]))
        self.assertEqual(pymarshal.loads(b":" + m_int(1) + NONE + m_int(2), context), slice(1, None, 2))

    def test_interned_string_table(self):
        context = ctx(2, 7)
        data = b"(" + i32(2) + b"t" + i32(3) + b"abc" + b"R" + i32(0)
        self.assertEqual(pymarshal.loads(data, context), (b"abc", b"abc"))

    def test_load_from_file_object(self):
        context = ctx()
        f = io.BytesIO(m_int(5) + m_int(6))
        self.assertEqual(pymarshal.load(f, context), 5)
        self.assertEqual(f.tell(), 5)
        self.assertEqual(pymarshal.load(f, context), 6)


class ReferenceTests(unittest.TestCase):
    def test_backreference_to_string(self):
        context = ctx()
        data = b"\xa9\x02" + b"\xfa\x03abc" + b"r" + i32(1)
        self.assertEqual(pymarshal.loads(data, context), ("abc", "abc"))
        self.assertEqual(len(context.refs), 2)
        self.assertEqual(context.unresolved, [])

    def test_reference_to_unfinished_container(self):
        context = ctx()
        data = b"\xa9\x01" + b"r" + i32(0)
        value = pymarshal.loads(data, context)
        self.assertEqual(value, (Ref(0),))
        self.assertEqual(len(context.unresolved), 1)

    def test_out_of_range_reference(self):
        context = ctx()
        self.assertEqual(pymarshal.loads(b"r" + i32(9), context), Ref(9))
        self.assertEqual(repr(Ref(9)), "<ref:9>")

    def test_references_can_stay_unresolved(self):
        context = ctx(resolve_refs=False)
        data = b"\xa9\x02" + b"\xfa\x03abc" + b"r" + i32(1)
        self.assertEqual(pymarshal.loads(data, context), ("abc", Ref(1)))

    def test_table_reset_per_decode(self):
        context = ctx()
        pymarshal.loads(b"\xfa\x01a", context)
        self.assertEqual(len(context.refs), 1)
        pymarshal.loads(b"\xfa\x01b", context)
        self.assertEqual(context.refs, ["b"])


class MalformedInputTests(unittest.TestCase):
    def test_truncated_string(self):
        with self.assertRaises(TruncatedInput) as cm:
            pymarshal.loads(b"s" + i32(16) + b"abc", ctx())
        self.assertEqual(cm.exception.offset, 5)
        self.assertIsInstance(cm.exception, EOFError)

    def test_lying_container_count(self):
        with self.assertRaises(TruncatedInput):
            pymarshal.loads(b"(" + i32(0xFFFF), ctx())
        with self.assertRaises(MarshalError):
            pymarshal.loads(b"(" + i32(-1), ctx())

    def test_unknown_tag(self):
        with self.assertRaises(UnsupportedMarshalTag) as cm:
            pymarshal.loads(b"?", ctx())
        self.assertEqual(cm.exception.tag, ord("?"))
        self.assertEqual(cm.exception.offset, 0)

    def test_depth_cap(self):
        nested = b"[" + i32(1)
        data = nested * 10 + NONE
        self.assertEqual(len(repr(pymarshal.loads(data, ctx()))), 24)
        with self.assertRaises(RecursionLimitExceeded) as cm:
            pymarshal.loads(data, ctx(max_depth=5))
        self.assertEqual(cm.exception.limit, 5)

    def test_null(self):
        with self.assertRaises(MarshalError):
            pymarshal.loads(b"0", ctx())
        with self.assertRaises(MarshalError):
            pymarshal.loads(b"[" + i32(1) + b"0", ctx())

    def test_unhashable_key(self):
        data = b"{" + b"[" + i32(0) + NONE + b"0"
        with self.assertRaises(MarshalError):
            pymarshal.loads(data, ctx())

    def test_errors_are_value_errors(self):
        with self.assertRaises(ValueError):
            pymarshal.loads(b"", ctx())
        self.assertTrue(issubclass(TruncatedInput, DecodeError))


class CodeObjectTests(unittest.TestCase):
    def test_lnotab_is_stored_as_line_table(self):
        co = pymarshal.load_code(code_38(code=bytes(6), lnotab=b"\x02\x01\x02\x01", firstlineno=3), ctx(3, 8))
        self.assertEqual(co.co_linetable, b"\x02\x01\x02\x01")
        self.assertFalse(hasattr(co, "co_lnotab"))
        self.assertEqual(line_starts(co, 3, 8), [(0, 3), (2, 4), (4, 5)])

    def test_311_layout_with_nested_code(self):
        inner = code_311(code=b"\x97\x00", name="inner", qualname="outer.<locals>.inner",
                         localsplus=("x", "cell"), kinds=b"\x20\x40")
        outer = code_311(code=b"\x97\x00\x64\x00", consts=(inner, NONE), name="outer",
                         names=("print",), argcount=1, firstlineno=7,
                         exceptiontable=b"\x82\x04\x06\x00")
        context = ctx(3, 12)
        co = pymarshal.load_code(outer, context)
        self.assertIsInstance(co, CodeObject)
        self.assertEqual(co.co_name, "outer")
        self.assertEqual(co.co_argcount, 1)
        self.assertEqual(co.co_firstlineno, 7)
        self.assertEqual(co.co_names, ("print",))
        self.assertEqual(co.co_exceptiontable, b"\x82\x04\x06\x00")
        self.assertEqual(co.depth, 0)
        self.assertEqual(len(co.nested), 1)
        child = co.nested[0]
        self.assertIs(co.co_consts[0], child)
        self.assertEqual(child.depth, 1)
        self.assertEqual(child.co_qualname, "outer.<locals>.inner")
        self.assertEqual(child.co_varnames, ("x",))
        self.assertEqual(child.co_cellvars, ("cell",))
        self.assertEqual(child.co_nlocals, 1)
        self.assertEqual(child.local_names, ("x", "cell"))
        self.assertEqual(context.completed_codes, 2)
        self.assertEqual([c.co_name for c in co.walk()], ["outer", "inner"])

    def test_38_layout(self):
        data = code_38(code=b"\x64\x00\x53\x00", varnames=("a", "b"), freevars=("f",),
                       cellvars=("c",), nlocals=2, argcount=2, posonly=1, name="g", firstlineno=3)
        co = pymarshal.load_code(data, ctx(3, 8))
        self.assertEqual(co.co_posonlyargcount, 1)
        self.assertEqual(co.co_nlocals, 2)
        self.assertEqual(co.co_varnames, ("a", "b"))
        self.assertEqual(co.deref_names, ("c", "f"))
        self.assertEqual(co.co_qualname, "g")
        self.assertIsNone(co.co_exceptiontable)

    def test_27_layout(self):
        data = code_27(code=b"\x64\x00\x00\x53", names=("x",), varnames=("a",), name="<module>",
                       flags=0x40)
        co = pymarshal.load_code(data, ctx(2, 7))
        self.assertEqual(co.co_name, "<module>")
        self.assertEqual(co.co_names, ("x",))
        self.assertEqual(co.co_kwonlyargcount, 0)
        self.assertEqual(co.co_posonlyargcount, 0)
        self.assertEqual(co.flag_names(), ["NOFREE"])

    def test_short_counts_before_23(self):
        empty = b"(" + i32(0)
        data = b"".join((
            b"c", u16(0), u16(0), u16(1), u16(0),
            b"s" + i32(1) + b"S",
            b"(" + i32(1) + NONE,
            empty, empty, empty, empty,
            b"s" + i32(4) + b"t.py",
            b"s" + i32(1) + b"m",
            u16(12),
            b"s" + i32(0),
        ))
        co = pymarshal.load_code(data, ctx(2, 2))
        self.assertEqual(co.co_firstlineno, 12)
        self.assertEqual(co.co_code, b"S")

    def test_placeholder_for_bad_name(self):
        data = code_311(name="f").replace(m_str("f") + m_str("f"), m_int(1) + m_str("f"), 1)
        context = ctx(3, 12)
        co = pymarshal.load_code(data, context)
        self.assertEqual(co.co_name, "<code>")
        self.assertTrue(context.unresolved)

    def test_truncated_code_object(self):
        data = code_311(code=b"\x97\x00" * 4)
        with self.assertRaises(TruncatedInput):
            pymarshal.load_code(data[:-5], ctx(3, 12))

    def test_requires_code_object(self):
        with self.assertRaises(MarshalError):
            pymarshal.load_code(m_tuple(NONE), ctx())


if __name__ == "__main__":
    unittest.main()
