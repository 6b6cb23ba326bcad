import os
import tempfile
import unittest

from pycbuild import NONE, code_27, code_311, m_tuple, pyc

from pycdecode.config import DEFAULT_OPTIONS
from pycdecode.errors import PycDecodeError, TruncatedInput, UnknownVersionMagic
from pycdecode.loader import CodeStore, load_file, load_pyc
from pycdecode.pymarshal import CodeObject

# RESUME 0; LOAD_CONST 0; RETURN_VALUE
BODY_312 = bytes([151, 0, 100, 0, 83, 0])


def module_312():
    leaf = code_311(code=BODY_312, name="leaf", qualname="f.<locals>.leaf")
    f = code_311(code=BODY_312 * 50, consts=(NONE, leaf), name="f")
    g = code_311(code=BODY_312, name="g")
    return code_311(code=BODY_312, consts=(f, g, NONE), name="<module>", names=("f", "g"),
                    linetable=bytes([0xE8, 0x00, 0xD8, 0x00, 0x00, 0xD8, 0x00, 0x00]))


class LoadPycTests(unittest.TestCase):
    def test_module_tree(self):
        pyc_file = load_pyc(pyc(3531, module_312()))
        self.assertEqual(pyc_file.version.version, (3, 12))
        self.assertEqual(pyc_file.header.size, 16)
        self.assertEqual(pyc_file.code_count, 4)
        self.assertEqual(pyc_file.root.co_name, "<module>")
        names = [s.name for s in pyc_file.store]
        self.assertEqual(names, [".code", ".code_f", ".code_f.leaf", ".code_g"])

    def test_aligned_addresses(self):
        pyc_file = load_pyc(pyc(3531, module_312()))
        bases = [s.base for s in pyc_file.store]
        # f is 300 bytes long, so leaf starts two pages after it
        self.assertEqual(bases, [0x10000, 0x10100, 0x10300, 0x10400])
        for segment in pyc_file.store:
            self.assertEqual(segment.base % DEFAULT_OPTIONS.alignment, 0)

    def test_custom_base(self):
        options = DEFAULT_OPTIONS.replace(base_address=0x400000, alignment=0x10)
        pyc_file = load_pyc(pyc(3531, module_312()), options)
        self.assertEqual([s.base for s in pyc_file.store], [0x400000, 0x400010, 0x400140, 0x400150])

    def test_lookup_by_address(self):
        store = load_pyc(pyc(3531, module_312())).store
        self.assertEqual(store.lookup(0x10000).name, ".code")
        self.assertEqual(store.lookup(0x10105).name, ".code_f")
        self.assertIsNone(store.lookup(0x10010))
        self.assertIsNone(store.lookup(0x100))
        self.assertEqual(store.get(0x10400).name, ".code_g")
        self.assertIsNone(store.get(0x10401))

    def test_instructions_use_segment_address(self):
        pyc_file = load_pyc(pyc(3531, module_312()))
        segment = pyc_file.find("g")
        insns = pyc_file.instructions(segment)
        self.assertEqual([i.address for i in insns], [0x10400, 0x10402, 0x10404])
        self.assertEqual(pyc_file.unknown_opcodes, [])

    def test_listing(self):
        pyc_file = load_pyc(pyc(3531, module_312()))
        lines = pyc_file.listing(pyc_file.store.get(0x10000))
        self.assertTrue(lines[0].startswith(".code @ 0x10000: <module>"))
        self.assertIn("LOAD_CONST", lines[2])
        self.assertIn("(<code 'f'>)", lines[2])
        self.assertTrue(lines[1].lstrip().startswith("1"))
        raw = pyc_file.listing(pyc_file.store.get(0x10000), resolve=False)
        self.assertNotIn("<code 'f'>", "\n".join(raw))

    def test_listing_shows_exception_handlers(self):
        # RESUME; NOP; NOP; LOAD_CONST 0; RETURN_VALUE, bytes 2-4 handled at 6
        body = code_311(code=bytes([151, 0, 9, 0, 9, 0, 100, 0, 83, 0]), name="<module>",
                        exceptiontable=bytes([0x81, 0x01, 0x03, 0x01]))
        lines = load_pyc(pyc(3531, body)).listing()
        self.assertEqual(lines[1].strip(), "exception 0x010002-0x010004 -> 0x010006 depth 0 lasti")
        self.assertIn("NOP", lines[4])
        self.assertEqual(lines[5], "")
        self.assertIn("LOAD_CONST", lines[6])

    def test_py27_file(self):
        body = code_27(code=bytes([100, 0, 0, 83]), name="<module>")
        pyc_file = load_pyc(pyc(62211, body, header_size=8))
        self.assertEqual(pyc_file.version.version, (2, 7))
        self.assertEqual([i.mnemonic for i in pyc_file.instructions(pyc_file.find(".code"))],
                         ["LOAD_CONST", "RETURN_VALUE"])

    def test_raw_marshal(self):
        pyc_file = load_pyc(module_312())
        self.assertIsNone(pyc_file.header)
        self.assertEqual(pyc_file.version.label, "Python 3.13 (Raw Marshal)")

    def test_failure_reports_label_and_progress(self):
        data = pyc(3531, module_312())
        with self.assertRaises(PycDecodeError) as cm:
            load_pyc(data[:-20])
        exc = cm.exception
        self.assertEqual(exc.label, "Python 3.12")
        self.assertEqual(exc.completed, 3)
        self.assertIsInstance(exc.__cause__, TruncatedInput)
        self.assertIn("Python 3.12", str(exc))
        self.assertIn("3 code objects decoded before failure", str(exc))
        self.assertIn("at offset 0x", str(exc))

    def test_unknown_magic(self):
        with self.assertRaises(PycDecodeError) as cm:
            load_pyc(pyc(1, module_312()))
        self.assertIsInstance(cm.exception.__cause__, UnknownVersionMagic)
        self.assertIsNone(cm.exception.label)

    def test_root_must_be_code(self):
        with self.assertRaises(PycDecodeError):
            load_pyc(pyc(3531, m_tuple(NONE)))

    def test_load_file(self):
        with tempfile.TemporaryDirectory() as td:
            path = os.path.join(td, "m.pyc")
            with open(path, "wb") as f:
                f.write(pyc(3531, module_312()))
            self.assertEqual(load_file(path).code_count, 4)


class CodeStoreTests(unittest.TestCase):
    def test_empty_code_still_takes_a_slot(self):
        store = CodeStore(0x1000, 0x100)
        first = store.add(CodeObject())
        second = store.add(CodeObject(co_name="x"), first)
        self.assertEqual((first.base, second.base), (0x1000, 0x1100))
        self.assertEqual(second.name, ".code_x")
        self.assertEqual(len(store), 2)
        self.assertIs(store.segment_for(second.code), second)


if __name__ == "__main__":
    unittest.main()
