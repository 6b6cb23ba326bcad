import unittest

from pycdecode import version
from pycdecode.errors import UnknownVersionMagic
from pycdecode.version import Family


class VersionRegistryTests(unittest.TestCase):
    def test_resolves_release_magics(self):
        cases = {
            62211: (2, 7, 8, 1),
            3351: (3, 5, 12, 1),
            3379: (3, 6, 12, 2),
            3394: (3, 7, 16, 2),
            3439: (3, 10, 16, 2),
            3495: (3, 11, 16, 2),
            3531: (3, 12, 16, 2),
            3571: (3, 13, 16, 2),
        }
        for magic, (major, minor, header_size, width) in cases.items():
            with self.subTest(magic=magic):
                descriptor = version.resolve(magic)
                self.assertIsNotNone(descriptor)
                self.assertEqual(descriptor.version, (major, minor))
                self.assertEqual(descriptor.header_size, header_size)
                self.assertEqual(descriptor.instruction_width, width)

    def test_header_size_boundaries(self):
        self.assertEqual(version.resolve(3180).header_size, 8)
        self.assertEqual(version.resolve(3190).header_size, 12)
        self.assertEqual(version.resolve(3379).header_size, 12)
        self.assertEqual(version.resolve(3390).header_size, 16)

    def test_resolve_accepts_magic_bytes(self):
        self.assertEqual(version.resolve(b"\xcb\x0d\r\n").version, (3, 12))
        self.assertEqual(version.resolve(b"\xcb\x0d").version, (3, 12))
        self.assertIsNone(version.resolve(b"\xcb\x0d\x00\x00"))
        self.assertIsNone(version.resolve(b"\xcb"))

    def test_unicode_variant(self):
        descriptor = version.resolve(62212)
        self.assertEqual(descriptor.version, (2, 7))
        self.assertIn("-U", descriptor.label)

    def test_unknown_magic(self):
        self.assertIsNone(version.resolve(9999))
        with self.assertRaises(UnknownVersionMagic) as ctx:
            version.resolve_or_raise(9999)
        self.assertEqual(ctx.exception.magic, 9999)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_registry_is_consistent(self):
        seen = set()
        for descriptor in version.REGISTRY:
            self.assertNotIn(descriptor.magic, seen)
            seen.add(descriptor.magic)
            family = descriptor.family
            self.assertEqual(descriptor.instruction_width == 2, family >= Family.PY3_6_310)
            self.assertEqual(descriptor.has_inline_caches, family >= Family.PY3_11_313)
            self.assertIn(descriptor.header_size, (8, 12, 16))

    def test_family_order(self):
        self.assertEqual(version.family_of(2, 0), Family.PY2X)
        self.assertEqual(version.family_of(3, 5), Family.PY3_0_35)
        self.assertEqual(version.family_of(3, 10), Family.PY3_6_310)
        self.assertEqual(version.family_of(3, 13), Family.PY3_11_313)
        self.assertEqual(version.family_of(3, 14), Family.PY3_14_PLUS)
        self.assertEqual(version.family_of(3, 20), Family.PY3_14_PLUS)
        self.assertLess(Family.PY2X, Family.PY3_14_PLUS)

    def test_raw_marshal_detection(self):
        self.assertTrue(version.is_raw_marshal(0x63))
        self.assertTrue(version.is_raw_marshal(0xE3))
        self.assertFalse(version.is_raw_marshal(0x73))
        raw = version.RAW_MARSHAL_DEFAULT
        self.assertEqual(raw.version, (3, 13))
        self.assertEqual(raw.label, "Python 3.13 (Raw Marshal)")

    def test_releases_map(self):
        self.assertEqual(version.RELEASES[(2, 7)].magic, 62211)
        self.assertEqual(version.RELEASES[(3, 12)].magic, 3531)


class CodeLayoutTests(unittest.TestCase):
    def test_field_boundaries(self):
        old = version.layout_for(2, 2)
        self.assertTrue(old.short_counts)
        py27 = version.layout_for(2, 7)
        self.assertFalse(py27.short_counts)
        self.assertFalse(py27.has_kwonlyargcount)
        py37 = version.layout_for(3, 7)
        self.assertTrue(py37.has_kwonlyargcount)
        self.assertFalse(py37.has_posonlyargcount)
        py38 = version.layout_for(3, 8)
        self.assertTrue(py38.has_posonlyargcount)
        self.assertTrue(py38.has_nlocals)
        py311 = version.layout_for(3, 11)
        self.assertFalse(py311.has_nlocals)
        self.assertTrue(py311.has_localsplus)
        self.assertTrue(py311.has_qualname)
        self.assertTrue(py311.has_exceptiontable)


if __name__ == "__main__":
    unittest.main()
