import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .errors import UnknownVersionMagic

logger = logging.getLogger(__name__)

MAGIC_TAILS = (b"\r\n", b"\n\r")

TYPE_CODE_BYTE = 0x63
FLAG_REF_BIT = 0x80


class Family(enum.IntEnum):
    PY2X = 1
    PY3_0_35 = 2
    PY3_6_310 = 3
    PY3_11_313 = 4
    PY3_14_PLUS = 5


def family_of(major: int, minor: int) -> Family:
    if major <= 2:
        return Family.PY2X
    if major == 3:
        if minor <= 5:
            return Family.PY3_0_35
        if minor <= 10:
            return Family.PY3_6_310
        if minor <= 13:
            return Family.PY3_11_313
    return Family.PY3_14_PLUS


def uses_wordcode(family: Family) -> bool:
    return family >= Family.PY3_6_310


def has_inline_caches(family: Family) -> bool:
    return family >= Family.PY3_11_313


def header_size_for(major: int, minor: int) -> int:
    if major < 3 or (major, minor) <= (3, 2):
        return 8
    if (major, minor) <= (3, 6):
        return 12
    return 16


@dataclass(frozen=True)
class VersionDescriptor:
    magic: int
    major: int
    minor: int
    header_size: int
    instruction_width: int
    has_inline_caches: bool
    label: str

    @property
    def family(self) -> Family:
        return family_of(self.major, self.minor)

    @property
    def version(self) -> Tuple[int, int]:
        return (self.major, self.minor)

    def __str__(self):
        return self.label


def _descriptor(magic: int, major: int, minor: int, label: Optional[str] = None) -> VersionDescriptor:
    family = family_of(major, minor)
    return VersionDescriptor(
        magic=magic,
        major=major,
        minor=minor,
        header_size=header_size_for(major, minor),
        instruction_width=2 if uses_wordcode(family) else 1,
        has_inline_caches=has_inline_caches(family),
        label=label or "Python %d.%d" % (major, minor),
    )


# (major, minor, magics, final); the final magic of each 2.x release also has a
# "-U" (unicode literals) variant at final + 1
_PY2_MAGICS = (
    (2, 0, (50823,), 50823),
    (2, 1, (60202,), 60202),
    (2, 2, (60717,), 60717),
    (2, 3, (62011, 62021), 62011),
    (2, 4, (62041, 62051, 62061), 62061),
    (2, 5, (62071, 62081, 62091, 62092, 62101, 62111, 62121, 62131), 62131),
    (2, 6, (62151, 62161), 62161),
    (2, 7, (62171, 62181, 62191, 62201, 62211), 62211),
)

# inclusive ranges, development magics included
_PY3_MAGICS = (
    (3, 0, 3000, 3131),
    (3, 1, 3141, 3151),
    (3, 2, 3160, 3180),
    (3, 3, 3190, 3230),
    (3, 4, 3250, 3310),
    (3, 5, 3320, 3351),
    (3, 6, 3360, 3379),
    (3, 7, 3390, 3394),
    (3, 8, 3400, 3413),
    (3, 9, 3420, 3425),
    (3, 10, 3430, 3439),
    (3, 11, 3450, 3495),
    (3, 12, 3500, 3531),
    (3, 13, 3550, 3571),
    (3, 14, 3600, 3649),
)


# (major, minor) -> descriptor of the release magic
RELEASES: Dict[Tuple[int, int], VersionDescriptor] = {}


def _build_registry() -> List[VersionDescriptor]:
    registry = []
    for major, minor, magics, final in _PY2_MAGICS:
        for magic in magics:
            descriptor = _descriptor(magic, major, minor)
            registry.append(descriptor)
            if magic == final:
                RELEASES[(major, minor)] = descriptor
        registry.append(_descriptor(final + 1, major, minor, "Python %d.%d (-U)" % (major, minor)))
    for major, minor, first, last in _PY3_MAGICS:
        for magic in range(first, last + 1):
            registry.append(_descriptor(magic, major, minor))
        RELEASES[(major, minor)] = registry[-1]
    return registry


REGISTRY = tuple(_build_registry())

RAW_MARSHAL_DEFAULT = VersionDescriptor(
    magic=0,
    major=3,
    minor=13,
    header_size=0,
    instruction_width=2,
    has_inline_caches=True,
    label="Python 3.13 (Raw Marshal)",
)


def magic_number(data: Union[bytes, bytearray, memoryview]) -> Optional[int]:
    """Return the 16-bit magic of a 4-byte magic field, or None if it is not one."""
    if len(data) < 4 or bytes(data[2:4]) not in MAGIC_TAILS:
        return None
    return data[0] | (data[1] << 8)


def resolve(magic) -> Optional[VersionDescriptor]:
    if isinstance(magic, (bytes, bytearray, memoryview)):
        if len(magic) >= 4:
            number = magic_number(magic)
            if number is None:
                return None
            magic = number
        elif len(magic) == 2:
            magic = magic[0] | (magic[1] << 8)
        else:
            return None
    for descriptor in REGISTRY:
        if descriptor.magic == magic:
            return descriptor
    return None


def resolve_or_raise(magic) -> VersionDescriptor:
    descriptor = resolve(magic)
    if descriptor is None:
        if isinstance(magic, (bytes, bytearray, memoryview)):
            magic = magic[0] | (magic[1] << 8) if len(magic) >= 2 else None
        raise UnknownVersionMagic(magic)
    logger.debug("magic %d resolved to %s", descriptor.magic, descriptor.label)
    return descriptor


def is_raw_marshal(first_byte: int) -> bool:
    return first_byte & ~FLAG_REF_BIT == TYPE_CODE_BYTE


@dataclass(frozen=True)
class CodeLayout:
    has_kwonlyargcount: bool
    has_posonlyargcount: bool
    has_nlocals: bool
    has_localsplus: bool
    has_qualname: bool
    has_exceptiontable: bool
    short_counts: bool = False


# first release each layout applies to, newest first
_LAYOUTS = (
    ((3, 11), CodeLayout(True, True, False, True, True, True)),
    ((3, 8), CodeLayout(True, True, True, False, False, False)),
    ((3, 0), CodeLayout(True, False, True, False, False, False)),
    ((2, 3), CodeLayout(False, False, True, False, False, False)),
    ((0, 0), CodeLayout(False, False, True, False, False, False, short_counts=True)),
)


def layout_for(major: int, minor: int) -> CodeLayout:
    for first, layout in _LAYOUTS:
        if (major, minor) >= first:
            return layout
    return _LAYOUTS[-1][1]
