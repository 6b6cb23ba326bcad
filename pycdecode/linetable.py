"""Line number and exception table decoding for the three table formats.

before 3.10  co_lnotab: (offset delta, line delta) byte pairs
3.10         co_linetable: (offset delta, signed line delta) pairs, -128 = no line
3.11+        location table: variable-length entries, one per run of code units
"""
from collections import namedtuple
from typing import Iterator, List, Optional, Tuple

from .pymarshal import CodeObject

ExceptionEntry = namedtuple("ExceptionEntry", "start end target depth lasti")

NO_LINE = -128


def _signed(byte: int) -> int:
    return byte - 0x100 if byte >= 0x80 else byte


def _lnotab_lines(code: CodeObject, signed: bool) -> Iterator[Tuple[int, int]]:
    table = code.co_linetable
    last = None
    line = code.co_firstlineno
    addr = 0
    for byte_incr, line_incr in zip(table[0::2], table[1::2]):
        if byte_incr:
            if line != last:
                yield addr, line
                last = line
            addr += byte_incr
        if signed:
            line_incr = _signed(line_incr)
        line += line_incr
    if line != last:
        yield addr, line


def _linetable_310(code: CodeObject) -> Iterator[Tuple[int, int, Optional[int]]]:
    table = code.co_linetable
    line = code.co_firstlineno
    addr = 0
    for sdelta, ldelta in zip(table[0::2], table[1::2]):
        ldelta = _signed(ldelta)
        if ldelta == NO_LINE:
            current = None
        else:
            line += ldelta
            current = line
        if sdelta:
            yield addr, addr + sdelta, current
        addr += sdelta


def _varint(it) -> int:
    b = next(it)
    value = b & 63
    shift = 0
    while b & 64:
        shift += 6
        b = next(it)
        value |= (b & 63) << shift
    return value


def _svarint(it) -> int:
    value = _varint(it)
    return -(value >> 1) if value & 1 else value >> 1


def _locations_311(code: CodeObject) -> Iterator[Tuple[int, int, Optional[int]]]:
    it = iter(code.co_linetable)
    line = code.co_firstlineno
    addr = 0
    try:
        while True:
            first = next(it)
            if not first & 0x80:
                return
            kind = (first >> 3) & 15
            length = ((first & 7) + 1) * 2
            if kind == 15:
                current = None
            elif kind == 14:
                line += _svarint(it)
                current = line
                _varint(it)
                _varint(it)
                _varint(it)
            elif kind == 13:
                line += _svarint(it)
                current = line
            elif kind >= 10:
                line += kind - 10
                current = line
                next(it)
                next(it)
            else:
                current = line
                next(it)
            yield addr, addr + length, current
            addr += length
    except StopIteration:
        return


def line_ranges(code: CodeObject, major: int, minor: int) -> List[Tuple[int, int, Optional[int]]]:
    """(start, end, line) ranges over the bytecode; line is None where there is none."""
    if (major, minor) >= (3, 11):
        return list(_locations_311(code))
    if (major, minor) == (3, 10):
        return list(_linetable_310(code))
    starts = list(_lnotab_lines(code, signed=(major, minor) >= (3, 6)))
    ranges = []
    for i, (addr, line) in enumerate(starts):
        end = starts[i + 1][0] if i + 1 < len(starts) else len(code.co_code)
        if end > addr:
            ranges.append((addr, end, line))
    return ranges


def line_starts(code: CodeObject, major: int, minor: int) -> List[Tuple[int, int]]:
    """(offset, line) for every offset where the source line changes."""
    if (major, minor) < (3, 10):
        return list(_lnotab_lines(code, signed=(major, minor) >= (3, 6)))
    starts = []
    last = None
    for start, _end, line in line_ranges(code, major, minor):
        if line is not None and line != last:
            starts.append((start, line))
            last = line
    return starts


def _exc_varint(it) -> int:
    b = next(it)
    value = b & 63
    while b & 64:
        value <<= 6
        b = next(it)
        value |= b & 63
    return value


def exception_entries(code: CodeObject) -> List[ExceptionEntry]:
    if not code.co_exceptiontable:
        return []
    entries = []
    it = iter(code.co_exceptiontable)
    try:
        while True:
            start = _exc_varint(it) * 2
            length = _exc_varint(it) * 2
            target = _exc_varint(it) * 2
            dl = _exc_varint(it)
            entries.append(ExceptionEntry(start, start + length, target, dl >> 1, bool(dl & 1)))
    except StopIteration:
        pass
    return entries
