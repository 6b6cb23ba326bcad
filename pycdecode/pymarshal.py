import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import (
    MalformedDictTerminator,
    MarshalError,
    RecursionLimitExceeded,
    TruncatedInput,
    UnsupportedMarshalTag,
)

logger = logging.getLogger(__name__)

TYPE_NULL = b"0"
TYPE_NONE = b"N"
TYPE_FALSE = b"F"
TYPE_TRUE = b"T"
TYPE_STOPITER = b"S"
TYPE_ELLIPSIS = b"."
TYPE_INT = b"i"
TYPE_INT64 = b"I"
TYPE_FLOAT = b"f"
TYPE_COMPLEX = b"x"
TYPE_BINARY_FLOAT = b"g"
TYPE_BINARY_COMPLEX = b"y"
TYPE_LONG = b"l"
TYPE_STRING = b"s"
TYPE_INTERNED = b"t"
TYPE_STRINGREF = b"R"
TYPE_REF = b"r"
TYPE_TUPLE = b"("
TYPE_SMALL_TUPLE = b")"
TYPE_LIST = b"["
TYPE_DICT = b"{"
TYPE_CODE = b"c"
TYPE_UNICODE = b"u"
TYPE_SET = b"<"
TYPE_FROZENSET = b">"
TYPE_ASCII = b"a"
TYPE_ASCII_INTERNED = b"A"
TYPE_SHORT_ASCII = b"z"
TYPE_SHORT_ASCII_INTERNED = b"Z"
TYPE_SLICE = b":"

FLAG_REF = 0x80

# slot is reserved before the children are read
_RESERVING = {
    TYPE_TUPLE, TYPE_SMALL_TUPLE, TYPE_LIST, TYPE_DICT, TYPE_SET, TYPE_FROZENSET,
    TYPE_CODE, TYPE_SLICE,
}
_NEVER_REGISTERED = {
    TYPE_NULL, TYPE_NONE, TYPE_FALSE, TYPE_TRUE, TYPE_STOPITER, TYPE_ELLIPSIS,
    TYPE_REF, TYPE_STRINGREF,
}

# localspluskinds bits
CO_FAST_LOCAL = 0x20
CO_FAST_CELL = 0x40
CO_FAST_FREE = 0x80

CO_FLAGS = (
    (0x0001, "OPTIMIZED"),
    (0x0002, "NEWLOCALS"),
    (0x0004, "VARARGS"),
    (0x0008, "VARKEYWORDS"),
    (0x0010, "NESTED"),
    (0x0020, "GENERATOR"),
    (0x0040, "NOFREE"),
    (0x0080, "COROUTINE"),
    (0x0100, "ITERABLE_COROUTINE"),
    (0x0200, "ASYNC_GENERATOR"),
)


class _NULL:
    pass


class _Reserved:
    pass


class LongInt(int):
    pass


# digits folded one at a time below this run length
_LONG_RUN = 64


def _combine_digits(digits, lo: int, hi: int) -> int:
    """Value of 15-bit digits[lo:hi], least significant first."""
    if hi - lo <= _LONG_RUN:
        x = 0
        for i in range(hi - 1, lo - 1, -1):
            x = (x << 15) | digits[i]
        return x
    mid = (lo + hi) // 2
    low = _combine_digits(digits, lo, mid)
    high = _combine_digits(digits, mid, hi)
    return low | (high << (15 * (mid - lo)))


class Ref:
    """Backreference that could not be resolved to a materialized value."""

    __slots__ = ("index",)

    def __init__(self, index: int):
        self.index = index

    def __repr__(self):
        return "<ref:%u>" % self.index

    def __eq__(self, other):
        return isinstance(other, Ref) and other.index == self.index

    def __hash__(self):
        return hash((Ref, self.index))


@dataclass(eq=False)
class CodeObject:
    co_argcount: int = 0
    co_posonlyargcount: int = 0
    co_kwonlyargcount: int = 0
    co_nlocals: int = 0
    co_stacksize: int = 0
    co_flags: int = 0
    co_code: bytes = b""
    co_consts: tuple = ()
    co_names: tuple = ()
    co_varnames: tuple = ()
    co_freevars: tuple = ()
    co_cellvars: tuple = ()
    co_filename: str = "<unknown>"
    co_name: str = "<code>"
    co_qualname: str = "<code>"
    co_firstlineno: int = 0
    co_linetable: bytes = b""
    co_exceptiontable: Optional[bytes] = None
    co_localsplusnames: tuple = ()
    co_localspluskinds: bytes = b""
    nested: List["CodeObject"] = field(default_factory=list)
    depth: int = 0
    offset: int = 0

    @property
    def local_names(self) -> tuple:
        """Names indexed by local-variable operands."""
        if self.co_localspluskinds:
            return self.co_localsplusnames
        return self.co_varnames

    @property
    def deref_names(self) -> tuple:
        """Names indexed by cell/free-variable operands."""
        if self.co_localspluskinds:
            return self.co_localsplusnames
        return self.co_cellvars + self.co_freevars

    def flag_names(self) -> List[str]:
        return [name for bit, name in CO_FLAGS if self.co_flags & bit]

    def walk(self):
        yield self
        for child in self.nested:
            yield from child.walk()

    def __repr__(self):
        return "<code %r at depth %d, %d bytes, %d nested>" % (
            self.co_name, self.depth, len(self.co_code), len(self.nested))


class _Unmarshaller:
    dispatch: Dict[Any, Any] = {}

    def __init__(self, data: bytes, context, offset: int = 0):
        self._data = bytes(data)
        self._pos = offset
        self._context = context
        self._layout = context.layout
        self._py2 = context.major < 3
        self._refs = context.refs
        self._stringtable = context.interned
        self._max_depth = context.options.max_depth
        self._resolve_refs = context.options.resolve_refs
        self._depth = 0
        # one entry per code object being built; a list while its consts are read
        self._children: List[Optional[List[CodeObject]]] = []

    @property
    def offset(self) -> int:
        return self._pos

    def _read(self, n: int) -> bytes:
        if n < 0:
            raise MarshalError("negative length %d" % n, self._pos)
        end = self._pos + n
        if end > len(self._data):
            raise TruncatedInput(n, len(self._data) - self._pos, self._pos)
        s = self._data[self._pos:end]
        self._pos = end
        return s

    def _remaining(self) -> int:
        return len(self._data) - self._pos

    def load(self):
        start = self._pos
        c = self._read(1)
        flag = c[0] & FLAG_REF
        tag = bytes((c[0] & ~FLAG_REF,))
        func = self.dispatch.get(tag)
        if func is None:
            raise UnsupportedMarshalTag(c[0], start)

        self._depth += 1
        if self._depth > self._max_depth:
            raise RecursionLimitExceeded(self._max_depth, start)
        try:
            if flag and tag in _RESERVING:
                idx = len(self._refs)
                self._refs.append(_Reserved)
                value = func(self)
                self._refs[idx] = value
            else:
                value = func(self)
                if flag and tag not in _NEVER_REGISTERED:
                    self._refs.append(value)
        finally:
            self._depth -= 1
        return value

    def r_byte(self) -> int:
        return self._read(1)[0]

    def r_short(self) -> int:
        return struct.unpack("<h", self._read(2))[0]

    def r_ushort(self) -> int:
        return struct.unpack("<H", self._read(2))[0]

    def r_long(self) -> int:
        return struct.unpack("<i", self._read(4))[0]

    def r_long64(self) -> int:
        return struct.unpack("<q", self._read(8))[0]

    def r_count(self) -> int:
        start = self._pos
        n = self.r_long()
        if n < 0:
            raise MarshalError("bad container size %d" % n, start)
        # every element takes at least one tag byte
        if n > self._remaining():
            raise TruncatedInput(n, self._remaining(), self._pos)
        return n

    def _unresolved(self, what: str):
        logger.debug("placeholder at 0x%x: %s", self._pos, what)
        self._context.unresolved.append((self._pos, what))

    def load_null(self):
        return _NULL

    dispatch[TYPE_NULL] = load_null

    def load_none(self):
        return None

    dispatch[TYPE_NONE] = load_none

    def load_true(self):
        return True

    dispatch[TYPE_TRUE] = load_true

    def load_false(self):
        return False

    dispatch[TYPE_FALSE] = load_false

    def load_stopiter(self):
        return StopIteration

    dispatch[TYPE_STOPITER] = load_stopiter

    def load_ellipsis(self):
        return Ellipsis

    dispatch[TYPE_ELLIPSIS] = load_ellipsis

    dispatch[TYPE_INT] = r_long

    dispatch[TYPE_INT64] = r_long64

    def load_long(self):
        start = self._pos
        size = self.r_long()
        sign = 1
        if size < 0:
            sign = -1
            size = -size
        digits = struct.unpack("<%dH" % size, self._read(size * 2))
        if digits and max(digits) > 0x7FFF:
            raise MarshalError("long digit out of range: %d" % max(digits), start)
        return LongInt(_combine_digits(digits, 0, size) * sign)

    dispatch[TYPE_LONG] = load_long

    def _float_literal(self) -> float:
        start = self._pos
        n = self.r_byte()
        s = self._read(n)
        try:
            return float(s.decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            raise MarshalError("bad float literal: %r" % s, start) from None

    def load_float(self):
        return self._float_literal()

    dispatch[TYPE_FLOAT] = load_float

    def load_complex(self):
        real = self._float_literal()
        imag = self._float_literal()
        return complex(real, imag)

    dispatch[TYPE_COMPLEX] = load_complex

    def load_binary_float(self):
        return struct.unpack("<d", self._read(8))[0]

    dispatch[TYPE_BINARY_FLOAT] = load_binary_float

    def load_binary_complex(self):
        real, imag = struct.unpack("<dd", self._read(16))
        return complex(real, imag)

    dispatch[TYPE_BINARY_COMPLEX] = load_binary_complex

    def load_string(self):
        n = self.r_long()
        return self._read(n)

    dispatch[TYPE_STRING] = load_string

    def load_interned(self):
        n = self.r_long()
        s = self._read(n)
        if self._py2:
            self._stringtable.append(s)
            return s
        return self._decode_utf8(s)

    dispatch[TYPE_INTERNED] = load_interned

    def load_stringref(self):
        n = self.r_long()
        if 0 <= n < len(self._stringtable):
            return self._stringtable[n]
        self._unresolved("interned string %d" % n)
        return Ref(n)

    dispatch[TYPE_STRINGREF] = load_stringref

    def _decode_utf8(self, s: bytes) -> str:
        try:
            return s.decode("utf8", "surrogatepass")
        except UnicodeDecodeError as exc:
            raise MarshalError("bad utf8 string: %s" % exc.reason, self._pos - len(s) + exc.start) from None

    def load_unicode(self):
        n = self.r_long()
        return self._decode_utf8(self._read(n))

    dispatch[TYPE_UNICODE] = load_unicode

    def load_ascii(self):
        n = self.r_long()
        return self._read(n).decode("latin-1")

    dispatch[TYPE_ASCII] = load_ascii
    dispatch[TYPE_ASCII_INTERNED] = load_ascii

    def load_short_ascii(self):
        n = self.r_byte()
        return self._read(n).decode("latin-1")

    dispatch[TYPE_SHORT_ASCII] = load_short_ascii
    dispatch[TYPE_SHORT_ASCII_INTERNED] = load_short_ascii

    def load_ref(self):
        start = self._pos
        n = self.r_long()
        if self._resolve_refs and 0 <= n < len(self._refs) and self._refs[n] is not _Reserved:
            return self._refs[n]
        self._unresolved("reference %d at 0x%x" % (n, start))
        return Ref(n)

    dispatch[TYPE_REF] = load_ref

    def _load_items(self, n: int) -> list:
        items = []
        for _ in range(n):
            start = self._pos
            item = self.load()
            if item is _NULL:
                raise MarshalError("NULL object in container", start)
            items.append(item)
        return items

    def load_tuple(self):
        return tuple(self._load_items(self.r_count()))

    dispatch[TYPE_TUPLE] = load_tuple

    def load_small_tuple(self):
        return tuple(self._load_items(self.r_byte()))

    dispatch[TYPE_SMALL_TUPLE] = load_small_tuple

    def load_list(self):
        return self._load_items(self.r_count())

    dispatch[TYPE_LIST] = load_list

    def load_dict(self):
        d = {}
        while True:
            if self._pos >= len(self._data):
                raise MalformedDictTerminator(self._pos)
            if self._data[self._pos] & ~FLAG_REF == TYPE_NULL[0]:
                self._pos += 1
                break
            start = self._pos
            key = self.load()
            value = self.load()
            try:
                d[key] = value
            except TypeError:
                raise MarshalError("unhashable dict key %r" % type(key).__name__, start) from None
        return d

    dispatch[TYPE_DICT] = load_dict

    def _load_set(self, kind):
        start = self._pos
        items = self._load_items(self.r_count())
        try:
            return kind(items)
        except TypeError:
            raise MarshalError("unhashable set element", start) from None

    def load_set(self):
        return self._load_set(set)

    dispatch[TYPE_SET] = load_set

    def load_frozenset(self):
        return self._load_set(frozenset)

    dispatch[TYPE_FROZENSET] = load_frozenset

    def load_slice(self):
        start = self.load()
        stop = self.load()
        step = self.load()
        return slice(start, stop, step)

    dispatch[TYPE_SLICE] = load_slice

    def _as_name(self, value, placeholder: str) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, bytes):
            return value.decode("latin-1")
        if isinstance(value, Ref):
            placeholder = repr(value)
        self._unresolved("%s is %s" % (placeholder, type(value).__name__))
        return placeholder

    def _as_names(self, value) -> tuple:
        if not isinstance(value, (tuple, list)):
            self._unresolved("name table is %s" % type(value).__name__)
            return ()
        return tuple(self._as_name(item, "<item_%u>" % i) for i, item in enumerate(value))

    def _as_bytes(self, value, what: str) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("latin-1", "replace")
        self._unresolved("%s is %s" % (what, type(value).__name__))
        return b""

    def load_code(self):
        start = self._pos - 1
        layout = self._layout
        depth = len(self._children)
        self._children.append(None)

        r_count = self.r_ushort if layout.short_counts else self.r_long
        argcount = r_count()
        posonlyargcount = r_count() if layout.has_posonlyargcount else 0
        kwonlyargcount = r_count() if layout.has_kwonlyargcount else 0
        nlocals = r_count() if layout.has_nlocals else 0
        stacksize = r_count()
        flags = r_count()

        code = self._as_bytes(self.load(), "bytecode")
        self._children[-1] = []
        consts = self.load()
        children = self._children[-1]
        self._children[-1] = None
        if isinstance(consts, list):
            consts = tuple(consts)
        elif not isinstance(consts, tuple):
            self._unresolved("constants are %s" % type(consts).__name__)
            consts = ()
        names = self._as_names(self.load())

        localsplusnames = ()
        localspluskinds = b""
        if layout.has_localsplus:
            localsplusnames = self._as_names(self.load())
            localspluskinds = self._as_bytes(self.load(), "localspluskinds")
            varnames, cellvars, freevars = _split_localsplus(localsplusnames, localspluskinds)
            nlocals = len(varnames)
        else:
            varnames = self._as_names(self.load())
            freevars = self._as_names(self.load())
            cellvars = self._as_names(self.load())

        filename = self._as_name(self.load(), "<unknown>")
        name = self._as_name(self.load(), "<code>")
        qualname = self._as_name(self.load(), name) if layout.has_qualname else name
        firstlineno = self.r_short() if layout.short_counts else self.r_long()
        linetable = self._as_bytes(self.load(), "line table")
        exceptiontable = None
        if layout.has_exceptiontable:
            exceptiontable = self._as_bytes(self.load(), "exception table")

        self._children.pop()
        co = CodeObject(
            co_argcount=argcount,
            co_posonlyargcount=posonlyargcount,
            co_kwonlyargcount=kwonlyargcount,
            co_nlocals=nlocals,
            co_stacksize=stacksize,
            co_flags=flags,
            co_code=code,
            co_consts=consts,
            co_names=names,
            co_varnames=varnames,
            co_freevars=freevars,
            co_cellvars=cellvars,
            co_filename=filename,
            co_name=name,
            co_qualname=qualname,
            co_firstlineno=firstlineno,
            co_linetable=linetable,
            co_exceptiontable=exceptiontable,
            co_localsplusnames=localsplusnames,
            co_localspluskinds=localspluskinds,
            nested=children,
            depth=depth,
            offset=start,
        )
        if self._children and self._children[-1] is not None:
            self._children[-1].append(co)
        self._context.completed_codes += 1
        logger.debug("code %r at 0x%x: %d bytes, depth %d", name, start, len(code), depth)
        return co

    dispatch[TYPE_CODE] = load_code


def _split_localsplus(names: tuple, kinds: bytes):
    varnames, cellvars, freevars = [], [], []
    for name, kind in zip(names, kinds):
        if kind & CO_FAST_LOCAL:
            varnames.append(name)
        if kind & CO_FAST_CELL:
            cellvars.append(name)
        if kind & CO_FAST_FREE:
            freevars.append(name)
    return tuple(varnames), tuple(cellvars), tuple(freevars)


def loads(content: bytes, context, offset: int = 0):
    """Decode one object starting at `offset`; the context's reference table is reset."""
    context.begin_decode()
    um = _Unmarshaller(content, context, offset)
    try:
        value = um.load()
    except RecursionError:
        raise RecursionLimitExceeded(context.options.max_depth, um.offset) from None
    if value is _NULL:
        raise MarshalError("NULL object at top level", offset)
    context.end_offset = um.offset
    return value


def load(f, context):
    start = f.tell() if f.seekable() else 0
    content = f.read()
    value = loads(content, context)
    if f.seekable():
        f.seek(start + context.end_offset)
    return value


def load_code(content: bytes, context, offset: int = 0) -> CodeObject:
    value = loads(content, context, offset)
    if not isinstance(value, CodeObject):
        raise MarshalError("expected a code object, got %s" % type(value).__name__, offset)
    return value
