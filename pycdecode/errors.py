class DecodeError(ValueError):
    """Base class for every failure raised while decoding a .pyc stream."""

    def __init__(self, message: str, offset=None):
        self.reason = message
        self.offset = offset
        if offset is not None:
            message = "%s (at offset 0x%x)" % (message, offset)
        super().__init__(message)


class UnknownVersionMagic(DecodeError):
    def __init__(self, magic=None, offset=None):
        if magic is None:
            message = "no recognizable pyc header or marshal stream"
        else:
            message = "unknown version magic: %d (0x%04x)" % (magic, magic)
        super().__init__(message, offset)
        self.magic = magic


class TruncatedInput(DecodeError, EOFError):
    """A declared length runs past the end of the buffer."""

    def __init__(self, wanted: int, available: int, offset=None):
        super().__init__(
            "truncated input: need %d bytes, %d available" % (wanted, available), offset
        )
        self.wanted = wanted
        self.available = available


class MarshalError(DecodeError):
    pass


class UnsupportedMarshalTag(MarshalError):
    def __init__(self, tag: int, offset=None):
        super().__init__("bad marshal code: %r (%d)" % (chr(tag), tag), offset)
        self.tag = tag


class MalformedDictTerminator(MarshalError):
    def __init__(self, offset=None):
        super().__init__("dict ends before its terminator", offset)


class RecursionLimitExceeded(MarshalError):
    def __init__(self, limit: int, offset=None):
        super().__init__("nesting deeper than %d levels" % limit, offset)
        self.limit = limit


class PycDecodeError(DecodeError):
    """Whole-file failure: carries the version label and the completed code count."""

    def __init__(self, message: str, label=None, offset=None, completed: int = 0):
        parts = []
        if label:
            parts.append(label)
        parts.append(message)
        text = ": ".join(parts)
        if offset is not None:
            text = "%s at offset 0x%x" % (text, offset)
        text = "%s (%d code objects decoded before failure)" % (text, completed)
        ValueError.__init__(self, text)
        self.reason = message
        self.offset = offset
        self.label = label
        self.completed = completed


class UnknownOpcode:
    """Non-fatal record of an opcode missing from the active table."""

    __slots__ = ("opcode", "offset", "table")

    def __init__(self, opcode: int, offset: int, table: str):
        self.opcode = opcode
        self.offset = offset
        self.table = table

    def __repr__(self):
        return "UnknownOpcode(0x%02x at 0x%x in %s)" % (self.opcode, self.offset, self.table)

    def __eq__(self, other):
        if not isinstance(other, UnknownOpcode):
            return NotImplemented
        return (self.opcode, self.offset, self.table) == (other.opcode, other.offset, other.table)

    def __hash__(self):
        return hash((self.opcode, self.offset, self.table))
