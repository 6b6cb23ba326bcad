import bisect
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .config import DEFAULT_OPTIONS, DecodeOptions
from .context import DecodeContext
from .errors import DecodeError, PycDecodeError
from .header import PycHeader, read_header
from .instructions import Instruction, block_leaders
from .linetable import exception_entries, line_starts
from .opcodes import OperandKind
from .pymarshal import CodeObject, load_code
from .version import VersionDescriptor

logger = logging.getLogger(__name__)


@dataclass
class CodeSegment:
    name: str
    base: int
    code: CodeObject
    parent: Optional["CodeSegment"] = None

    @property
    def size(self) -> int:
        return len(self.code.co_code)

    @property
    def end(self) -> int:
        return self.base + self.size

    def __contains__(self, address: int) -> bool:
        return self.base <= address < self.end


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


def segment_name(code: CodeObject, parent: Optional[CodeSegment]) -> str:
    if parent is None:
        return ".code"
    if parent.parent is None:
        return ".code_%s" % code.co_name
    return ".code_%s.%s" % (parent.code.co_name, code.co_name)


class CodeStore:
    """Code objects laid out at aligned addresses, looked up by address."""

    def __init__(self, base_address: int = DEFAULT_OPTIONS.base_address,
                 alignment: int = DEFAULT_OPTIONS.alignment):
        self.base_address = base_address
        self.alignment = alignment
        self._segments: List[CodeSegment] = []
        self._bases: List[int] = []
        self._by_base: Dict[int, CodeSegment] = {}
        self._next = base_address

    def add(self, code: CodeObject, parent: Optional[CodeSegment] = None) -> CodeSegment:
        base = self._next
        segment = CodeSegment(segment_name(code, parent), base, code, parent)
        self._segments.append(segment)
        self._bases.append(base)
        self._by_base[base] = segment
        # an empty body still occupies one slot
        self._next = _align(segment.end + (0 if segment.size else 1), self.alignment)
        return segment

    def add_tree(self, root: CodeObject) -> CodeSegment:
        top = self.add(root)
        pending = [(child, top) for child in reversed(root.nested)]
        while pending:
            code, parent = pending.pop()
            segment = self.add(code, parent)
            pending.extend((child, segment) for child in reversed(code.nested))
        return top

    def get(self, base: int) -> Optional[CodeSegment]:
        return self._by_base.get(base)

    def lookup(self, address: int) -> Optional[CodeSegment]:
        i = bisect.bisect_right(self._bases, address) - 1
        if i < 0:
            return None
        segment = self._segments[i]
        if address in segment:
            return segment
        return None

    def segment_for(self, code: CodeObject) -> Optional[CodeSegment]:
        for segment in self._segments:
            if segment.code is code:
                return segment
        return None

    def __iter__(self) -> Iterator[CodeSegment]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)


class PycFile:
    def __init__(self, header: Optional[PycHeader], version: VersionDescriptor, root: CodeObject,
                 context: DecodeContext, store: CodeStore):
        self.header = header
        self.version = version
        self.root = root
        self.context = context
        self.store = store

    @property
    def code_count(self) -> int:
        return len(self.store)

    @property
    def unresolved(self) -> List[Tuple[int, str]]:
        return self.context.unresolved

    @property
    def unknown_opcodes(self):
        return self.context.unknown_opcodes

    def find(self, name: str) -> Optional[CodeSegment]:
        """Segment by segment name, qualified name or plain code name."""
        for segment in self.store:
            code = segment.code
            if name in (segment.name, code.co_qualname, code.co_name):
                return segment
        return None

    def instructions(self, segment: CodeSegment) -> List[Instruction]:
        return self.context.instructions(segment.code, segment.base)

    def listing(self, segment: Optional[CodeSegment] = None, resolve: bool = True) -> List[str]:
        segments = [segment] if segment is not None else list(self.store)
        lines = []
        for seg in segments:
            code = seg.code
            lines.append("%s @ 0x%x: %s (%d bytes, flags %s)" % (
                seg.name, seg.base, code.co_qualname, seg.size, "|".join(code.flag_names()) or "0"))
            handlers = exception_entries(code)
            for entry in handlers:
                lines.append("      exception 0x%06x-0x%06x -> 0x%06x depth %d%s" % (
                    seg.base + entry.start, seg.base + entry.end, seg.base + entry.target,
                    entry.depth, " lasti" if entry.lasti else ""))
            starts = dict(line_starts(code, self.version.major, self.version.minor))
            insns = self.instructions(seg)
            leaders = set(block_leaders(insns))
            targets = {seg.base + entry.target for entry in handlers}
            resolver = self.context.resolver(code) if resolve else None
            for insn in insns:
                if (insn.address in leaders or insn.address in targets) and insn.offset:
                    lines.append("")
                lineno = starts.get(insn.offset)
                prefix = "%5d" % lineno if lineno is not None else "     "
                text = "%s  0x%06x  %-24s" % (prefix, insn.address, insn.mnemonic)
                if insn.kind is not OperandKind.NONE:
                    operand = resolver.resolve(insn) if resolver else ""
                    text += " %d" % insn.arg
                    if operand and operand != str(insn.arg):
                        text += " (%s)" % operand
                if insn.truncated:
                    text += "  <truncated>"
                lines.append(text.rstrip())
            lines.append("")
        return lines

    def __repr__(self):
        return "<PycFile %s, %d code objects>" % (self.version.label, self.code_count)


def load_pyc(data: bytes, options: Optional[DecodeOptions] = None) -> PycFile:
    options = options or DEFAULT_OPTIONS
    try:
        header, version = read_header(data)
    except DecodeError as exc:
        raise PycDecodeError(exc.reason, None, exc.offset, 0) from exc

    context = DecodeContext(version, options)
    try:
        root = load_code(data, context, version.header_size)
    except DecodeError as exc:
        raise PycDecodeError(exc.reason, version.label, exc.offset, context.completed_codes) from exc

    for pos, what in context.unresolved:
        logger.warning("unresolved at 0x%x: %s", pos, what)

    store = CodeStore(options.base_address, options.alignment)
    store.add_tree(root)
    logger.debug("%s: %d code objects, %d bytes of marshal data",
                 version.label, len(store), context.end_offset - version.header_size)
    return PycFile(header, version, root, context, store)


def load_file(path: str, options: Optional[DecodeOptions] = None) -> PycFile:
    with open(path, "rb") as f:
        data = f.read()
    return load_pyc(data, options)
