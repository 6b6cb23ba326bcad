import logging
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_OPTIONS, DecodeOptions
from .errors import UnknownOpcode
from .instructions import Instruction, decode_all
from .opcodes import OpcodeTable, table_for_version
from .operands import OperandResolver
from .pymarshal import CodeObject
from .version import RELEASES, Family, VersionDescriptor, layout_for

logger = logging.getLogger(__name__)


class DecodeContext:
    """Everything one decoding pass needs; two passes never share state."""

    def __init__(self, version: VersionDescriptor, options: Optional[DecodeOptions] = None):
        self.version = version
        self.options = options or DEFAULT_OPTIONS
        self.family: Family = version.family
        self.layout = layout_for(version.major, version.minor)
        self.table: OpcodeTable = table_for_version(version.major, version.minor)
        self.refs: List = []
        self.interned: List = []
        self.unresolved: List[Tuple[int, str]] = []
        self.unknown_opcodes: List[UnknownOpcode] = []
        self.completed_codes = 0
        self.end_offset = 0
        self._resolvers: Dict[int, OperandResolver] = {}
        logger.debug("context for %s, opcode table %s", version.label, self.table.name)

    @classmethod
    def for_version(cls, major: int, minor: int, options: Optional[DecodeOptions] = None):
        """Context for a release named by number rather than by magic."""
        descriptor = RELEASES.get((major, minor))
        if descriptor is None:
            raise ValueError("no known magic for Python %d.%d" % (major, minor))
        return cls(descriptor, options)

    @property
    def major(self) -> int:
        return self.version.major

    @property
    def minor(self) -> int:
        return self.version.minor

    @property
    def jump_unit(self) -> int:
        # 3.6-3.9 wordcode still encodes jump arguments in bytes
        if self.options.cpython_operands and (3, 6) <= (self.major, self.minor) < (3, 10):
            return 1
        return 2 if self.version.instruction_width == 2 else 1

    def begin_decode(self):
        self.refs = []
        self.interned = []

    def _record_unknown(self, insn: Instruction):
        self.unknown_opcodes.append(UnknownOpcode(insn.opcode, insn.address, self.table.name))

    def instructions(self, code: CodeObject, base_address: int = 0) -> List[Instruction]:
        return decode_all(code.co_code, self.family, self.table, base_address,
                          self.jump_unit, self._record_unknown)

    def resolver(self, code: CodeObject) -> OperandResolver:
        key = id(code)
        resolver = self._resolvers.get(key)
        if resolver is None or resolver.code is not code:
            resolver = OperandResolver(code, self.major, self.minor, self.options.const_width,
                                       self.options.cpython_operands)
            self._resolvers[key] = resolver
        return resolver

    def __repr__(self):
        return "<DecodeContext %s, table %s, %d refs>" % (self.version.label, self.table.name, len(self.refs))
