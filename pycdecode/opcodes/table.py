import enum
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

HAVE_ARGUMENT = 90


class OperandKind(enum.Enum):
    NONE = "none"
    BYTE = "byte"
    CONST = "const_idx"
    NAME = "name_idx"
    LOCAL = "local_idx"
    FREE = "free_idx"
    JREL = "jrel"
    JBACK = "jback"
    JABS = "jabs"
    COMPARE = "compare"
    INTRINSIC1 = "intrinsic1"
    INTRINSIC2 = "intrinsic2"
    HASARG = "hasarg"
    BINARY_OP = "binop"
    COMMON_CONST = "common_const"
    LOCAL_PAIR = "local_pair"

    @property
    def is_jump(self) -> bool:
        return self in (OperandKind.JREL, OperandKind.JBACK, OperandKind.JABS)


class InsnFlag(enum.IntFlag):
    NONE = 0
    JUMP = 0x1
    COND = 0x2
    CALL = 0x4
    RET = 0x8
    STOP = 0x10
    PUSH = 0x20
    POP = 0x40
    LOAD = 0x80
    STORE = 0x100
    DEL = 0x200
    EXCEPT = 0x400
    YIELD = 0x800
    CACHE = 0x1000


@dataclass(frozen=True)
class InstructionDefinition:
    opcode: int
    mnemonic: str
    kind: OperandKind = OperandKind.NONE
    stack_effect: int = 0
    flags: InsnFlag = InsnFlag.NONE
    cache_entries: int = 0
    # low flag bits carried by a 3.11+ name operand
    name_shift: int = 0

    @property
    def terminates_block(self) -> bool:
        return terminates_block(self.flags)


def terminates_block(flags: InsnFlag) -> bool:
    if flags & (InsnFlag.RET | InsnFlag.STOP):
        return True
    return bool(flags & InsnFlag.JUMP) and not flags & InsnFlag.COND


class OpcodeTable:
    """Static opcode -> definition mapping for one release range."""

    def __init__(self, name: str, definitions: Iterable[InstructionDefinition],
                 have_argument: int = HAVE_ARGUMENT):
        self.name = name
        self.have_argument = have_argument
        by_opcode: Dict[int, InstructionDefinition] = {}
        by_name: Dict[str, InstructionDefinition] = {}
        for definition in definitions:
            if not 0 <= definition.opcode <= 0xFF:
                raise ValueError("%s: opcode out of range: %d" % (name, definition.opcode))
            if definition.opcode in by_opcode:
                raise ValueError("%s: duplicate opcode %d (%s, %s)" % (
                    name, definition.opcode, by_opcode[definition.opcode].mnemonic,
                    definition.mnemonic))
            if definition.mnemonic in by_name:
                raise ValueError("%s: duplicate mnemonic %s" % (name, definition.mnemonic))
            by_opcode[definition.opcode] = definition
            by_name[definition.mnemonic] = definition
        if "EXTENDED_ARG" not in by_name:
            raise ValueError("%s: table has no EXTENDED_ARG" % name)
        self._by_opcode = dict(sorted(by_opcode.items()))
        self._by_name = by_name
        self.extended_arg = by_name["EXTENDED_ARG"].opcode

    def lookup(self, opcode: int) -> Optional[InstructionDefinition]:
        return self._by_opcode.get(opcode)

    def by_name(self, mnemonic: str) -> Optional[InstructionDefinition]:
        return self._by_name.get(mnemonic)

    def opcode(self, mnemonic: str) -> int:
        return self._by_name[mnemonic].opcode

    def revise(self, name: str, definitions: Iterable[InstructionDefinition],
               drop: Iterable[int] = ()) -> "OpcodeTable":
        """Derive the table of a neighbouring release.

        Opcodes in `drop` are removed first, then `definitions` replace or
        extend the remaining rows by opcode.
        """
        rows = dict(self._by_opcode)
        for opcode in drop:
            rows.pop(opcode, None)
        for definition in definitions:
            rows[definition.opcode] = definition
        return OpcodeTable(name, rows.values(), self.have_argument)

    def __contains__(self, opcode: int) -> bool:
        return opcode in self._by_opcode

    def __iter__(self) -> Iterator[InstructionDefinition]:
        return iter(self._by_opcode.values())

    def __len__(self) -> int:
        return len(self._by_opcode)

    def __repr__(self):
        return "<OpcodeTable %s: %d opcodes>" % (self.name, len(self))
