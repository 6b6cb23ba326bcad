import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from .opcodes import InsnFlag, InstructionDefinition, OpcodeTable, OperandKind
from .opcodes import terminates_block as _flags_terminate
from .version import Family, has_inline_caches, uses_wordcode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instruction:
    offset: int
    address: int
    opcode: int
    mnemonic: str
    size: int
    arg: int
    kind: OperandKind
    target: Optional[int] = None
    definition: Optional[InstructionDefinition] = None
    prefix_size: int = 0
    cache_size: int = 0
    truncated: bool = False

    @property
    def flags(self) -> InsnFlag:
        if self.definition is None:
            return InsnFlag.NONE
        return self.definition.flags

    @property
    def known(self) -> bool:
        return self.definition is not None

    @property
    def next_offset(self) -> int:
        return self.offset + self.size

    @property
    def is_jump(self) -> bool:
        return bool(self.flags & InsnFlag.JUMP)

    @property
    def terminates_block(self) -> bool:
        return _flags_terminate(self.flags)

    def __str__(self):
        if self.kind is OperandKind.NONE:
            return self.mnemonic
        return "%s %d" % (self.mnemonic, self.arg)


def terminates_block(item) -> bool:
    """Block predicate for an Instruction, an InstructionDefinition or raw flags."""
    if isinstance(item, (Instruction, InstructionDefinition)):
        return item.terminates_block
    return _flags_terminate(InsnFlag(item))


def decode_one(code: bytes, offset: int, family: Family, table: OpcodeTable,
               base_address: int = 0, jump_unit: Optional[int] = None) -> Instruction:
    end = len(code)
    if not 0 <= offset < end:
        raise IndexError("offset %d outside bytecode of %d bytes" % (offset, end))
    wordcode = uses_wordcode(family)
    extended_arg = table.extended_arg

    # EXTENDED_ARG prefixes, as long as something follows them
    cursor = offset
    extended = 0
    if wordcode:
        while cursor + 2 < end and code[cursor] == extended_arg:
            extended = (extended | code[cursor + 1]) << 8
            cursor += 2
    else:
        while cursor + 3 < end and code[cursor] == extended_arg:
            extended = (extended | code[cursor + 1] | (code[cursor + 2] << 8)) << 16
            cursor += 3
    prefix = cursor - offset

    opcode = code[cursor]
    definition = table.lookup(opcode)
    if wordcode:
        base = 2
        arg = extended | (code[cursor + 1] if cursor + 1 < end else 0)
    elif opcode >= table.have_argument:
        base = 3
        lo = code[cursor + 1] if cursor + 1 < end else 0
        hi = code[cursor + 2] if cursor + 2 < end else 0
        arg = extended | lo | (hi << 8)
    else:
        base = 1
        arg = 0

    cache = 0
    if definition is None:
        logger.debug("unknown opcode 0x%02x at 0x%x in %s table", opcode, cursor, table.name)
        mnemonic = "op_%02X" % opcode
        kind = OperandKind.NONE
        arg = 0
    else:
        mnemonic = definition.mnemonic
        kind = definition.kind
        if has_inline_caches(family):
            cache = definition.cache_entries * 2

    size = prefix + base + cache
    target = None
    if kind.is_jump:
        if jump_unit is None:
            jump_unit = 2 if wordcode else 1
        after = base_address + cursor + base + cache
        if kind is OperandKind.JREL:
            target = after + arg * jump_unit
        elif kind is OperandKind.JBACK:
            target = after - arg * jump_unit
        else:
            target = base_address + arg * jump_unit

    return Instruction(
        offset=offset,
        address=base_address + offset,
        opcode=opcode,
        mnemonic=mnemonic,
        size=size,
        arg=arg,
        kind=kind,
        target=target,
        definition=definition,
        prefix_size=prefix,
        cache_size=cache,
        truncated=offset + size > end,
    )


def iter_instructions(code: bytes, family: Family, table: OpcodeTable, base_address: int = 0,
                      jump_unit: Optional[int] = None,
                      on_unknown: Optional[Callable[[Instruction], None]] = None
                      ) -> Iterator[Instruction]:
    offset = 0
    while offset < len(code):
        insn = decode_one(code, offset, family, table, base_address, jump_unit)
        if not insn.known and on_unknown is not None:
            on_unknown(insn)
        yield insn
        offset += insn.size


def decode_all(code: bytes, family: Family, table: OpcodeTable, base_address: int = 0,
               jump_unit: Optional[int] = None,
               on_unknown: Optional[Callable[[Instruction], None]] = None) -> List[Instruction]:
    return list(iter_instructions(code, family, table, base_address, jump_unit, on_unknown))


def block_leaders(instructions: List[Instruction]) -> List[int]:
    """Addresses that start a basic block: entry, jump targets, fall-throughs of terminators."""
    if not instructions:
        return []
    leaders = {instructions[0].address}
    for insn in instructions:
        if insn.target is not None and insn.is_jump:
            leaders.add(insn.target)
        if insn.terminates_block or insn.is_jump:
            leaders.add(insn.address + insn.size)
    last = instructions[-1].address + instructions[-1].size
    return sorted(a for a in leaders if instructions[0].address <= a < last)
