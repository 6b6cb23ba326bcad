"""Display strings for instruction operands.

Index operands are looked up in the owning code object's tables; operator
and intrinsic operands in the fixed tables below. Nothing here raises on a
bad index: out-of-range values come back as a fallback string.
"""
import logging
from typing import Optional

from .config import CONST_WIDTH
from .instructions import Instruction
from .opcodes import OperandKind
from .pymarshal import CodeObject
from .version import Family, family_of

logger = logging.getLogger(__name__)

COMPARE_OPS = ("<", "<=", "==", "!=", ">", ">=")
# before 3.9 COMPARE_OP also covered membership, identity and exception matching
LEGACY_COMPARE_OPS = COMPARE_OPS + ("in", "not in", "is", "is not", "exception match", "BAD")

BINARY_OPS = (
    "+", "&", "//", "<<", "@", "*", "%", "|", "**", ">>", "-", "/", "^",
    "+=", "&=", "//=", "<<=", "@=", "*=", "%=", "|=", "**=", ">>=", "-=", "/=", "^=",
)
# 3.14 folded BINARY_SUBSCR into BINARY_OP
NB_SUBSCR = 26

INTRINSIC1 = (
    "INTRINSIC_1_INVALID",
    "INTRINSIC_PRINT",
    "INTRINSIC_IMPORT_STAR",
    "INTRINSIC_STOPITERATION_ERROR",
    "INTRINSIC_ASYNC_GEN_WRAP",
    "INTRINSIC_UNARY_POSITIVE",
    "INTRINSIC_LIST_TO_TUPLE",
    "INTRINSIC_TYPEVAR",
    "INTRINSIC_PARAMSPEC",
    "INTRINSIC_TYPEVARTUPLE",
    "INTRINSIC_SUBSCRIPT_GENERIC",
    "INTRINSIC_TYPEALIAS",
)

INTRINSIC2 = (
    "INTRINSIC_2_INVALID",
    "INTRINSIC_PREP_RERAISE_STAR",
    "INTRINSIC_TYPEVAR_WITH_BOUND",
    "INTRINSIC_TYPEVAR_WITH_CONSTRAINTS",
    "INTRINSIC_SET_FUNCTION_TYPE_PARAMS",
)

INTRINSIC_UNKNOWN = "INTRINSIC_UNKNOWN"

COMMON_CONSTANTS = ("AssertionError", "NotImplementedError", "tuple", "all", "any")

FALLBACK_SYMBOL = "??"


def compare_op_name(value: int, major: int, minor: int) -> str:
    if (major, minor) == (3, 12):
        index, table = value >> 4, COMPARE_OPS
    elif (major, minor) >= (3, 13):
        index, table = value >> 5, COMPARE_OPS
    else:
        index, table = value, LEGACY_COMPARE_OPS
    if 0 <= index < len(table):
        return table[index]
    return FALLBACK_SYMBOL


def binary_op_name(value: int) -> str:
    if 0 <= value < len(BINARY_OPS):
        return BINARY_OPS[value]
    return FALLBACK_SYMBOL


def intrinsic1_name(value: int) -> str:
    if 0 <= value < len(INTRINSIC1):
        return INTRINSIC1[value]
    return INTRINSIC_UNKNOWN


def intrinsic2_name(value: int) -> str:
    if 0 <= value < len(INTRINSIC2):
        return INTRINSIC2[value]
    return INTRINSIC_UNKNOWN


def common_constant_name(value: int) -> str:
    if 0 <= value < len(COMMON_CONSTANTS):
        return COMMON_CONSTANTS[value]
    return str(value)


def name_index(raw: int, family: Family, shift: Optional[int] = None) -> int:
    """Table index of a name operand; 3.11+ operands carry flag bits below it."""
    if family < Family.PY3_11_313:
        return raw
    if shift is None:
        shift = 1
    return raw >> shift


def const_repr(value, width: int = CONST_WIDTH) -> str:
    if isinstance(value, CodeObject):
        return "<code '%s'>" % value.co_name
    try:
        text = repr(value)
    except ValueError:
        # int too large for str()
        if isinstance(value, int):
            return "<long%s>" % ("-" if value < 0 else "+")
        return "<%s>" % type(value).__name__
    if len(text) > width:
        text = text[:width - 3] + "..."
    return text


class OperandResolver:
    def __init__(self, code: CodeObject, major: int, minor: int, const_width: int = CONST_WIDTH,
                 per_opcode_shift: bool = False):
        self.code = code
        self.major = major
        self.minor = minor
        self.family = family_of(major, minor)
        self.const_width = const_width
        # otherwise every 3.11+ name operand is halved
        self.per_opcode_shift = per_opcode_shift
        self._consts = code.co_consts
        self._names = code.co_names
        self._locals = code.local_names
        self._derefs = code.deref_names

    def const(self, index: int) -> str:
        if 0 <= index < len(self._consts):
            return const_repr(self._consts[index], self.const_width)
        return str(index)

    def name(self, raw: int, shift: Optional[int] = None) -> str:
        index = name_index(raw, self.family, shift)
        if 0 <= index < len(self._names):
            return self._names[index]
        logger.debug("name index %d out of range in %s", index, self.code.co_name)
        return str(raw)

    def local(self, index: int) -> str:
        if 0 <= index < len(self._locals):
            return self._locals[index]
        return "$%d" % index

    def free(self, index: int) -> str:
        if 0 <= index < len(self._derefs):
            return self._derefs[index]
        return "free_%d" % index

    def resolve(self, insn: Instruction) -> str:
        kind = insn.kind
        arg = insn.arg
        if kind is OperandKind.NONE:
            return ""
        if kind is OperandKind.CONST:
            return self.const(arg)
        if kind is OperandKind.NAME:
            shift = None
            if self.per_opcode_shift and insn.definition is not None:
                shift = insn.definition.name_shift
            text = self.name(arg, shift)
            if (insn.mnemonic == "LOAD_GLOBAL" and self.family >= Family.PY3_11_313
                    and shift != 0 and arg & 1):
                return "NULL + " + text
            return text
        if kind is OperandKind.LOCAL:
            return self.local(arg)
        if kind is OperandKind.LOCAL_PAIR:
            return "%s, %s" % (self.local(arg >> 4), self.local(arg & 0xF))
        if kind is OperandKind.FREE:
            return self.free(arg)
        if kind.is_jump:
            return "to 0x%x" % insn.target
        if kind is OperandKind.COMPARE:
            return compare_op_name(arg, self.major, self.minor)
        if kind is OperandKind.BINARY_OP:
            if arg == NB_SUBSCR and (self.major, self.minor) >= (3, 14):
                return "[]"
            return binary_op_name(arg)
        if kind is OperandKind.INTRINSIC1:
            return intrinsic1_name(arg)
        if kind is OperandKind.INTRINSIC2:
            return intrinsic2_name(arg)
        if kind is OperandKind.COMMON_CONST:
            return common_constant_name(arg)
        return str(arg)
