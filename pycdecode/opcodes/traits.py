"""Operand kind, simplified stack effect and behaviour flags per mnemonic.

Release tables only list opcode numbers and cache sizes; everything that
stays the same across releases for a mnemonic lives here.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from .table import InsnFlag, InstructionDefinition, OperandKind

K = OperandKind
F = InsnFlag

_LOAD = F.LOAD | F.PUSH
_STORE = F.STORE | F.POP
_OP = F.POP | F.PUSH
_CJUMP = F.JUMP | F.COND
_POPJUMP = F.JUMP | F.COND | F.POP
_RAISE = F.STOP | F.EXCEPT

TRAITS: Dict[str, Tuple[OperandKind, int, InsnFlag]] = {
    "STOP_CODE": (K.NONE, 0, F.STOP),
    "CACHE": (K.NONE, 0, F.NONE),
    "RESERVED": (K.NONE, 0, F.NONE),
    "NOP": (K.NONE, 0, F.NONE),
    "NOT_TAKEN": (K.NONE, 0, F.NONE),
    "EXTENDED_ARG": (K.HASARG, 0, F.NONE),
    "RESUME": (K.BYTE, 0, F.NONE),
    "ENTER_EXECUTOR": (K.BYTE, 0, F.NONE),
    "INTERPRETER_EXIT": (K.NONE, -1, F.STOP | F.POP),
    "EXIT_INIT_CHECK": (K.NONE, -1, F.POP),
    # stack shuffling
    "POP_TOP": (K.NONE, -1, F.POP),
    "POP_ITER": (K.NONE, -1, F.POP),
    "ROT_TWO": (K.NONE, 0, F.NONE),
    "ROT_THREE": (K.NONE, 0, F.NONE),
    "ROT_FOUR": (K.NONE, 0, F.NONE),
    "ROT_N": (K.BYTE, 0, F.NONE),
    "DUP_TOP": (K.NONE, 1, F.PUSH),
    "DUP_TOP_TWO": (K.NONE, 2, F.PUSH),
    "DUP_TOPX": (K.BYTE, 1, F.PUSH),
    "COPY": (K.BYTE, 1, F.PUSH),
    "SWAP": (K.BYTE, 0, F.NONE),
    "PUSH_NULL": (K.NONE, 1, F.PUSH),
    # unary and binary operators
    "UNARY_POSITIVE": (K.NONE, 0, _OP),
    "UNARY_NEGATIVE": (K.NONE, 0, _OP),
    "UNARY_NOT": (K.NONE, 0, _OP),
    "UNARY_CONVERT": (K.NONE, 0, _OP),
    "UNARY_INVERT": (K.NONE, 0, _OP),
    "TO_BOOL": (K.NONE, 0, _OP),
    "BINARY_OP": (K.BINARY_OP, -1, _OP),
    "BINARY_POWER": (K.NONE, -1, _OP),
    "BINARY_MULTIPLY": (K.NONE, -1, _OP),
    "BINARY_MATRIX_MULTIPLY": (K.NONE, -1, _OP),
    "BINARY_DIVIDE": (K.NONE, -1, _OP),
    "BINARY_MODULO": (K.NONE, -1, _OP),
    "BINARY_ADD": (K.NONE, -1, _OP),
    "BINARY_SUBTRACT": (K.NONE, -1, _OP),
    "BINARY_FLOOR_DIVIDE": (K.NONE, -1, _OP),
    "BINARY_TRUE_DIVIDE": (K.NONE, -1, _OP),
    "BINARY_LSHIFT": (K.NONE, -1, _OP),
    "BINARY_RSHIFT": (K.NONE, -1, _OP),
    "BINARY_AND": (K.NONE, -1, _OP),
    "BINARY_XOR": (K.NONE, -1, _OP),
    "BINARY_OR": (K.NONE, -1, _OP),
    "INPLACE_POWER": (K.NONE, -1, _OP),
    "INPLACE_MULTIPLY": (K.NONE, -1, _OP),
    "INPLACE_MATRIX_MULTIPLY": (K.NONE, -1, _OP),
    "INPLACE_DIVIDE": (K.NONE, -1, _OP),
    "INPLACE_MODULO": (K.NONE, -1, _OP),
    "INPLACE_ADD": (K.NONE, -1, _OP),
    "INPLACE_SUBTRACT": (K.NONE, -1, _OP),
    "INPLACE_FLOOR_DIVIDE": (K.NONE, -1, _OP),
    "INPLACE_TRUE_DIVIDE": (K.NONE, -1, _OP),
    "INPLACE_LSHIFT": (K.NONE, -1, _OP),
    "INPLACE_RSHIFT": (K.NONE, -1, _OP),
    "INPLACE_AND": (K.NONE, -1, _OP),
    "INPLACE_XOR": (K.NONE, -1, _OP),
    "INPLACE_OR": (K.NONE, -1, _OP),
    "COMPARE_OP": (K.COMPARE, -1, _OP),
    "IS_OP": (K.BYTE, -1, _OP),
    "CONTAINS_OP": (K.BYTE, -1, _OP),
    # subscripts and slices
    "BINARY_SUBSCR": (K.NONE, -1, _OP),
    "STORE_SUBSCR": (K.NONE, -3, _STORE),
    "DELETE_SUBSCR": (K.NONE, -2, F.DEL | F.POP),
    "BINARY_SLICE": (K.NONE, -2, _OP),
    "STORE_SLICE": (K.NONE, -4, _STORE),
    "SLICE+0": (K.NONE, 0, _OP),
    "SLICE+1": (K.NONE, -1, _OP),
    "SLICE+2": (K.NONE, -1, _OP),
    "SLICE+3": (K.NONE, -2, _OP),
    "STORE_SLICE+0": (K.NONE, -2, _STORE),
    "STORE_SLICE+1": (K.NONE, -3, _STORE),
    "STORE_SLICE+2": (K.NONE, -3, _STORE),
    "STORE_SLICE+3": (K.NONE, -4, _STORE),
    "DELETE_SLICE+0": (K.NONE, -1, F.DEL | F.POP),
    "DELETE_SLICE+1": (K.NONE, -2, F.DEL | F.POP),
    "DELETE_SLICE+2": (K.NONE, -2, F.DEL | F.POP),
    "DELETE_SLICE+3": (K.NONE, -3, F.DEL | F.POP),
    "BUILD_SLICE": (K.BYTE, -1, _OP),
    # constants and names
    "LOAD_CONST": (K.CONST, 1, _LOAD),
    "RETURN_CONST": (K.CONST, 0, F.RET | F.LOAD),
    "KW_NAMES": (K.CONST, 0, F.NONE),
    "LOAD_SMALL_INT": (K.BYTE, 1, _LOAD),
    "LOAD_COMMON_CONSTANT": (K.COMMON_CONST, 1, _LOAD),
    "LOAD_NAME": (K.NAME, 1, _LOAD),
    "STORE_NAME": (K.NAME, -1, _STORE),
    "DELETE_NAME": (K.NAME, 0, F.DEL),
    "LOAD_ATTR": (K.NAME, 0, F.LOAD | _OP),
    "LOAD_METHOD": (K.NAME, 1, _LOAD),
    "LOAD_SUPER_ATTR": (K.NAME, -2, F.LOAD | _OP),
    "STORE_ATTR": (K.NAME, -2, _STORE),
    "DELETE_ATTR": (K.NAME, -1, F.DEL | F.POP),
    "LOAD_GLOBAL": (K.NAME, 1, _LOAD),
    "STORE_GLOBAL": (K.NAME, -1, _STORE),
    "DELETE_GLOBAL": (K.NAME, 0, F.DEL),
    "LOAD_FROM_DICT_OR_GLOBALS": (K.NAME, 0, F.LOAD | _OP),
    "IMPORT_NAME": (K.NAME, -1, F.LOAD | _OP),
    "IMPORT_FROM": (K.NAME, 1, _LOAD),
    "IMPORT_STAR": (K.NONE, -1, F.POP),
    "LOAD_FAST": (K.LOCAL, 1, _LOAD),
    "LOAD_FAST_CHECK": (K.LOCAL, 1, _LOAD),
    "LOAD_FAST_AND_CLEAR": (K.LOCAL, 1, _LOAD),
    "LOAD_FAST_BORROW": (K.LOCAL, 1, _LOAD),
    "STORE_FAST": (K.LOCAL, -1, _STORE),
    "DELETE_FAST": (K.LOCAL, 0, F.DEL),
    "LOAD_FAST_LOAD_FAST": (K.LOCAL_PAIR, 2, _LOAD),
    "LOAD_FAST_BORROW_LOAD_FAST_BORROW": (K.LOCAL_PAIR, 2, _LOAD),
    "STORE_FAST_LOAD_FAST": (K.LOCAL_PAIR, 0, F.STORE | F.LOAD | _OP),
    "STORE_FAST_STORE_FAST": (K.LOCAL_PAIR, -2, _STORE),
    "LOAD_CLOSURE": (K.FREE, 1, _LOAD),
    "LOAD_DEREF": (K.FREE, 1, _LOAD),
    "LOAD_CLASSDEREF": (K.FREE, 1, _LOAD),
    "LOAD_FROM_DICT_OR_DEREF": (K.FREE, 0, F.LOAD | _OP),
    "STORE_DEREF": (K.FREE, -1, _STORE),
    "DELETE_DEREF": (K.FREE, 0, F.DEL),
    "MAKE_CELL": (K.FREE, 0, F.NONE),
    "COPY_FREE_VARS": (K.BYTE, 0, F.NONE),
    "LOAD_LOCALS": (K.NONE, 1, _LOAD),
    "STORE_LOCALS": (K.NONE, -1, _STORE),
    "LOAD_BUILD_CLASS": (K.NONE, 1, _LOAD),
    "LOAD_ASSERTION_ERROR": (K.NONE, 1, _LOAD),
    "LOAD_SPECIAL": (K.BYTE, 1, F.LOAD | _OP),
    "SETUP_ANNOTATIONS": (K.NONE, 0, F.NONE),
    "STORE_ANNOTATION": (K.NAME, -1, _STORE),
    # containers
    "BUILD_TUPLE": (K.BYTE, 1, _OP),
    "BUILD_LIST": (K.BYTE, 1, _OP),
    "BUILD_SET": (K.BYTE, 1, _OP),
    "BUILD_MAP": (K.BYTE, 1, _OP),
    "BUILD_CONST_KEY_MAP": (K.BYTE, 0, _OP),
    "BUILD_STRING": (K.BYTE, 1, _OP),
    "BUILD_TEMPLATE": (K.NONE, -1, _OP),
    "BUILD_INTERPOLATION": (K.BYTE, -1, _OP),
    "BUILD_TUPLE_UNPACK": (K.BYTE, 1, _OP),
    "BUILD_TUPLE_UNPACK_WITH_CALL": (K.BYTE, 1, _OP),
    "BUILD_LIST_UNPACK": (K.BYTE, 1, _OP),
    "BUILD_SET_UNPACK": (K.BYTE, 1, _OP),
    "BUILD_MAP_UNPACK": (K.BYTE, 1, _OP),
    "BUILD_MAP_UNPACK_WITH_CALL": (K.BYTE, 1, _OP),
    "STORE_MAP": (K.NONE, -2, _STORE),
    "LIST_APPEND": (K.BYTE, -1, F.POP),
    "SET_ADD": (K.BYTE, -1, F.POP),
    "MAP_ADD": (K.BYTE, -2, F.POP),
    "LIST_EXTEND": (K.BYTE, -1, F.POP),
    "SET_UPDATE": (K.BYTE, -1, F.POP),
    "DICT_UPDATE": (K.BYTE, -1, F.POP),
    "DICT_MERGE": (K.BYTE, -1, F.POP),
    "LIST_TO_TUPLE": (K.NONE, 0, _OP),
    "UNPACK_SEQUENCE": (K.BYTE, 1, _OP),
    "UNPACK_EX": (K.BYTE, 1, _OP),
    "FORMAT_VALUE": (K.BYTE, 0, _OP),
    "FORMAT_SIMPLE": (K.NONE, 0, _OP),
    "FORMAT_WITH_SPEC": (K.NONE, -1, _OP),
    "CONVERT_VALUE": (K.BYTE, 0, _OP),
    # iteration, jumps and blocks
    "GET_ITER": (K.NONE, 0, _OP),
    "GET_YIELD_FROM_ITER": (K.NONE, 0, _OP),
    "FOR_ITER": (K.JREL, 1, _CJUMP | F.PUSH),
    "END_FOR": (K.NONE, -1, F.POP),
    "GET_LEN": (K.NONE, 1, F.PUSH),
    "JUMP_FORWARD": (K.JREL, 0, F.JUMP),
    "JUMP_ABSOLUTE": (K.JABS, 0, F.JUMP),
    "JUMP_BACKWARD": (K.JBACK, 0, F.JUMP),
    "JUMP_BACKWARD_NO_INTERRUPT": (K.JBACK, 0, F.JUMP),
    "JUMP_IF_FALSE": (K.JREL, 0, _CJUMP),
    "JUMP_IF_TRUE": (K.JREL, 0, _CJUMP),
    "JUMP_IF_FALSE_OR_POP": (K.JABS, 0, _POPJUMP),
    "JUMP_IF_TRUE_OR_POP": (K.JABS, 0, _POPJUMP),
    "POP_JUMP_IF_FALSE": (K.JABS, -1, _POPJUMP),
    "POP_JUMP_IF_TRUE": (K.JABS, -1, _POPJUMP),
    "POP_JUMP_IF_NONE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_IF_NOT_NONE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_FORWARD_IF_FALSE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_FORWARD_IF_TRUE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_FORWARD_IF_NONE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_FORWARD_IF_NOT_NONE": (K.JREL, -1, _POPJUMP),
    "POP_JUMP_BACKWARD_IF_FALSE": (K.JBACK, -1, _POPJUMP),
    "POP_JUMP_BACKWARD_IF_TRUE": (K.JBACK, -1, _POPJUMP),
    "POP_JUMP_BACKWARD_IF_NONE": (K.JBACK, -1, _POPJUMP),
    "POP_JUMP_BACKWARD_IF_NOT_NONE": (K.JBACK, -1, _POPJUMP),
    "BREAK_LOOP": (K.NONE, 0, F.JUMP),
    "CONTINUE_LOOP": (K.JABS, 0, F.JUMP),
    "SETUP_LOOP": (K.JREL, 0, F.NONE),
    "SETUP_EXCEPT": (K.JREL, 0, F.EXCEPT),
    "SETUP_FINALLY": (K.JREL, 0, F.EXCEPT),
    "SETUP_WITH": (K.JREL, 1, F.PUSH),
    "SETUP_ASYNC_WITH": (K.JREL, 1, F.PUSH),
    "BEFORE_WITH": (K.NONE, 1, F.PUSH),
    "BEFORE_ASYNC_WITH": (K.NONE, 1, F.PUSH),
    "WITH_CLEANUP": (K.NONE, -1, F.POP | F.EXCEPT),
    "WITH_CLEANUP_START": (K.NONE, 1, F.PUSH | F.EXCEPT),
    "WITH_CLEANUP_FINISH": (K.NONE, -2, F.POP | F.EXCEPT),
    "WITH_EXCEPT_START": (K.NONE, 1, F.PUSH | F.EXCEPT),
    "POP_BLOCK": (K.NONE, 0, F.NONE),
    "POP_EXCEPT": (K.NONE, -1, F.POP | F.EXCEPT),
    "END_FINALLY": (K.NONE, -1, F.POP | F.EXCEPT),
    "BEGIN_FINALLY": (K.NONE, 1, F.PUSH | F.EXCEPT),
    "CALL_FINALLY": (K.JREL, 1, F.JUMP | F.COND | F.EXCEPT),
    "POP_FINALLY": (K.BYTE, -1, F.POP | F.EXCEPT),
    "PUSH_EXC_INFO": (K.NONE, 1, F.PUSH | F.EXCEPT),
    "CHECK_EXC_MATCH": (K.NONE, 0, _OP | F.EXCEPT),
    "CHECK_EG_MATCH": (K.NONE, 0, _OP | F.EXCEPT),
    "JUMP_IF_NOT_EXC_MATCH": (K.JABS, -2, _POPJUMP | F.EXCEPT),
    "PREP_RERAISE_STAR": (K.NONE, -1, F.POP | F.EXCEPT),
    "CLEANUP_THROW": (K.NONE, -1, _OP | F.EXCEPT),
    "RAISE_VARARGS": (K.BYTE, -1, _RAISE | F.POP),
    "RERAISE": (K.BYTE, -1, _RAISE | F.POP),
    "END_ASYNC_FOR": (K.NONE, -2, F.POP | F.EXCEPT),
    # calls and functions
    "CALL": (K.BYTE, -1, F.CALL | _OP),
    "CALL_KW": (K.BYTE, -2, F.CALL | _OP),
    "PRECALL": (K.BYTE, 0, F.NONE),
    "CALL_FUNCTION": (K.BYTE, -1, F.CALL | _OP),
    "CALL_FUNCTION_VAR": (K.BYTE, -2, F.CALL | _OP),
    "CALL_FUNCTION_KW": (K.BYTE, -2, F.CALL | _OP),
    "CALL_FUNCTION_VAR_KW": (K.BYTE, -3, F.CALL | _OP),
    "CALL_FUNCTION_EX": (K.BYTE, -2, F.CALL | _OP),
    "CALL_METHOD": (K.BYTE, -2, F.CALL | _OP),
    "CALL_INTRINSIC_1": (K.INTRINSIC1, 0, F.CALL | _OP),
    "CALL_INTRINSIC_2": (K.INTRINSIC2, -1, F.CALL | _OP),
    "MAKE_FUNCTION": (K.BYTE, 0, _OP),
    "MAKE_CLOSURE": (K.BYTE, -1, _OP),
    "SET_FUNCTION_ATTRIBUTE": (K.BYTE, -1, _OP),
    "BUILD_CLASS": (K.NONE, -2, _OP),
    "EXEC_STMT": (K.NONE, -3, F.POP),
    "RETURN_VALUE": (K.NONE, -1, F.RET | F.POP),
    "RETURN_GENERATOR": (K.NONE, 1, F.PUSH),
    "GEN_START": (K.BYTE, -1, F.POP),
    "YIELD_VALUE": (K.NONE, 0, F.YIELD),
    "YIELD_FROM": (K.NONE, -1, F.YIELD | F.POP),
    "ASYNC_GEN_WRAP": (K.NONE, 0, _OP),
    "GET_AWAITABLE": (K.NONE, 0, _OP),
    "GET_AITER": (K.NONE, 0, _OP),
    "GET_ANEXT": (K.NONE, 1, F.PUSH),
    "SEND": (K.JREL, 0, _CJUMP),
    "END_SEND": (K.NONE, -1, F.POP),
    "PRINT_EXPR": (K.NONE, -1, F.POP),
    "PRINT_ITEM": (K.NONE, -1, F.POP),
    "PRINT_ITEM_TO": (K.NONE, -2, F.POP),
    "PRINT_NEWLINE": (K.NONE, 0, F.NONE),
    "PRINT_NEWLINE_TO": (K.NONE, -1, F.POP),
    # pattern matching
    "MATCH_CLASS": (K.BYTE, -2, _OP),
    "MATCH_MAPPING": (K.NONE, 1, F.PUSH),
    "MATCH_SEQUENCE": (K.NONE, 1, F.PUSH),
    "MATCH_KEYS": (K.NONE, 1, F.PUSH),
    "COPY_DICT_WITHOUT_KEYS": (K.NONE, 0, _OP),
}


def define(rows: Iterable[tuple], kinds: Optional[Dict[str, OperandKind]] = None,
           name_shifts: Optional[Dict[str, int]] = None) -> List[InstructionDefinition]:
    """Expand `(opcode, mnemonic[, caches[, kind]])` rows into definitions."""
    kinds = kinds or {}
    name_shifts = name_shifts or {}
    definitions = []
    for row in rows:
        opcode, mnemonic = row[0], row[1]
        caches = row[2] if len(row) > 2 else 0
        kind, effect, flags = TRAITS[mnemonic]
        if len(row) > 3:
            kind = row[3]
        kind = kinds.get(mnemonic, kind)
        if caches:
            flags |= F.CACHE
        definitions.append(
            InstructionDefinition(
                opcode=opcode,
                mnemonic=mnemonic,
                kind=kind,
                stack_effect=effect,
                flags=flags,
                cache_entries=caches,
                name_shift=name_shifts.get(mnemonic, 0),
            )
        )
    return definitions
