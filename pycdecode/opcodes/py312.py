from .table import OpcodeTable
from .traits import K, define

ROWS = (
    (0, "CACHE"),
    (1, "POP_TOP"),
    (2, "PUSH_NULL"),
    (3, "INTERPRETER_EXIT"),
    (4, "END_FOR"),
    (5, "END_SEND"),
    (9, "NOP"),
    (11, "UNARY_NEGATIVE"),
    (12, "UNARY_NOT"),
    (15, "UNARY_INVERT"),
    (17, "RESERVED"),
    (25, "BINARY_SUBSCR", 1),
    (26, "BINARY_SLICE"),
    (27, "STORE_SLICE"),
    (30, "GET_LEN"),
    (31, "MATCH_MAPPING"),
    (32, "MATCH_SEQUENCE"),
    (33, "MATCH_KEYS"),
    (35, "PUSH_EXC_INFO"),
    (36, "CHECK_EXC_MATCH"),
    (37, "CHECK_EG_MATCH"),
    (49, "WITH_EXCEPT_START"),
    (50, "GET_AITER"),
    (51, "GET_ANEXT"),
    (52, "BEFORE_ASYNC_WITH"),
    (53, "BEFORE_WITH"),
    (54, "END_ASYNC_FOR"),
    (55, "CLEANUP_THROW"),
    (60, "STORE_SUBSCR", 1),
    (61, "DELETE_SUBSCR"),
    (68, "GET_ITER"),
    (69, "GET_YIELD_FROM_ITER"),
    (71, "LOAD_BUILD_CLASS"),
    (74, "LOAD_ASSERTION_ERROR"),
    (75, "RETURN_GENERATOR"),
    (83, "RETURN_VALUE"),
    (85, "SETUP_ANNOTATIONS"),
    (87, "LOAD_LOCALS"),
    (89, "POP_EXCEPT"),
    (90, "STORE_NAME"),
    (91, "DELETE_NAME"),
    (92, "UNPACK_SEQUENCE", 1),
    (93, "FOR_ITER", 1),
    (94, "UNPACK_EX"),
    (95, "STORE_ATTR", 4),
    (96, "DELETE_ATTR"),
    (97, "STORE_GLOBAL"),
    (98, "DELETE_GLOBAL"),
    (99, "SWAP"),
    (100, "LOAD_CONST"),
    (101, "LOAD_NAME"),
    (102, "BUILD_TUPLE"),
    (103, "BUILD_LIST"),
    (104, "BUILD_SET"),
    (105, "BUILD_MAP"),
    (106, "LOAD_ATTR", 9),
    (107, "COMPARE_OP", 1),
    (108, "IMPORT_NAME"),
    (109, "IMPORT_FROM"),
    (110, "JUMP_FORWARD"),
    (114, "POP_JUMP_IF_FALSE"),
    (115, "POP_JUMP_IF_TRUE"),
    (116, "LOAD_GLOBAL", 4),
    (117, "IS_OP"),
    (118, "CONTAINS_OP"),
    (119, "RERAISE"),
    (120, "COPY"),
    (121, "RETURN_CONST"),
    (122, "BINARY_OP", 1),
    (123, "SEND", 1),
    (124, "LOAD_FAST"),
    (125, "STORE_FAST"),
    (126, "DELETE_FAST"),
    (127, "LOAD_FAST_CHECK"),
    (128, "POP_JUMP_IF_NOT_NONE"),
    (129, "POP_JUMP_IF_NONE"),
    (130, "RAISE_VARARGS"),
    (131, "GET_AWAITABLE", 0, K.BYTE),
    (132, "MAKE_FUNCTION"),
    (133, "BUILD_SLICE"),
    (134, "JUMP_BACKWARD_NO_INTERRUPT"),
    (135, "MAKE_CELL"),
    (136, "LOAD_CLOSURE"),
    (137, "LOAD_DEREF"),
    (138, "STORE_DEREF"),
    (139, "DELETE_DEREF"),
    (140, "JUMP_BACKWARD"),
    (141, "LOAD_SUPER_ATTR", 1),
    (142, "CALL_FUNCTION_EX"),
    (143, "LOAD_FAST_AND_CLEAR"),
    (144, "EXTENDED_ARG"),
    (145, "LIST_APPEND"),
    (146, "SET_ADD"),
    (147, "MAP_ADD"),
    (149, "COPY_FREE_VARS"),
    (150, "YIELD_VALUE", 0, K.BYTE),
    (151, "RESUME"),
    (152, "MATCH_CLASS"),
    (155, "FORMAT_VALUE"),
    (156, "BUILD_CONST_KEY_MAP"),
    (157, "BUILD_STRING"),
    (162, "LIST_EXTEND"),
    (163, "SET_UPDATE"),
    (164, "DICT_MERGE"),
    (165, "DICT_UPDATE"),
    (171, "CALL", 3),
    (172, "KW_NAMES"),
    (173, "CALL_INTRINSIC_1"),
    (174, "CALL_INTRINSIC_2"),
    (175, "LOAD_FROM_DICT_OR_GLOBALS"),
    (176, "LOAD_FROM_DICT_OR_DEREF"),
)

# from 3.12 on every conditional jump is relative and forward
KINDS = {
    "POP_JUMP_IF_FALSE": K.JREL,
    "POP_JUMP_IF_TRUE": K.JREL,
}

NAME_SHIFTS = {
    "LOAD_GLOBAL": 1,
    "LOAD_ATTR": 1,
    "LOAD_SUPER_ATTR": 2,
}

TABLE = OpcodeTable("3.12", define(ROWS, KINDS, NAME_SHIFTS))
