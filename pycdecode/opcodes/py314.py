from .py312 import KINDS, NAME_SHIFTS
from .table import OpcodeTable
from .traits import K, define

ROWS = (
    (0, "CACHE"),
    (1, "BINARY_SLICE"),
    (2, "BUILD_TEMPLATE"),
    (4, "CALL_FUNCTION_EX", 0, K.NONE),
    (5, "CHECK_EG_MATCH"),
    (6, "CHECK_EXC_MATCH"),
    (7, "CLEANUP_THROW"),
    (8, "DELETE_SUBSCR"),
    (9, "END_FOR"),
    (10, "END_SEND"),
    (11, "EXIT_INIT_CHECK"),
    (12, "FORMAT_SIMPLE"),
    (13, "FORMAT_WITH_SPEC"),
    (14, "GET_AITER"),
    (15, "GET_ANEXT"),
    (16, "GET_ITER"),
    (17, "RESERVED"),
    (18, "GET_LEN"),
    (19, "GET_YIELD_FROM_ITER"),
    (20, "INTERPRETER_EXIT"),
    (21, "LOAD_BUILD_CLASS"),
    (22, "LOAD_LOCALS"),
    (23, "MAKE_FUNCTION", 0, K.NONE),
    (24, "MATCH_KEYS"),
    (25, "MATCH_MAPPING"),
    (26, "MATCH_SEQUENCE"),
    (27, "NOP"),
    (28, "NOT_TAKEN"),
    (29, "POP_EXCEPT"),
    (30, "POP_ITER"),
    (31, "POP_TOP"),
    (32, "PUSH_EXC_INFO"),
    (33, "PUSH_NULL"),
    (34, "RETURN_GENERATOR"),
    (35, "RETURN_VALUE"),
    (36, "SETUP_ANNOTATIONS"),
    (37, "STORE_SLICE"),
    (38, "STORE_SUBSCR", 1),
    (39, "TO_BOOL", 3),
    (40, "UNARY_INVERT"),
    (41, "UNARY_NEGATIVE"),
    (42, "UNARY_NOT"),
    (43, "WITH_EXCEPT_START"),
    (44, "BINARY_OP", 5),
    (45, "BUILD_INTERPOLATION"),
    (46, "BUILD_LIST"),
    (47, "BUILD_MAP"),
    (48, "BUILD_SET"),
    (49, "BUILD_SLICE"),
    (50, "BUILD_STRING"),
    (51, "BUILD_TUPLE"),
    (52, "CALL", 3),
    (53, "CALL_INTRINSIC_1"),
    (54, "CALL_INTRINSIC_2"),
    (55, "CALL_KW", 3),
    (56, "COMPARE_OP", 1),
    (57, "CONTAINS_OP", 1),
    (58, "CONVERT_VALUE"),
    (59, "COPY"),
    (60, "COPY_FREE_VARS"),
    (61, "DELETE_ATTR"),
    (62, "DELETE_DEREF"),
    (63, "DELETE_FAST"),
    (64, "DELETE_GLOBAL"),
    (65, "DELETE_NAME"),
    (66, "DICT_MERGE"),
    (67, "DICT_UPDATE"),
    (68, "END_ASYNC_FOR"),
    (69, "EXTENDED_ARG"),
    (70, "FOR_ITER", 1),
    (71, "GET_AWAITABLE", 0, K.BYTE),
    (72, "IMPORT_FROM"),
    (73, "IMPORT_NAME"),
    (74, "IS_OP"),
    (75, "JUMP_BACKWARD", 1),
    (76, "JUMP_BACKWARD_NO_INTERRUPT"),
    (77, "JUMP_FORWARD"),
    (78, "LIST_APPEND"),
    (79, "LIST_EXTEND"),
    (80, "LOAD_ATTR", 9),
    (81, "LOAD_COMMON_CONSTANT"),
    (82, "LOAD_CONST"),
    (83, "LOAD_DEREF"),
    (84, "LOAD_FAST"),
    (85, "LOAD_FAST_AND_CLEAR"),
    (86, "LOAD_FAST_BORROW"),
    (87, "LOAD_FAST_BORROW_LOAD_FAST_BORROW"),
    (88, "LOAD_FAST_CHECK"),
    (89, "LOAD_FAST_LOAD_FAST"),
    (90, "LOAD_FROM_DICT_OR_DEREF"),
    (91, "LOAD_FROM_DICT_OR_GLOBALS"),
    (92, "LOAD_GLOBAL", 4),
    (93, "LOAD_NAME"),
    (94, "LOAD_SMALL_INT"),
    (95, "LOAD_SPECIAL"),
    (96, "LOAD_SUPER_ATTR", 1),
    (97, "MAKE_CELL"),
    (98, "MAP_ADD"),
    (99, "MATCH_CLASS"),
    (100, "POP_JUMP_IF_FALSE", 1),
    (101, "POP_JUMP_IF_NONE", 1),
    (102, "POP_JUMP_IF_NOT_NONE", 1),
    (103, "POP_JUMP_IF_TRUE", 1),
    (104, "RAISE_VARARGS"),
    (105, "RERAISE"),
    (106, "SEND", 1),
    (107, "SET_ADD"),
    (108, "SET_FUNCTION_ATTRIBUTE"),
    (109, "SET_UPDATE"),
    (110, "STORE_ATTR", 4),
    (111, "STORE_DEREF"),
    (112, "STORE_FAST"),
    (113, "STORE_FAST_LOAD_FAST"),
    (114, "STORE_FAST_STORE_FAST"),
    (115, "STORE_GLOBAL"),
    (116, "STORE_NAME"),
    (117, "SWAP"),
    (118, "UNPACK_EX"),
    (119, "UNPACK_SEQUENCE", 1),
    (120, "YIELD_VALUE", 0, K.BYTE),
    (128, "RESUME"),
)

TABLE = OpcodeTable("3.14", define(ROWS, KINDS, NAME_SHIFTS))
