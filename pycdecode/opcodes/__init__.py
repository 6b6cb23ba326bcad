from ..version import Family
from . import py27, py35, py310, py311, py312, py313, py314
from .table import (
    HAVE_ARGUMENT,
    InsnFlag,
    InstructionDefinition,
    OpcodeTable,
    OperandKind,
    terminates_block,
)

# one reference table per family
FAMILY_TABLES = {
    Family.PY2X: py27.TABLE,
    Family.PY3_0_35: py35.TABLE,
    Family.PY3_6_310: py310.TABLE,
    Family.PY3_11_313: py312.TABLE,
    Family.PY3_14_PLUS: py314.TABLE,
}

# (last minor, table) per major, oldest first
_RELEASE_TABLES = {
    2: ((6, py27.PY20_26), (7, py27.TABLE)),
    3: (
        (4, py35.PY30_34),
        (5, py35.TABLE),
        (8, py310.PY36_38),
        (9, py310.PY39),
        (10, py310.TABLE),
        (11, py311.TABLE),
        (12, py312.TABLE),
        (13, py313.TABLE),
    ),
}

ALL_TABLES = (
    py27.PY20_26, py27.TABLE, py35.PY30_34, py35.TABLE, py310.PY36_38, py310.PY39,
    py310.TABLE, py311.TABLE, py312.TABLE, py313.TABLE, py314.TABLE,
)


def table_for(family: Family) -> OpcodeTable:
    return FAMILY_TABLES[family]


def table_for_version(major: int, minor: int) -> OpcodeTable:
    if major < 2:
        return py27.PY20_26
    for last_minor, table in _RELEASE_TABLES.get(major, ()):
        if minor <= last_minor:
            return table
    if major == 2:
        return py27.TABLE
    return py314.TABLE


__all__ = [
    "ALL_TABLES",
    "FAMILY_TABLES",
    "HAVE_ARGUMENT",
    "InsnFlag",
    "InstructionDefinition",
    "OpcodeTable",
    "OperandKind",
    "table_for",
    "table_for_version",
    "terminates_block",
]
