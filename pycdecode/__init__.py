"""Version-aware decoder for compiled Python (.pyc) files, Python 2.0 through 3.14."""
from .config import DEFAULT_OPTIONS, DecodeOptions
from .context import DecodeContext
from .errors import (
    DecodeError,
    MalformedDictTerminator,
    MarshalError,
    PycDecodeError,
    RecursionLimitExceeded,
    TruncatedInput,
    UnknownOpcode,
    UnknownVersionMagic,
    UnsupportedMarshalTag,
)
from .header import PycHeader, read_header
from .instructions import Instruction, decode_all, decode_one, iter_instructions, terminates_block
from .loader import CodeStore, PycFile, load_file, load_pyc
from .operands import OperandResolver
from .pymarshal import CodeObject, Ref
from .version import Family, VersionDescriptor, resolve

__version__ = "0.1.0"

__all__ = [
    "CodeObject",
    "CodeStore",
    "DEFAULT_OPTIONS",
    "DecodeContext",
    "DecodeError",
    "DecodeOptions",
    "Family",
    "Instruction",
    "MalformedDictTerminator",
    "MarshalError",
    "OperandResolver",
    "PycDecodeError",
    "PycFile",
    "PycHeader",
    "RecursionLimitExceeded",
    "Ref",
    "TruncatedInput",
    "UnknownOpcode",
    "UnknownVersionMagic",
    "UnsupportedMarshalTag",
    "VersionDescriptor",
    "decode_all",
    "decode_one",
    "iter_instructions",
    "load_file",
    "load_pyc",
    "read_header",
    "resolve",
    "terminates_block",
]
