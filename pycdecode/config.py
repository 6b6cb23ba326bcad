import dataclasses
from dataclasses import dataclass

MAX_DEPTH = 200
BASE_ADDRESS = 0x10000
ALIGNMENT = 0x100
CONST_WIDTH = 40


@dataclass(frozen=True)
class DecodeOptions:
    # nesting cap for containers and code objects
    max_depth: int = MAX_DEPTH
    base_address: int = BASE_ADDRESS
    alignment: int = ALIGNMENT
    resolve_refs: bool = True
    const_width: int = CONST_WIDTH
    # per-opcode name flag bits and byte-unit jumps for 3.6-3.9, as CPython encodes them
    cpython_operands: bool = False

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError("max_depth must be positive: %d" % self.max_depth)
        if self.alignment < 1 or self.alignment & (self.alignment - 1):
            raise ValueError("alignment must be a power of two: %d" % self.alignment)
        if self.const_width < 4:
            raise ValueError("const_width too small: %d" % self.const_width)

    def replace(self, **changes) -> "DecodeOptions":
        return dataclasses.replace(self, **changes)


DEFAULT_OPTIONS = DecodeOptions()
