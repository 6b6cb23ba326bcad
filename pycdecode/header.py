import logging
import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import TruncatedInput, UnknownVersionMagic
from .version import RAW_MARSHAL_DEFAULT, VersionDescriptor, is_raw_marshal, magic_number, resolve

logger = logging.getLogger(__name__)

FLAG_HASH_BASED = 0x1
FLAG_CHECK_SOURCE = 0x2


@dataclass(frozen=True)
class PycHeader:
    magic: int
    version: VersionDescriptor
    size: int
    flags: int = 0
    mtime: Optional[int] = None
    source_size: Optional[int] = None
    source_hash: Optional[bytes] = None

    @property
    def is_hash_based(self) -> bool:
        return bool(self.flags & FLAG_HASH_BASED)

    @property
    def checked(self) -> bool:
        return self.is_hash_based and bool(self.flags & FLAG_CHECK_SOURCE)


def read_header(data: bytes) -> Tuple[Optional[PycHeader], VersionDescriptor]:
    if not data:
        raise TruncatedInput(1, 0, 0)
    magic = magic_number(data[:4])
    if magic is None:
        if is_raw_marshal(data[0]):
            logger.debug("no pyc header, assuming %s", RAW_MARSHAL_DEFAULT.label)
            return None, RAW_MARSHAL_DEFAULT
        if len(data) < 4:
            raise TruncatedInput(4, len(data), 0)
        raise UnknownVersionMagic(None, 0)
    descriptor = resolve(magic)
    if descriptor is None:
        raise UnknownVersionMagic(magic, 0)

    size = descriptor.header_size
    if len(data) < size:
        raise TruncatedInput(size, len(data), 0)

    if size == 16:
        (flags,) = struct.unpack_from("<I", data, 4)
        if flags & FLAG_HASH_BASED:
            header = PycHeader(magic, descriptor, size, flags, source_hash=bytes(data[8:16]))
        else:
            mtime, source_size = struct.unpack_from("<II", data, 8)
            header = PycHeader(magic, descriptor, size, flags, mtime, source_size)
    elif size == 12:
        mtime, source_size = struct.unpack_from("<II", data, 4)
        header = PycHeader(magic, descriptor, size, mtime=mtime, source_size=source_size)
    else:
        (mtime,) = struct.unpack_from("<I", data, 4)
        header = PycHeader(magic, descriptor, size, mtime=mtime)
    logger.debug("%s header, %d bytes, flags 0x%x", descriptor.label, size, header.flags)
    return header, descriptor
