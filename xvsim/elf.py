"""ELF64 file header and program header records."""

import dataclasses
import struct
from dataclasses import dataclass
from typing import ClassVar

ELF_MAGIC = 0x464C457F  # "\x7FELF" read as a little-endian word

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass
class ElfHeader:
    """The ELF file header."""

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<I12sHHIQQQIHHHHHH")
    SIZE: ClassVar[int] = FORMAT.size

    magic: int = ELF_MAGIC
    elf: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    @classmethod
    def unpack(cls, data):
        """Decode a header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ElfFormatError("truncated ELF header")
        header = cls(*cls.FORMAT.unpack_from(data))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError(f"bad ELF magic {header.magic:#x}")
        return header

    def pack(self):
        """Encode the header as bytes."""
        return self.FORMAT.pack(*dataclasses.astuple(self))


@dataclass
class ProgramHeader:
    """One program (segment) header."""

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<IIQQQQQQ")
    SIZE: ClassVar[int] = FORMAT.size

    type: int = 0
    flags: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0

    @classmethod
    def unpack(cls, data):
        """Decode a program header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ElfFormatError("truncated program header")
        return cls(*cls.FORMAT.unpack_from(data))

    def pack(self):
        """Encode the program header as bytes."""
        return self.FORMAT.pack(*dataclasses.astuple(self))

    def is_loadable(self):
        """True for segments that are to be loaded into memory."""
        return self.type == ELF_PROG_LOAD


def program_headers(data):
    """Yield the program headers of the ELF image in ``data``."""
    header = ElfHeader.unpack(data)
    if header.phnum and header.phentsize < ProgramHeader.SIZE:
        raise ElfFormatError(f"program header entry size {header.phentsize} too small")
    for i in range(header.phnum):
        off = header.phoff + i * header.phentsize
        end = off + ProgramHeader.SIZE
        if end > len(data):
            raise ElfFormatError(f"program header {i} lies beyond the image")
        yield ProgramHeader.unpack(data[off:end])