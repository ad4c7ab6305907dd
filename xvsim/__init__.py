"""Models of a small RISC-V kernel's paging, ELF records, user library, shell parser, utilities and image builder."""

__version__ = "0.1.0"

__all__ = [
    "riscv",
    "elf",
    "vm",
    "fmt",
    "ulib",
    "umalloc",
    "grep",
    "rand",
    "coreutils",
    "shell",
    "mkfs",
]