# xvsim

`xvsim` models the parts of a small RISC-V teaching kernel and its user
land that make sense outside the machine:

- **`xvsim.riscv`**: Sv39 paging arithmetic, the physical memory map
  and the `open()` flags (`pg_round_up`, `pg_round_down`, `pa2pte`,
  `pte2pa`, `pte_flags`, `px`, `make_satp`, `kstack`,
  `clint_mtimecmp`, `plic_senable`, `plic_spriority`, `plic_sclaim`).
- **`xvsim.elf`**: reading and writing ELF64 file headers and program
  headers (`ElfHeader`, `ProgramHeader`, `program_headers`).
- **`xvsim.vm`**: a three-level page table over simulated physical
  memory (`PhysicalMemory`, `PageTable`, `kvmmake`). It covers mapping
  and unmapping, growing and shrinking a user address space, copying
  one address space into another, and `copyin` / `copyout` /
  `copyinstr`.
- **`xvsim.fmt`**: the user library's minimal `printf`
  (`format`, `fprintf`) with `%d %l %x %p %s %c %%`.
- **`xvsim.ulib`**: C-style helpers `atoi`, `strcmp`, `memcmp`, `gets`.
- **`xvsim.umalloc`**: a first-fit free-list allocator over a simulated
  break (`Heap` with `sbrk`, `malloc`, `free`, `free_units`).
- **`xvsim.grep`**: the `^ . * $` regular-expression matcher (`match`)
  and a line filter (`grep`).
- **`xvsim.rand`**: the Park–Miller generator (`do_rand`, `ParkMiller`).
- **`xvsim.coreutils`**: `cat`, `echo`, `wc`, `fmtname`, `ls` and the
  command entry points for cat, echo, wc, ls, mkdir, rm, ln and kill.
- **`xvsim.shell`**: the shell's command parser (`Tokenizer`,
  `parse_cmd` and the `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd`,
  `BackCmd` tree).
- **`xvsim.mkfs`**: builds a file-system image (`FsGeometry`, `Dinode`,
  `ImageBuilder`, `build_image`).

It has no runtime dependencies.

## Installing

```
pip install .
```

## Library use

```python
from xvsim import riscv, grep, fmt, shell
from xvsim.vm import PhysicalMemory, PageTable
from xvsim.rand import ParkMiller

riscv.pg_round_up(4097)          # 8192
grep.match("^ab*c$", "abbbc")    # True
fmt.format("%d %x", -5, 255)     # "-5 FF"

memory = PhysicalMemory(riscv.KERNBASE, riscv.KERNBASE + 64 * riscv.PGSIZE)
table = PageTable(memory)
size = table.grow(0, 3 * riscv.PGSIZE, riscv.PTE_W)
table.copyout(100, b"hello\0")
table.copyinstr(100, 64)         # b"hello"

cmd = shell.parse_cmd("echo hi | wc > out")
# PipeCmd(left=ExecCmd(argv=['echo', 'hi']),
#         right=RedirCmd(cmd=ExecCmd(argv=['wc']), file='out', ...))

gen = ParkMiller(1)
gen.next()
```

Errors are raised as exceptions: `KernelPanic`, `OutOfMemory` and
`BadAddress` from `xvsim.vm`, `ElfFormatError` from `xvsim.elf`,
`ShellSyntaxError` from `xvsim.shell`, and `MemoryError` from
`Heap.sbrk` when the break would pass its limit.

## Commands

Build a file-system image from host files. Each file must lie in the
current directory or in `user/`; a leading `user/` is stripped from
its name, and so is a leading underscore:

```
xvsim-mkfs fs.img README user/_cat user/_echo
```

Utilities that work on host files or on standard input:

```
xvsim-grep 'ba*d$' notes.txt
xvsim-cat notes.txt
xvsim-echo hello world
xvsim-wc notes.txt
xvsim-ls .
xvsim-mkdir newdir
xvsim-rm oldfile
xvsim-ln existing newname
xvsim-kill 1234
```

`xvsim-ls` prints each entry's blank-padded name, type (1 directory,
2 file, 3 other), host inode number and size; for a directory it lists
`.`, `..` and then the entries in sorted order.

## What it does not do

There is no kernel to boot and nothing here runs programs inside a
simulated machine. The page tables, ELF records and allocator are data
structures to drive from Python. The shell module parses command lines
into a tree but does not execute them, and there is no interactive
shell command. The image builder writes images; nothing in the package
reads files back out of one.

## Running the tests

```
pip install .[test]
pytest
```