"""Sv39 page tables over a simulated physical memory."""

import struct

from .riscv import (
    KERNBASE,
    MAXVA,
    PGSIZE,
    PHYSTOP,
    PLIC,
    PTE_R,
    PTE_U,
    PTE_V,
    PTE_W,
    PTE_X,
    TRAMPOLINE,
    UART0,
    VIRTIO0,
    pa2pte,
    pg_round_down,
    pg_round_up,
    pte2pa,
    pte_flags,
    px,
)

_PTE = struct.Struct("<Q")


class KernelPanic(RuntimeError):
    """An invariant the kernel relies on was violated."""


class OutOfMemory(Exception):
    """No free physical page was available."""


class BadAddress(ValueError):
    """A user virtual address is not mapped for user access."""


class PhysicalMemory:
    """A range of page-granular physical RAM with a free-page list."""

    def __init__(self, start, stop):
        self.start = pg_round_up(start)
        self.stop = pg_round_down(stop)
        if self.stop <= self.start:
            raise ValueError("physical memory range holds no whole page")
        self._ram = bytearray(self.stop - self.start)
        self._free = list(range(self.start, self.stop, PGSIZE))

    def _offset(self, pa, n):
        if pa < self.start or pa + n > self.stop:
            raise KernelPanic(f"physical address {pa:#x} out of range")
        return pa - self.start

    def alloc(self):
        """Take one free page and return its physical address."""
        if not self._free:
            raise OutOfMemory("out of physical pages")
        return self._free.pop()

    def free(self, pa):
        """Return a page to the free list."""
        if pa % PGSIZE != 0 or pa < self.start or pa >= self.stop:
            raise KernelPanic("kfree")
        self._free.append(pa)

    def read(self, pa, n):
        """Read ``n`` bytes at physical address ``pa``."""
        off = self._offset(pa, n)
        return bytes(self._ram[off:off + n])

    def write(self, pa, data):
        """Write ``data`` at physical address ``pa``."""
        off = self._offset(pa, len(data))
        self._ram[off:off + len(data)] = data

    def read_pte(self, pa, index):
        """Read entry ``index`` of the page table at ``pa``."""
        return _PTE.unpack_from(self._ram, self._offset(pa + index * 8, 8))[0]

    def write_pte(self, pa, index, value):
        """Store ``value`` as entry ``index`` of the page table at ``pa``."""
        _PTE.pack_into(self._ram, self._offset(pa + index * 8, 8), value)

    def free_pages(self):
        """Number of pages currently free."""
        return len(self._free)


class PageTable:
    """A three-level Sv39 page table rooted in one physical page."""

    def __init__(self, memory):
        self.memory = memory
        self.root = memory.alloc()
        memory.write(self.root, bytes(PGSIZE))

    def walk(self, va, alloc=False):
        """Locate the level-0 PTE for ``va`` as ``(table_pa, index)``.

        Returns None when an intermediate table is missing and ``alloc`` is
        false; creates missing tables otherwise.
        """
        if va >= MAXVA:
            raise KernelPanic("walk")
        mem = self.memory
        table = self.root
        for level in (2, 1):
            index = px(level, va)
            entry = mem.read_pte(table, index)
            if entry & PTE_V:
                table = pte2pa(entry)
            else:
                if not alloc:
                    return None
                child = mem.alloc()
                mem.write(child, bytes(PGSIZE))
                mem.write_pte(table, index, pa2pte(child) | PTE_V)
                table = child
        return table, px(0, va)

    def pte(self, va):
        """The leaf PTE for ``va``, or 0 if no level-0 table covers it."""
        slot = self.walk(va)
        return 0 if slot is None else self.memory.read_pte(*slot)

    def walkaddr(self, va):
        """Physical page of a user-accessible ``va``, or None."""
        if va >= MAXVA:
            return None
        entry = self.pte(va)
        if not entry & PTE_V or not entry & PTE_U:
            return None
        return pte2pa(entry)

    def mappages(self, va, size, pa, perm):
        """Map ``[va, va+size)`` to physical memory starting at ``pa``."""
        if size == 0:
            raise KernelPanic("mappages: size")
        first = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        for a in range(first, last + PGSIZE, PGSIZE):
            table, index = self.walk(a, alloc=True)
            if self.memory.read_pte(table, index) & PTE_V:
                raise KernelPanic("mappages: remap")
            self.memory.write_pte(table, index, pa2pte(pa + (a - first)) | perm | PTE_V)

    def unmap(self, va, npages, do_free):
        """Remove ``npages`` existing mappings from ``va``, optionally freeing them."""
        if va % PGSIZE != 0:
            raise KernelPanic("uvmunmap: not aligned")
        for a in range(va, va + npages * PGSIZE, PGSIZE):
            slot = self.walk(a)
            if slot is None:
                raise KernelPanic("uvmunmap: walk")
            entry = self.memory.read_pte(*slot)
            if not entry & PTE_V:
                raise KernelPanic("uvmunmap: not mapped")
            if pte_flags(entry) == PTE_V:
                raise KernelPanic("uvmunmap: not a leaf")
            if do_free:
                self.memory.free(pte2pa(entry))
            self.memory.write_pte(*slot, 0)

    def load_first(self, src):
        """Place ``src`` (under a page) at address 0 for the first process."""
        if len(src) >= PGSIZE:
            raise KernelPanic("uvmfirst: more than a page")
        page = self.memory.alloc()
        self.memory.write(page, bytes(PGSIZE))
        self.mappages(0, PGSIZE, page, PTE_W | PTE_R | PTE_X | PTE_U)
        self.memory.write(page, src)

    def grow(self, oldsz, newsz, xperm=0):
        """Allocate zeroed user pages to grow from ``oldsz`` to ``newsz``."""
        if newsz < oldsz:
            return oldsz
        oldsz = pg_round_up(oldsz)
        for a in range(oldsz, newsz, PGSIZE):
            try:
                page = self.memory.alloc()
            except OutOfMemory:
                self.shrink(a, oldsz)
                raise
            self.memory.write(page, bytes(PGSIZE))
            try:
                self.mappages(a, PGSIZE, page, PTE_R | PTE_U | xperm)
            except OutOfMemory:
                self.memory.free(page)
                self.shrink(a, oldsz)
                raise
        return newsz

    def shrink(self, oldsz, newsz):
        """Release user pages to bring the size from ``oldsz`` to ``newsz``."""
        if newsz >= oldsz:
            return oldsz
        if pg_round_up(newsz) < pg_round_up(oldsz):
            npages = (pg_round_up(oldsz) - pg_round_up(newsz)) // PGSIZE
            self.unmap(pg_round_up(newsz), npages, True)
        return newsz

    def _freewalk(self, table):
        entries = struct.iter_unpack("<Q", self.memory.read(table, PGSIZE))
        for index, (entry,) in enumerate(entries):
            if entry & PTE_V and entry & (PTE_R | PTE_W | PTE_X) == 0:
                self._freewalk(pte2pa(entry))
                self.memory.write_pte(table, index, 0)
            elif entry & PTE_V:
                raise KernelPanic("freewalk: leaf")
        self.memory.free(table)

    def free(self, sz):
        """Free ``sz`` bytes of user memory, then every page-table page."""
        if sz > 0:
            self.unmap(0, pg_round_up(sz) // PGSIZE, True)
        self._freewalk(self.root)

    def copy_into(self, other, sz):
        """Copy the first ``sz`` bytes of mappings and memory into ``other``."""
        for va in range(0, sz, PGSIZE):
            slot = self.walk(va)
            if slot is None:
                raise KernelPanic("uvmcopy: pte should exist")
            entry = self.memory.read_pte(*slot)
            if not entry & PTE_V:
                raise KernelPanic("uvmcopy: page not present")
            try:
                page = self.memory.alloc()
                self.memory.write(page, self.memory.read(pte2pa(entry), PGSIZE))
                try:
                    other.mappages(va, PGSIZE, page, pte_flags(entry))
                except OutOfMemory:
                    self.memory.free(page)
                    raise
            except OutOfMemory:
                other.unmap(0, va // PGSIZE, True)
                raise

    def clear_user(self, va):
        """Remove user access from the page at ``va``."""
        slot = self.walk(va)
        if slot is None:
            raise KernelPanic("uvmclear")
        self.memory.write_pte(*slot, self.memory.read_pte(*slot) & ~PTE_U)

    def _user_page(self, va):
        va0 = pg_round_down(va)
        pa0 = self.walkaddr(va0)
        if pa0 is None:
            raise BadAddress(f"user address {va:#x} not mapped")
        return va0, pa0

    def copyout(self, dstva, data):
        """Copy ``data`` to user virtual address ``dstva``."""
        data = bytes(data)
        pos = 0
        while pos < len(data):
            va0, pa0 = self._user_page(dstva)
            n = min(PGSIZE - (dstva - va0), len(data) - pos)
            self.memory.write(pa0 + (dstva - va0), data[pos:pos + n])
            pos += n
            dstva = va0 + PGSIZE

    def copyin(self, srcva, n):
        """Return ``n`` bytes read from user virtual address ``srcva``."""
        out = bytearray()
        while len(out) < n:
            va0, pa0 = self._user_page(srcva)
            count = min(PGSIZE - (srcva - va0), n - len(out))
            out += self.memory.read(pa0 + (srcva - va0), count)
            srcva = va0 + PGSIZE
        return bytes(out)

    def copyinstr(self, srcva, maximum):
        """Return the NUL-terminated user string at ``srcva``, without the NUL.

        Raises BadAddress if no NUL is found within ``maximum`` bytes.
        """
        out = bytearray()
        while maximum > 0:
            va0, pa0 = self._user_page(srcva)
            n = min(PGSIZE - (srcva - va0), maximum)
            chunk = self.memory.read(pa0 + (srcva - va0), n)
            nul = chunk.find(0)
            if nul >= 0:
                out += chunk[:nul]
                return bytes(out)
            out += chunk
            maximum -= n
            srcva = va0 + PGSIZE
        raise BadAddress("user string not terminated")


def kvmmake(memory, etext, trampoline):
    """Build the kernel's direct-mapped page table."""
    table = PageTable(memory)

    def kvmmap(va, pa, sz, perm):
        try:
            table.mappages(va, sz, pa, perm)
        except OutOfMemory as exc:
            raise KernelPanic("kvmmap") from exc

    kvmmap(UART0, UART0, PGSIZE, PTE_R | PTE_W)
    kvmmap(VIRTIO0, VIRTIO0, PGSIZE, PTE_R | PTE_W)
    kvmmap(PLIC, PLIC, 0x400000, PTE_R | PTE_W)
    kvmmap(KERNBASE, KERNBASE, etext - KERNBASE, PTE_R | PTE_X)
    kvmmap(etext, etext, PHYSTOP - etext, PTE_R | PTE_W)
    kvmmap(TRAMPOLINE, trampoline, PGSIZE, PTE_R | PTE_X)
    return table