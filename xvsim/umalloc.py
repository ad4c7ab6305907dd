"""A first-fit free-list allocator over an sbrk-grown address space."""

HEADER_SIZE = 16
_MIN_UNITS = 4096


class Heap:
    """Simulated heap whose break may grow up to ``limit`` bytes."""

    def __init__(self, limit):
        self.limit = limit
        self._brk = 0
        self._base = -HEADER_SIZE
        self._ptr = {}
        self._size = {}
        self._allocated = set()
        self._freep = None

    def sbrk(self, n):
        """Move the break by ``n`` bytes and return the old break."""
        old = self._brk
        new = old + n
        if new < 0 or new > self.limit:
            raise MemoryError("sbrk: out of memory")
        self._brk = new
        return old

    def _morecore(self, nu):
        nu = max(nu, _MIN_UNITS)
        hp = self.sbrk(nu * HEADER_SIZE)
        self._size[hp] = nu
        self._allocated.add(hp)
        self.free(hp + HEADER_SIZE)
        return self._freep

    def malloc(self, nbytes):
        """Allocate ``nbytes`` and return the address of the block."""
        if nbytes < 0:
            raise ValueError("negative allocation size")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._ptr[self._base] = self._base
            self._size[self._base] = 0
            self._freep = self._base
        prevp = self._freep
        p = self._ptr[prevp]
        while True:
            if self._size[p] >= nunits:
                if self._size[p] == nunits:
                    self._ptr[prevp] = self._ptr.pop(p)
                else:
                    self._size[p] -= nunits
                    p += self._size[p] * HEADER_SIZE
                    self._size[p] = nunits
                self._freep = prevp
                self._allocated.add(p)
                return p + HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, self._ptr[p]

    def free(self, ptr):
        """Return a block obtained from malloc to the free list."""
        bp = ptr - HEADER_SIZE
        if bp not in self._allocated:
            raise ValueError(f"free of unallocated address {ptr:#x}")
        self._allocated.discard(bp)
        ptrs, sizes = self._ptr, self._size
        p = self._freep
        while not (p < bp < ptrs[p]):
            if p >= ptrs[p] and (bp > p or bp < ptrs[p]):
                break
            p = ptrs[p]
        nxt = ptrs[p]
        if bp + sizes[bp] * HEADER_SIZE == nxt:
            sizes[bp] += sizes.pop(nxt)
            ptrs[bp] = ptrs.pop(nxt)
        else:
            ptrs[bp] = nxt
        if p + sizes[p] * HEADER_SIZE == bp:
            sizes[p] += sizes.pop(bp)
            ptrs[p] = ptrs.pop(bp)
        else:
            ptrs[p] = bp
        self._freep = p

    def free_units(self):
        """Total header-sized units on the free list."""
        if self._freep is None:
            return 0
        total = 0
        p = self._ptr[self._base]
        while p != self._base:
            total += self._size[p]
            p = self._ptr[p]
        return total