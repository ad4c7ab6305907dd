import pytest

from xvsim.riscv import (
    KERNBASE,
    MAXVA,
    PGSIZE,
    PHYSTOP,
    PTE_R,
    PTE_U,
    PTE_V,
    PTE_W,
    PTE_X,
    TRAMPOLINE,
    UART0,
    pte2pa,
    pte_flags,
)
from xvsim.vm import (
    BadAddress,
    KernelPanic,
    OutOfMemory,
    PageTable,
    PhysicalMemory,
    kvmmake,
)


@pytest.fixture
def memory():
    return PhysicalMemory(KERNBASE, KERNBASE + 64 * PGSIZE)


def test_alloc_and_free_track_pages(memory):
    before = memory.free_pages()
    pa = memory.alloc()
    assert pa % PGSIZE == 0 and memory.start <= pa < memory.stop
    assert memory.free_pages() == before - 1
    memory.free(pa)
    assert memory.free_pages() == before


def test_alloc_exhaustion(memory):
    for _ in range(memory.free_pages()):
        memory.alloc()
    with pytest.raises(OutOfMemory):
        memory.alloc()


def test_free_rejects_unaligned(memory):
    with pytest.raises(KernelPanic, match="kfree"):
        memory.free(memory.start + 1)


def test_pte_storage_round_trip(memory):
    pa = memory.alloc()
    memory.write_pte(pa, 3, 0x1234)
    assert memory.read_pte(pa, 3) == 0x1234


def test_mappages_and_walkaddr(memory):
    table = PageTable(memory)
    page = memory.alloc()
    table.mappages(PGSIZE, PGSIZE, page, PTE_R | PTE_W | PTE_U)
    assert table.walkaddr(PGSIZE) == page
    assert table.walkaddr(PGSIZE + 100) == page
    assert table.walkaddr(2 * PGSIZE) is None
    assert pte_flags(table.pte(PGSIZE)) == PTE_R | PTE_W | PTE_U | PTE_V


def test_walkaddr_needs_user_bit(memory):
    table = PageTable(memory)
    page = memory.alloc()
    table.mappages(0, PGSIZE, page, PTE_R)
    assert table.walkaddr(0) is None
    assert pte2pa(table.pte(0)) == page


def test_unaligned_range_maps_both_pages(memory):
    table = PageTable(memory)
    table.mappages(PGSIZE - 1, 2, memory.start, PTE_R | PTE_U)
    assert table.walkaddr(0) == memory.start
    assert table.walkaddr(PGSIZE) == memory.start + PGSIZE


def test_remap_panics(memory):
    table = PageTable(memory)
    table.mappages(0, PGSIZE, memory.start, PTE_R)
    with pytest.raises(KernelPanic, match="remap"):
        table.mappages(0, PGSIZE, memory.start, PTE_R)


def test_zero_size_panics(memory):
    with pytest.raises(KernelPanic, match="size"):
        PageTable(memory).mappages(0, 0, memory.start, PTE_R)


def test_addresses_beyond_maxva(memory):
    table = PageTable(memory)
    assert table.walkaddr(MAXVA) is None
    with pytest.raises(KernelPanic, match="walk"):
        table.walk(MAXVA)


def test_grow_gives_zeroed_pages(memory):
    table = PageTable(memory)
    sz = table.grow(0, 2 * PGSIZE + 10, PTE_W)
    assert sz == 2 * PGSIZE + 10
    assert table.copyin(0, 3 * PGSIZE) == bytes(3 * PGSIZE)
    assert table.grow(sz, 5) == sz


def test_copy_round_trip_across_pages(memory):
    table = PageTable(memory)
    table.grow(0, 3 * PGSIZE, PTE_W)
    data = bytes(range(256)) * 20
    table.copyout(PGSIZE - 100, data)
    assert table.copyin(PGSIZE - 100, len(data)) == data


def test_copy_unmapped_raises(memory):
    table = PageTable(memory)
    table.grow(0, PGSIZE, PTE_W)
    with pytest.raises(BadAddress):
        table.copyout(PGSIZE - 2, b"abcd")
    with pytest.raises(BadAddress):
        table.copyin(PGSIZE, 1)


def test_copyinstr(memory):
    table = PageTable(memory)
    table.grow(0, PGSIZE, PTE_W)
    table.copyout(10, b"hello\0world")
    assert table.copyinstr(10, 64) == b"hello"
    with pytest.raises(BadAddress):
        table.copyinstr(10, 5)


def test_copyinstr_runs_off_mapped_memory(memory):
    table = PageTable(memory)
    table.grow(0, PGSIZE, PTE_W)
    table.copyout(0, b"x" * PGSIZE)
    with pytest.raises(BadAddress):
        table.copyinstr(PGSIZE - 1, 2 * PGSIZE)


def test_grow_then_free_returns_all_pages(memory):
    before = memory.free_pages()
    table = PageTable(memory)
    sz = table.grow(0, 5 * PGSIZE, PTE_W)
    assert memory.free_pages() < before
    table.free(sz)
    assert memory.free_pages() == before


def test_grow_out_of_memory_cleans_up(memory):
    before = memory.free_pages()
    table = PageTable(memory)
    with pytest.raises(OutOfMemory):
        table.grow(0, 1000 * PGSIZE, PTE_W)
    assert table.walkaddr(0) is None
    table.free(0)
    assert memory.free_pages() == before


def test_shrink(memory):
    table = PageTable(memory)
    table.grow(0, 3 * PGSIZE, PTE_W)
    assert table.shrink(3 * PGSIZE, PGSIZE) == PGSIZE
    assert table.walkaddr(0) is not None and table.walkaddr(PGSIZE) is None
    assert table.shrink(PGSIZE, 2 * PGSIZE) == PGSIZE


def test_copy_into_is_a_deep_copy(memory):
    parent = PageTable(memory)
    sz = parent.grow(0, 2 * PGSIZE, PTE_W)
    parent.copyout(PGSIZE - 3, b"abcdef")
    child = PageTable(memory)
    parent.copy_into(child, sz)
    assert child.copyin(PGSIZE - 3, 6) == b"abcdef"
    child.copyout(PGSIZE - 3, b"zz")
    assert parent.copyin(PGSIZE - 3, 6) == b"abcdef"
    assert child.walkaddr(0) != parent.walkaddr(0)


def test_clear_user(memory):
    table = PageTable(memory)
    table.grow(0, 2 * PGSIZE, PTE_W)
    table.clear_user(0)
    assert table.walkaddr(0) is None
    assert table.walkaddr(PGSIZE) is not None
    with pytest.raises(BadAddress):
        table.copyin(0, 1)


def test_clear_user_unmapped_panics(memory):
    with pytest.raises(KernelPanic, match="uvmclear"):
        PageTable(memory).clear_user(0)


def test_load_first(memory):
    table = PageTable(memory)
    table.load_first(b"\x13\x00")
    assert table.copyin(0, 4) == b"\x13\x00\x00\x00"
    assert pte_flags(table.pte(0)) == PTE_V | PTE_R | PTE_W | PTE_X | PTE_U


def test_load_first_too_big(memory):
    with pytest.raises(KernelPanic, match="more than a page"):
        PageTable(memory).load_first(bytes(PGSIZE))


def test_unmap_errors(memory):
    table = PageTable(memory)
    with pytest.raises(KernelPanic, match="not aligned"):
        table.unmap(1, 1, False)
    with pytest.raises(KernelPanic, match="uvmunmap: walk"):
        table.unmap(0, 1, False)
    table.grow(0, PGSIZE, PTE_W)
    with pytest.raises(KernelPanic, match="not mapped"):
        table.unmap(PGSIZE, 1, False)


def test_unmap_without_free_keeps_page(memory):
    table = PageTable(memory)
    page = memory.alloc()
    table.mappages(0, PGSIZE, page, PTE_R | PTE_U)
    before = memory.free_pages()
    table.unmap(0, 1, False)
    assert memory.free_pages() == before
    assert table.walkaddr(0) is None


def test_free_with_leaf_panics(memory):
    table = PageTable(memory)
    table.mappages(0, PGSIZE, memory.alloc(), PTE_R | PTE_U)
    with pytest.raises(KernelPanic, match="freewalk: leaf"):
        table.free(0)


def test_kvmmake_direct_maps_kernel():
    memory = PhysicalMemory(PHYSTOP - 256 * PGSIZE, PHYSTOP)
    etext = KERNBASE + 16 * PGSIZE
    trampoline = KERNBASE + 3 * PGSIZE
    table = kvmmake(memory, etext, trampoline)
    assert pte2pa(table.pte(UART0)) == UART0
    assert pte_flags(table.pte(UART0)) == PTE_V | PTE_R | PTE_W
    assert pte_flags(table.pte(KERNBASE)) == PTE_V | PTE_R | PTE_X
    assert pte2pa(table.pte(etext)) == etext
    assert pte_flags(table.pte(PHYSTOP - PGSIZE)) == PTE_V | PTE_R | PTE_W
    assert pte2pa(table.pte(TRAMPOLINE)) == trampoline
    assert table.walkaddr(KERNBASE) is None


def test_kvmmake_out_of_memory_panics():
    memory = PhysicalMemory(PHYSTOP - 4 * PGSIZE, PHYSTOP)
    with pytest.raises(KernelPanic, match="kvmmap"):
        kvmmake(memory, KERNBASE + 16 * PGSIZE, KERNBASE)