import io
import struct

import pytest

from xvsim.coreutils import DIRSIZ, FileType
from xvsim.mkfs import (
    FSMAGIC,
    ROOTINO,
    Dinode,
    FsGeometry,
    ImageBuilder,
    build_image,
    main,
    short_name,
)


def new_builder():
    stream = io.BytesIO()
    return stream, ImageBuilder(stream, FsGeometry())


def read_block(stream, g, b):
    return stream.getvalue()[b * g.block_size:(b + 1) * g.block_size]


def file_bytes(stream, builder, inum):
    g = builder.geometry
    din = builder.read_inode(inum)
    nblocks = -(-din.size // g.block_size)
    addrs = list(din.addrs[:g.ndirect])
    if nblocks > g.ndirect:
        addrs += struct.unpack(f"<{g.nindirect}I", read_block(stream, g, din.addrs[g.ndirect]))
    data = b"".join(read_block(stream, g, a) for a in addrs[:nblocks])
    return data[:din.size]


def dirents(stream, builder, inum):
    g = builder.geometry
    data = file_bytes(stream, builder, inum)
    out = []
    for off in range(0, len(data), g.dirent_size):
        num, name = struct.unpack_from(f"<H{g.dirsiz}s", data, off)
        if num:
            out.append((num, name.rstrip(b"\0").decode()))
    return out


def test_geometry_layout_invariants():
    g = FsGeometry()
    assert g.nmeta == 2 + g.nlog + g.ninodeblocks + g.nbitmap
    assert g.nblocks == g.size - g.nmeta
    assert g.bmapstart == g.inodestart + g.ninodeblocks
    assert g.block_size % g.dinode_size == 0
    assert g.dirsiz == 14


def test_geometry_rejects_misaligned_block_size():
    with pytest.raises(ValueError):
        FsGeometry(block_size=1000)


def test_image_size_and_superblock():
    stream, builder = new_builder()
    g = builder.geometry
    assert len(stream.getvalue()) == g.size * g.block_size
    fields = struct.unpack_from("<8I", read_block(stream, g, 1))
    assert fields == (FSMAGIC, g.size, g.nblocks, g.ninodes, g.nlog,
                      g.logstart, g.inodestart, g.bmapstart)


def test_root_directory():
    stream, builder = new_builder()
    assert builder.root == ROOTINO
    din = builder.read_inode(ROOTINO)
    assert din.type == FileType.DIR
    assert din.nlink == 1
    assert dirents(stream, builder, ROOTINO) == [(ROOTINO, "."), (ROOTINO, "..")]


def test_add_file_round_trip():
    stream, builder = new_builder()
    data = b"hello, file system\n" * 100
    inum = builder.add_file("README", data)
    assert inum == ROOTINO + 1
    assert builder.read_inode(inum).type == FileType.FILE
    assert file_bytes(stream, builder, inum) == data
    assert (inum, "README") in dirents(stream, builder, ROOTINO)


def test_inodes_are_consecutive():
    _, builder = new_builder()
    first = builder.add_file("a", b"x")
    second = builder.add_file("b", b"y")
    assert second == first + 1


def test_large_file_uses_indirect_block():
    stream, builder = new_builder()
    g = builder.geometry
    data = bytes(range(256)) * (g.block_size // 256) * (g.ndirect + 3) + b"tail"
    inum = builder.add_file("big", data)
    din = builder.read_inode(inum)
    assert din.size == len(data)
    assert din.addrs[g.ndirect] >= g.nmeta
    assert file_bytes(stream, builder, inum) == data


def test_file_too_large():
    _, builder = new_builder()
    g = builder.geometry
    with pytest.raises(ValueError):
        builder.add_file("huge", bytes(g.maxfile * g.block_size + 1))


def test_long_name_truncated():
    stream, builder = new_builder()
    name = "abcdefghijklmnopqrstu"
    inum = builder.add_file(name, b"z")
    assert (inum, name[:DIRSIZ]) in dirents(stream, builder, ROOTINO)


def test_finish_rounds_root_and_writes_bitmap():
    stream, builder = new_builder()
    g = builder.geometry
    builder.add_file("a", b"data")
    builder.finish()
    din = builder.read_inode(ROOTINO)
    assert din.size % g.block_size == 0
    assert din.size > 3 * g.dirent_size
    bitmap = read_block(stream, g, g.bmapstart)
    used = builder.freeblock
    assert all(bitmap[i // 8] >> (i % 8) & 1 for i in range(used))
    assert not bitmap[used // 8] >> (used % 8) & 1


def test_balloc_limit():
    _, builder = new_builder()
    with pytest.raises(ValueError):
        builder.balloc(builder.geometry.block_size * 8)


def test_dinode_round_trip():
    g = FsGeometry()
    inode = Dinode(type=2, major=0, minor=0, nlink=1, size=77, addrs=list(range(g.ndirect + 1)))
    packed = inode.pack()
    assert len(packed) == g.dinode_size
    assert Dinode.unpack(packed, g.ndirect) == inode


def test_write_inode_round_trip():
    _, builder = new_builder()
    g = builder.geometry
    inode = Dinode(type=3, major=1, minor=2, nlink=1, size=0, addrs=[0] * (g.ndirect + 1))
    builder.write_inode(7, inode)
    assert builder.read_inode(7) == inode


@pytest.mark.parametrize("path, expected", [
    ("user/_cat", "cat"),
    ("user/sh", "sh"),
    ("README", "README"),
    ("_ls", "ls"),
])
def test_short_name(path, expected):
    assert short_name(path) == expected


def test_short_name_rejects_subdirectory():
    with pytest.raises(ValueError):
        short_name("user/a/b")


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_missing_input(tmp_path, capsys):
    image = tmp_path / "fs.img"
    assert main([str(image), str(tmp_path / "absent")]) == 1
    assert "absent" in capsys.readouterr().err