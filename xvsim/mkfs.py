"""Build a file-system image holding a root directory and some files."""

import struct
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .coreutils import DIRSIZ, FileType

ROOTINO = 1
FSMAGIC = 0x10203040

_SUPERBLOCK = struct.Struct("<8I")
_DINODE_HEAD = "<hhhhI"


@dataclass(frozen=True)
class FsGeometry:
    """Sizes that fix the on-disk layout.

    Layout: [ boot | super | log | inode blocks | bitmap | data blocks ].
    """

    size: int = 2000
    block_size: int = 1024
    ninodes: int = 200
    nlog: int = 30
    ndirect: int = 12
    dirsiz: int = DIRSIZ
    magic: int = FSMAGIC

    def __post_init__(self):
        if self.block_size % self.dinode_size:
            raise ValueError("block size is not a multiple of the inode size")
        if self.block_size % self.dirent_size:
            raise ValueError("block size is not a multiple of the directory entry size")
        if self.nblocks <= 0:
            raise ValueError("no room for data blocks")

    @property
    def dinode_size(self):
        return struct.calcsize(f"{_DINODE_HEAD}{self.ndirect + 1}I")

    @property
    def dirent_size(self):
        return 2 + self.dirsiz

    @property
    def ipb(self):
        return self.block_size // self.dinode_size

    @property
    def nindirect(self):
        return self.block_size // 4

    @property
    def maxfile(self):
        return self.ndirect + self.nindirect

    @property
    def nbitmap(self):
        return self.size // (self.block_size * 8) + 1

    @property
    def ninodeblocks(self):
        return self.ninodes // self.ipb + 1

    @property
    def logstart(self):
        return 2

    @property
    def inodestart(self):
        return 2 + self.nlog

    @property
    def bmapstart(self):
        return 2 + self.nlog + self.ninodeblocks

    @property
    def nmeta(self):
        return 2 + self.nlog + self.ninodeblocks + self.nbitmap

    @property
    def nblocks(self):
        return self.size - self.nmeta

    def iblock(self, inum):
        """Block that holds inode ``inum``."""
        return inum // self.ipb + self.inodestart

    def superblock(self):
        """The encoded superblock."""
        return _SUPERBLOCK.pack(self.magic, self.size, self.nblocks, self.ninodes,
                                self.nlog, self.logstart, self.inodestart, self.bmapstart)


@dataclass
class Dinode:
    """An on-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list = field(default_factory=list)

    @classmethod
    def unpack(cls, data, ndirect):
        """Decode an inode with ``ndirect`` direct block addresses."""
        values = struct.unpack_from(f"{_DINODE_HEAD}{ndirect + 1}I", data)
        return cls(*values[:5], list(values[5:]))

    def pack(self):
        """Encode the inode."""
        return struct.pack(f"{_DINODE_HEAD}{len(self.addrs)}I", self.type, self.major,
                           self.minor, self.nlink, self.size, *self.addrs)


class ImageBuilder:
    """Writes a fresh image to a seekable binary stream.

    The image is zeroed, given a superblock and a root directory holding
    "." and ".."; files are then added one after another.
    """

    def __init__(self, stream, geometry=None):
        self.stream = stream
        self.geometry = geometry if geometry is not None else FsGeometry()
        g = self.geometry
        self.freeinode = 1
        self.freeblock = g.nmeta
        stream.seek(0)
        stream.write(bytes(g.size * g.block_size))
        self._wsect(1, g.superblock().ljust(g.block_size, b"\0"))
        self.root = self.ialloc(FileType.DIR)
        if self.root != ROOTINO:
            raise RuntimeError("root directory did not get the root inode")
        self.iappend(self.root, self._dirent(".", self.root))
        self.iappend(self.root, self._dirent("..", self.root))

    def _wsect(self, sec, data):
        bs = self.geometry.block_size
        if len(data) != bs:
            raise ValueError("sector write of the wrong size")
        self.stream.seek(sec * bs)
        self.stream.write(bytes(data))

    def _rsect(self, sec):
        bs = self.geometry.block_size
        self.stream.seek(sec * bs)
        data = self.stream.read(bs)
        if len(data) != bs:
            raise OSError(f"read: short read of sector {sec}")
        return data

    def _dirent(self, name, inum):
        return struct.pack(f"<H{self.geometry.dirsiz}s", inum, name.encode("utf-8"))

    def _alloc_block(self):
        if self.freeblock >= self.geometry.size:
            raise ValueError("out of blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def read_inode(self, inum):
        """Read inode ``inum`` from the image."""
        g = self.geometry
        off = (inum % g.ipb) * g.dinode_size
        block = self._rsect(g.iblock(inum))
        return Dinode.unpack(block[off:off + g.dinode_size], g.ndirect)

    def write_inode(self, inum, inode):
        """Store ``inode`` as inode ``inum``."""
        g = self.geometry
        bn = g.iblock(inum)
        off = (inum % g.ipb) * g.dinode_size
        block = bytearray(self._rsect(bn))
        block[off:off + g.dinode_size] = inode.pack()
        self._wsect(bn, block)

    def ialloc(self, type):
        """Allocate the next inode with the given type and return its number."""
        g = self.geometry
        inum = self.freeinode
        if inum // g.ipb >= g.ninodeblocks:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.write_inode(inum, Dinode(type=int(type), nlink=1, size=0,
                                      addrs=[0] * (g.ndirect + 1)))
        return inum

    def iappend(self, inum, data):
        """Append ``data`` to the contents of inode ``inum``."""
        g = self.geometry
        bs, nd = g.block_size, g.ndirect
        din = self.read_inode(inum)
        off = din.size
        data = memoryview(bytes(data))
        pos = 0
        while pos < len(data):
            fbn = off // bs
            if fbn >= g.maxfile:
                raise ValueError("file too large")
            if fbn < nd:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[nd] == 0:
                    din.addrs[nd] = self._alloc_block()
                ind_block = din.addrs[nd]
                fmt = f"<{g.nindirect}I"
                indirect = list(struct.unpack(fmt, self._rsect(ind_block)))
                if indirect[fbn - nd] == 0:
                    indirect[fbn - nd] = self._alloc_block()
                    self._wsect(ind_block, struct.pack(fmt, *indirect))
                x = indirect[fbn - nd]
            n1 = min(len(data) - pos, (fbn + 1) * bs - off)
            start = off - fbn * bs
            buf = bytearray(self._rsect(x))
            buf[start:start + n1] = data[pos:pos + n1]
            self._wsect(x, buf)
            pos += n1
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def add_file(self, name, data):
        """Create a regular file ``name`` in the root directory; return its inode."""
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.root, self._dirent(name, inum))
        self.iappend(inum, data)
        return inum

    def balloc(self, used):
        """Mark the first ``used`` blocks allocated in the bitmap."""
        g = self.geometry
        if used >= g.block_size * 8:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(g.block_size)
        full, rem = divmod(used, 8)
        bitmap[:full] = b"\xff" * full
        if rem:
            bitmap[full] = (1 << rem) - 1
        self._wsect(g.bmapstart, bitmap)

    def finish(self):
        """Round the root directory size up and write the block bitmap."""
        bs = self.geometry.block_size
        din = self.read_inode(self.root)
        din.size = (din.size // bs + 1) * bs
        self.write_inode(self.root, din)
        self.balloc(self.freeblock)


def short_name(path):
    """Name a build file gets in the image: no "user/" prefix, no leading "_"."""
    name = path[5:] if path.startswith("user/") else path
    if "/" in name:
        raise ValueError(f"{path}: file must lie in the current or user/ directory")
    return name[1:] if name.startswith("_") else name


def build_image(path, files, geometry=None):
    """Write an image to ``path`` holding ``files``; return the builder used."""
    with open(path, "w+b") as stream:
        builder = ImageBuilder(stream, geometry)
        for file in files:
            name = short_name(file)
            builder.add_file(name, Path(file).read_bytes())
        builder.finish()
    return builder


def main(argv=None):
    """Command entry point: mkfs fs.img files..."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    g = FsGeometry()
    print(f"nmeta {g.nmeta} (boot, super, log blocks {g.nlog} inode blocks "
          f"{g.ninodeblocks}, bitmap blocks {g.nbitmap}) blocks {g.nblocks} total {g.size}")
    try:
        builder = build_image(args[0], args[1:], g)
    except OSError as exc:
        sys.stderr.write(f"{exc.filename or args[0]}: {exc.strerror or exc}\n")
        return 1
    except ValueError as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {g.bmapstart}")
    return 0