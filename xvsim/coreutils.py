"""Small file utilities: cat, echo, wc, mkdir, rm, ln, kill and ls."""

import enum
import os
import signal
import stat as _stat
import sys

from .ulib import atoi

DIRSIZ = 14
_CHUNK = 512
_LS_BUFSIZE = 512
_WHITESPACE = frozenset(b" \r\t\n\v\0")


class FileType(enum.IntEnum):
    """Kinds of file that ls reports."""

    DIR = 1
    FILE = 2
    DEVICE = 3


class _StreamError(OSError):
    pass


def cat(stream, out):
    """Copy a binary stream to a binary output."""
    while True:
        try:
            chunk = stream.read(_CHUNK)
        except OSError as exc:
            raise _StreamError("read error") from exc
        if not chunk:
            return
        try:
            written = out.write(chunk)
        except OSError as exc:
            raise _StreamError("write error") from exc
        if written is not None and written != len(chunk):
            raise _StreamError("write error")


def echo(args):
    """The text echo prints for ``args``."""
    return " ".join(args) + "\n" if args else ""


def wc(stream):
    """Count ``(lines, words, bytes)`` in a binary stream."""
    lines = words = chars = 0
    inword = False
    while chunk := stream.read(_CHUNK):
        for byte in chunk:
            chars += 1
            if byte == 0x0A:
                lines += 1
            if byte in _WHITESPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return lines, words, chars


def fmtname(path):
    """Last component of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    return name if len(name) >= DIRSIZ else name.ljust(DIRSIZ)


def _stat_of(path):
    st = os.stat(path)
    if _stat.S_ISDIR(st.st_mode):
        kind = FileType.DIR
    elif _stat.S_ISREG(st.st_mode):
        kind = FileType.FILE
    else:
        kind = FileType.DEVICE
    return kind, st.st_ino, st.st_size


def ls(path, out):
    """List ``path`` to the text stream ``out``; raises OSError if absent."""
    kind, ino, size = _stat_of(path)
    if kind != FileType.DIR:
        out.write(f"{fmtname(path)} {int(kind)} {ino} {size}\n")
        return
    if len(path) + 1 + DIRSIZ + 1 > _LS_BUFSIZE:
        out.write("ls: path too long\n")
        return
    for name in [".", ".."] + sorted(os.listdir(path)):
        full = f"{path}/{name}"
        try:
            kind, ino, size = _stat_of(full)
        except OSError:
            out.write(f"ls: cannot stat {full}\n")
            continue
        out.write(f"{fmtname(full)} {int(kind)} {ino} {size}\n")


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def cat_main(argv=None):
    """Entry point of cat; returns the exit status."""
    args = _args(argv)
    out = sys.stdout.buffer
    try:
        if not args:
            cat(sys.stdin.buffer, out)
            return 0
        for path in args:
            try:
                stream = open(path, "rb")
            except OSError:
                sys.stderr.write(f"cat: cannot open {path}\n")
                return 1
            with stream:
                cat(stream, out)
    except _StreamError as exc:
        sys.stderr.write(f"cat: {exc}\n")
        return 1
    finally:
        out.flush()
    return 0


def echo_main(argv=None):
    """Entry point of echo."""
    sys.stdout.write(echo(_args(argv)))
    return 0


def wc_main(argv=None):
    """Entry point of wc; returns the exit status."""
    args = _args(argv)
    targets = args or [None]
    for path in targets:
        if path is None:
            counts, name = wc(sys.stdin.buffer), ""
        else:
            try:
                stream = open(path, "rb")
            except OSError:
                sys.stdout.write(f"wc: cannot open {path}\n")
                return 1
            with stream:
                try:
                    counts = wc(stream)
                except OSError:
                    sys.stdout.write("wc: read error\n")
                    return 1
            name = path
        lines, words, chars = counts
        sys.stdout.write(f"{lines} {words} {chars} {name}\n")
    return 0


def mkdir_main(argv=None):
    """Entry point of mkdir; stops at the first failure."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: mkdir files...\n")
        return 1
    for path in args:
        try:
            os.mkdir(path)
        except OSError:
            sys.stderr.write(f"mkdir: {path} failed to create\n")
            break
    return 0


def rm_main(argv=None):
    """Entry point of rm; removes files and empty directories."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: rm files...\n")
        return 1
    for path in args:
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                os.rmdir(path)
            else:
                os.unlink(path)
        except OSError:
            sys.stderr.write(f"rm: {path} failed to delete\n")
            break
    return 0


def ln_main(argv=None):
    """Entry point of ln: make a hard link."""
    args = _args(argv)
    if len(args) != 2:
        sys.stderr.write("Usage: ln old new\n")
        return 1
    old, new = args
    try:
        os.link(old, new)
    except OSError:
        sys.stderr.write(f"link {old} {new}: failed\n")
    return 0


def kill_main(argv=None):
    """Entry point of kill; pids that do not exist are ignored."""
    args = _args(argv)
    if not args:
        sys.stderr.write("usage: kill pid...\n")
        return 1
    sig = getattr(signal, "SIGKILL", signal.SIGTERM)
    for arg in args:
        pid = atoi(arg)
        if pid < 1:
            continue
        try:
            os.kill(pid, sig)
        except OSError:
            pass
    return 0


def ls_main(argv=None):
    """Entry point of ls."""
    args = _args(argv) or ["."]
    for path in args:
        try:
            ls(path, sys.stdout)
        except OSError:
            sys.stderr.write(f"ls: cannot open {path}\n")
    return 0