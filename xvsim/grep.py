"""Line filter with a tiny regular expression language: ^ . * $."""

import sys

_BUFSIZE = 1024


def match(re, text):
    """True if ``re`` matches anywhere in ``text``."""
    if re.startswith("^"):
        return _matchhere(re, 1, text, 0)
    return any(_matchhere(re, 0, text, i) for i in range(len(text) + 1))


def _matchhere(re, ri, text, ti):
    if ri == len(re):
        return True
    if ri + 1 < len(re) and re[ri + 1] == "*":
        return _matchstar(re[ri], re, ri + 2, text, ti)
    if re[ri] == "$" and ri + 1 == len(re):
        return ti == len(text)
    if ti < len(text) and re[ri] in (".", text[ti]):
        return _matchhere(re, ri + 1, text, ti + 1)
    return False


def _matchstar(c, re, ri, text, ti):
    while True:
        if _matchhere(re, ri, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
        else:
            return False


def grep(pattern, stream, out):
    """Write the newline-terminated lines of ``stream`` that match.

    An unterminated final line is ignored, and reading stops at a line
    too long for the line buffer.
    """
    for line in stream:
        if not line.endswith("\n") or len(line) > _BUFSIZE - 1:
            break
        if match(pattern, line[:-1]):
            out.write(line)


def main(argv=None):
    """Command entry point; returns the exit status."""
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = argv[0], argv[1:]
    if not paths:
        grep(pattern, sys.stdin, sys.stdout)
        return 0
    for path in paths:
        try:
            stream = open(path, encoding="utf-8", errors="surrogateescape", newline="\n")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with stream:
            grep(pattern, stream, sys.stdout)
    return 0