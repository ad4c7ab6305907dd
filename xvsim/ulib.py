"""C string helpers as used by the user programs."""


def _int32(value):
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _cstr(s):
    if isinstance(s, str):
        s = s.encode("utf-8")
    s = bytes(s)
    nul = s.find(b"\0")
    return s if nul < 0 else s[:nul]


def atoi(s):
    """Value of the leading decimal digits of ``s``; no sign, no blanks."""
    n = 0
    for ch in s:
        if not "0" <= ch <= "9":
            break
        n = n * 10 + ord(ch) - ord("0")
    return _int32(n)


def strcmp(p, q):
    """Compare two NUL-terminated strings as unsigned bytes."""
    p, q = _cstr(p) + b"\0", _cstr(q) + b"\0"
    for a, b in zip(p, q):
        if a != b or a == 0:
            return a - b
    return 0


def memcmp(a, b, n):
    """Compare the first ``n`` bytes of ``a`` and ``b`` as unsigned bytes."""
    a, b = bytes(a), bytes(b)
    if len(a) < n or len(b) < n:
        raise ValueError("memcmp past the end of a buffer")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def gets(stream, maximum):
    """Read one line of at most ``maximum - 1`` characters from ``stream``.

    The line ends at and includes a newline or carriage return; an
    empty result means end of input.
    """
    out = []
    while len(out) + 1 < maximum:
        c = stream.read(1)
        if not c:
            break
        out.append(c)
        if c in ("\n", "\r"):
            break
    return "".join(out)