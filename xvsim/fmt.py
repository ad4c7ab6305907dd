"""A small printf: %d, %l, %x, %p, %s, %c and %%."""

_DIGITS = "0123456789ABCDEF"


def _int32(value):
    value = int(value) & 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _printint(value, base, signed):
    value = _int32(value)
    negative = signed and value < 0
    x = -value if negative else value & 0xFFFFFFFF
    digits = []
    while True:
        x, d = divmod(x, base)
        digits.append(_DIGITS[d])
        if x == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def _printptr(value):
    return f"0x{int(value) & 0xFFFFFFFFFFFFFFFF:016X}"


def format(fmt, *args):
    """Render ``fmt`` with ``args`` and return the resulting text.

    Integers are taken as 32-bit C ints; an unknown directive is
    printed as-is.
    """
    remaining = iter(args)

    def take(directive):
        try:
            return next(remaining)
        except StopIteration:
            raise TypeError(f"not enough arguments for %{directive}") from None

    out = []
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(_printint(take(c), 10, True))
        elif c == "l":
            out.append(_printint(take(c), 10, False))
        elif c == "x":
            out.append(_printint(take(c), 16, False))
        elif c == "p":
            out.append(_printptr(take(c)))
        elif c == "s":
            s = take(c)
            s = "(null)" if s is None else str(s)
            out.append(s.split("\0", 1)[0])
        elif c == "c":
            out.append(chr(int(take(c)) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream, fmt, *args):
    """Write ``format(fmt, *args)`` to a text stream."""
    stream.write(format(fmt, *args))