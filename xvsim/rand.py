"""Park-Miller "minimal standard" pseudo-random numbers."""

_ULONG = (1 << 64) - 1


def do_rand(ctx):
    """Advance the generator state ``ctx`` and return the new state.

    Results lie in ``[0, 0x7ffffffd]``.
    """
    x = (ctx & _ULONG) % 0x7FFFFFFE + 1
    hi, lo = divmod(x, 127773)
    x = 16807 * lo - 2836 * hi
    if x < 0:
        x += 0x7FFFFFFF
    return x - 1


class ParkMiller:
    """A stateful generator built on :func:`do_rand`."""

    def __init__(self, seed=1):
        self.state = seed & _ULONG

    def next(self):
        """Return the next value."""
        self.state = do_rand(self.state)
        return self.state

    def __iter__(self):
        while True:
            yield self.next()