"""Clock factory.

Provides get_clock() / set_clock() so the escrow policy and the sweeper
never read wall time directly:
- SystemClock for running services
- FrozenClock for tests and replaying a sweep "as of" a moment
"""

from escrow.clock.port import Clock, FrozenClock, SystemClock

_current_clock: Clock | None = None


def get_clock() -> Clock:
    """Return the current clock. Defaults to SystemClock."""
    global _current_clock
    if _current_clock is None:
        _current_clock = SystemClock()
    return _current_clock


def set_clock(clock: Clock) -> None:
    """Override the active clock (useful for tests)."""
    global _current_clock
    _current_clock = clock


def reset_clock() -> None:
    """Reset to the system clock."""
    global _current_clock
    _current_clock = None


def now():
    return get_clock().now()


__all__ = ["Clock", "FrozenClock", "SystemClock", "get_clock", "set_clock", "reset_clock", "now"]
