"""Raw reachability flags reported by the OS reachability facility."""

from enum import IntFlag


class ReachabilityFlags(IntFlag):
    """Snapshot of how a target can be reached.

    Bit positions follow the SystemConfiguration reachability layout so values
    captured on other platforms can be replayed unchanged.
    """

    NONE = 0
    TRANSIENT_CONNECTION = 1 << 0
    REACHABLE = 1 << 1
    CONNECTION_REQUIRED = 1 << 2
    CONNECTION_ON_TRAFFIC = 1 << 3
    INTERVENTION_REQUIRED = 1 << 4
    CONNECTION_ON_DEMAND = 1 << 5
    IS_LOCAL_ADDRESS = 1 << 16
    IS_DIRECT = 1 << 17
    IS_CELLULAR = 1 << 18


# (flag, character) pairs in display order
_FLAG_CHARS = (
    (ReachabilityFlags.IS_CELLULAR, "W"),
    (ReachabilityFlags.REACHABLE, "R"),
    (ReachabilityFlags.TRANSIENT_CONNECTION, "t"),
    (ReachabilityFlags.CONNECTION_REQUIRED, "c"),
    (ReachabilityFlags.CONNECTION_ON_TRAFFIC, "C"),
    (ReachabilityFlags.INTERVENTION_REQUIRED, "i"),
    (ReachabilityFlags.CONNECTION_ON_DEMAND, "D"),
    (ReachabilityFlags.IS_LOCAL_ADDRESS, "l"),
    (ReachabilityFlags.IS_DIRECT, "d"),
)


def describe_flags(flags: ReachabilityFlags) -> str:
    """Render flags in the compact form used in log messages.

    Args:
        flags: Flags to render

    Returns:
        String such as ``"-R -------"`` with one column per flag
    """
    chars = [char if flags & flag else "-" for flag, char in _FLAG_CHARS]
    return f"{chars[0]}{chars[1]} {''.join(chars[2:])}"
