from enum import Enum


class Direction(str, Enum):
    """Which side of a transfer the queried wallet sits on."""

    INCOMING = "incoming"  # wallet is receiver
    OUTGOING = "outgoing"  # wallet is sender
