"""
Exception types shared across the lap tracking pipeline.

Decode problems are not exceptions: the decoder returns DecodeFailure values.
"""


class LapStoreError(Exception):
    """Raised when the lap store cannot complete a query or write."""


class ListenerFault(Exception):
    """Transport-level failure of the UDP listener (bind or receive)."""
