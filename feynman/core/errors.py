"""Error taxonomy shared by the protocol client and the session machines.

Usage errors (sending while the connection is not open, connecting twice,
submitting while the agent is busy) are not exceptions: those operations
return ``False`` and log a warning instead.
"""
from typing import Optional


class FeynmanError(Exception):
    """Base class for every error raised by the feynman package."""


class TransportError(FeynmanError):
    """Connection-level failure (refused, reset, timed out)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class DecodeError(FeynmanError):
    """An inbound frame could not be parsed into a protocol message."""

    def __init__(self, message: str, frame: str = ""):
        super().__init__(message)
        self.frame = frame


class ApplicationError(FeynmanError):
    """The agent reported a semantic failure through an ``error`` frame."""
