"""TalkParity: per-speaker speaking-time statistics from recorded conversations."""

__version__ = "0.1.0"
