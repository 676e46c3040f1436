"""Two-tier key-value cache with a bounded fast tier and an overflow store."""

__version__ = "0.1.0"
