"""Remote object storage adapter with checksum-verified transfers."""

__version__ = "0.1.0"
