"""flock: distributed compilation for multi-file Swift modules."""

__version__ = "0.1.0"
