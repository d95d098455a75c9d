"""reelforge: lifecycle management for long-running video generation operations."""

__version__ = "0.1.0"
