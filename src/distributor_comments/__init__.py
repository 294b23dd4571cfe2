"""Comment synchronization between a distribution hub and its destinations."""

__version__ = "1.0.0"
