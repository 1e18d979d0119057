"""devsweep: inventory and reversibly clean development-tool caches."""

__version__ = "0.1.0"
