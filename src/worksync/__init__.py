"""WorkSync: task assignment with a local cache mirrored to a remote document store."""

__version__ = "0.1.0"
