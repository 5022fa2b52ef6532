"""Registry Sync - batch synchronization of Ukrainian business registry dumps."""

__version__ = "0.1.0"
