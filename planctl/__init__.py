"""planctl - plan driven cluster lifecycle CLI."""

__version__ = '0.1.0'
