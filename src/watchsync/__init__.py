"""watchsync - mirror a local directory to a remote host on every change."""

__version__ = "0.3.0"
