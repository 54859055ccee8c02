"""cloudproxy - SOCKS proxies through ephemeral cloud instances."""

__version__ = "1.3.0"
