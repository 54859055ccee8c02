"""Logging helpers for stream routing."""

from cloudproxy.logging.formatters import StreamFormatter, StreamRoutingFilter

__all__ = ["StreamFormatter", "StreamRoutingFilter"]
