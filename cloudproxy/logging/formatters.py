"""Logging formatters and filters for stream routing."""

import logging


class StreamFormatter(logging.Formatter):
    """Formatter tagging records that carry a ``stream`` extra.

    Tunnel diagnostics are logged with ``extra={"stream": "stderr"}`` and
    show up as ``[stderr] [<machine>] <line>``.
    """

    PREFIXES = {"stdout": "[stdout] ", "stderr": "[stderr] "}

    def format(self, record: logging.LogRecord) -> str:
        prefix = self.PREFIXES.get(getattr(record, "stream", None), "")
        return prefix + super().format(record)


class StreamRoutingFilter(logging.Filter):
    """Pass only the records that belong on one output stream.

    Records carrying an explicit ``stream`` extra go to that stream. Other
    records go to stdout below WARNING and to stderr from WARNING up.

    Parameters
    ----------
    target : str
        ``"stdout"`` or ``"stderr"``
    """

    def __init__(self, target: str) -> None:
        super().__init__()
        if target not in ("stdout", "stderr"):
            raise ValueError(f"target must be 'stdout' or 'stderr', got '{target}'")
        self.target = target

    def filter(self, record: logging.LogRecord) -> bool:
        stream = getattr(record, "stream", None)
        if stream is None:
            stream = "stderr" if record.levelno >= logging.WARNING else "stdout"
        return stream == self.target
