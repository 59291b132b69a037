"""Exception hierarchy for seqhttp."""


class SeqHTTPError(Exception):
    """Base class for all seqhttp errors."""


class ConfigurationError(SeqHTTPError, ValueError):
    """The script or command line cannot be turned into a runnable server."""


class HeaderParseError(ConfigurationError):
    """A header line is not of the form 'Name: value'."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"malformed header line {line!r}: {reason}")
        self.line = line
        self.reason = reason


class HelpRequested(SeqHTTPError):
    """-h/--help was given somewhere on the command line."""


class TransportShutdownError(SeqHTTPError):
    """The listener failed while shutting down."""
