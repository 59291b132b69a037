"""
seqhttp: a scripted HTTP response server.

Serves an ordered script of canned responses, one per incoming request,
and shuts itself down once the last scripted response has gone out.
"""

from .catalog import ScriptedResponse, ScriptEntry, build_catalog
from .dispenser import Dispensed, Dispenser
from .exceptions import (
    ConfigurationError,
    HeaderParseError,
    HelpRequested,
    SeqHTTPError,
    TransportShutdownError,
)
from .headers import HeaderSet, compose, parse_header_lines
from .server import ScriptedHTTPServer, ScriptedRequestHandler
from .shutdown import ShutdownCoordinator

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "Dispensed",
    "Dispenser",
    "HeaderParseError",
    "HeaderSet",
    "HelpRequested",
    "ScriptEntry",
    "ScriptedHTTPServer",
    "ScriptedRequestHandler",
    "ScriptedResponse",
    "SeqHTTPError",
    "ShutdownCoordinator",
    "TransportShutdownError",
    "build_catalog",
    "compose",
    "parse_header_lines",
]
