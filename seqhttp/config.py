"""
Command-line configuration.

The command line is a list of global options followed by one or more
response groups, each `<status> <body>` followed by that response's own
options. Parsing stops at the first positional argument of each section,
so a response's options end where the next `<status>` begins.
"""

from __future__ import annotations

import argparse
import os
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .catalog import ScriptEntry
from .exceptions import ConfigurationError, HelpRequested
from .headers import HeaderSet, parse_header_lines

DEFAULT_PORT = 8080

USAGE = """\
Usage: {prog} [GLOBAL OPTIONS] <status> <body> [RESPONSE OPTIONS] [<status> <body> [RESPONSE OPTIONS]]...
GLOBAL OPTIONS:
  -b, --bind <address>   Address to listen on (default: all interfaces)
  -c, --cert <cert file> Certificate file
  -H, --header <header>  Add header to all responses
  -k, --key <key file>   Private key file
  -p, --port <port>      Port to listen (default: {port})
  -q, --quiet            Do not dump incoming requests
RESPONSE OPTIONS:
  -H, --header <header>  Add header to the response
  -r, --repeat <positive num> Repeat the response
      --body-file        Treat <body> as a file path and read body from it
      --trim-newline     Remove all leading and trailing newlines from body
ENVIRONMENT:
  SEQHTTP_DEBUG=1        Enable debug logging
"""


def usage(prog: str = "seqhttp") -> str:
    return USAGE.format(prog=prog, port=DEFAULT_PORT)


def debug_enabled() -> bool:
    return os.getenv("SEQHTTP_DEBUG", "").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class TLSConfig:
    cert_file: str
    key_file: str

    def context(self) -> ssl.SSLContext:
        """Build a server-side SSL context with the certificate chain loaded."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_cert_chain(self.cert_file, self.key_file)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(f"failed to load certificate {self.cert_file!r}: {e}") from e
        return context


@dataclass(frozen=True)
class ResponseConfig:
    status_code: int
    body: bytes
    headers: HeaderSet = field(default_factory=HeaderSet)
    repeat: int = 1

    def entry(self) -> ScriptEntry:
        return ScriptEntry(self.status_code, self.body, self.headers, self.repeat)


@dataclass
class ServerConfig:
    host: str = ""
    port: int = DEFAULT_PORT
    headers: HeaderSet = field(default_factory=HeaderSet)
    responses: List[ResponseConfig] = field(default_factory=list)
    tls: Optional[TLSConfig] = None
    quiet: bool = False

    @property
    def address(self) -> Tuple[str, int]:
        return self.host, self.port

    def script(self) -> List[ScriptEntry]:
        return [response.entry() for response in self.responses]


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of printing and exiting."""

    def __init__(self, **kwargs):
        super().__init__(add_help=False, allow_abbrev=False, **kwargs)
        self.add_argument("-h", "--help", action="store_true")

    def error(self, message):
        raise ConfigurationError(message)

    def parse(self, args: Sequence[str]) -> argparse.Namespace:
        ns = self.parse_args(list(args))
        if ns.help:
            raise HelpRequested()
        return ns


def _global_parser() -> _ArgumentParser:
    p = _ArgumentParser(prog="seqhttp")
    p.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    p.add_argument("-b", "--bind", default="")
    p.add_argument("-H", "--header", dest="headers", action="append", default=[])
    p.add_argument("-c", "--cert", default="")
    p.add_argument("-k", "--key", default="")
    p.add_argument("-q", "--quiet", action="store_true")
    p.add_argument("rest", nargs=argparse.REMAINDER)
    return p


def _response_parser() -> _ArgumentParser:
    p = _ArgumentParser(prog="seqhttp")
    p.add_argument("-r", "--repeat", type=int, default=1)
    p.add_argument("-H", "--header", dest="headers", action="append", default=[])
    p.add_argument("--body-file", action="store_true")
    p.add_argument("--trim-newline", action="store_true")
    p.add_argument("rest", nargs=argparse.REMAINDER)
    return p


def _parse_status(arg: str) -> int:
    try:
        status = int(arg)
    except ValueError:
        raise ConfigurationError(f"invalid status code {arg!r}") from None
    if not 100 <= status <= 999:
        raise ConfigurationError(f"status code must be between 100 and 999, got {status}")
    return status


def _load_body(arg: str, from_file: bool) -> bytes:
    if not from_file:
        return arg.encode("utf-8")
    try:
        return Path(arg).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"failed to read body file {arg!r}: {e}") from e


def parse_responses(args: Sequence[str]) -> List[ResponseConfig]:
    """
    Parse `<status> <body> [options]` groups until the arguments run out.

    Raises:
        ConfigurationError: On a missing status or body, or an invalid option
        HelpRequested: If -h/--help is among a response's options
    """
    if len(args) < 2:
        raise ConfigurationError("status code and body are required")

    responses = []
    rest = list(args)
    while rest:
        if len(rest) < 2:
            raise ConfigurationError("status code and body are required")
        status = _parse_status(rest[0])
        body_arg = rest[1]

        ns = _response_parser().parse(rest[2:])
        if ns.repeat <= 0:
            raise ConfigurationError("repeat must be positive")

        body = _load_body(body_arg, ns.body_file)
        if ns.trim_newline:
            body = body.strip(b"\n")

        responses.append(
            ResponseConfig(
                status_code=status,
                body=body,
                headers=parse_header_lines(ns.headers),
                repeat=ns.repeat,
            )
        )
        rest = ns.rest
    return responses


def parse_args(args: Sequence[str]) -> ServerConfig:
    """
    Turn a command line (without the program name) into a ServerConfig.

    Raises:
        ConfigurationError: If the command line is invalid
        HelpRequested: If -h/--help appears anywhere
    """
    ns = _global_parser().parse(args)

    if not 0 <= ns.port <= 65535:
        raise ConfigurationError(f"port must be between 0 and 65535, got {ns.port}")

    tls = None
    if ns.cert and ns.key:
        tls = TLSConfig(cert_file=ns.cert, key_file=ns.key)
    elif ns.cert:
        raise ConfigurationError("key option is not set")
    elif ns.key:
        raise ConfigurationError("cert option is not set")

    headers = parse_header_lines(ns.headers)

    return ServerConfig(
        host=ns.bind,
        port=ns.port,
        headers=headers,
        responses=parse_responses(ns.rest),
        tls=tls,
        quiet=ns.quiet,
    )
