"""Command-line entry point: serve a script of responses, then exit."""

import logging
import sys
from typing import List, Optional

from .config import debug_enabled, parse_args, usage
from .exceptions import ConfigurationError, HelpRequested, TransportShutdownError
from .server import ScriptedHTTPServer, request_logger

logger = logging.getLogger("seqhttp")


def configure_logging(quiet: bool = False, debug: bool = False):
    """
    Route lifecycle and error messages to stderr and request dumps to stdout.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    request_logger.propagate = False
    request_logger.handlers.clear()
    if quiet:
        request_logger.addHandler(logging.NullHandler())
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    request_logger.addHandler(handler)
    request_logger.setLevel(logging.INFO)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    try:
        config = parse_args(argv)
    except HelpRequested:
        print(usage(), end="")
        return 0
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        print(usage(), end="", file=sys.stderr)
        return 1

    configure_logging(quiet=config.quiet, debug=debug_enabled())

    try:
        server = ScriptedHTTPServer.from_config(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Failed to listen on {config.host or '*'}:{config.port}: {e}")
        return 1

    logger.info(f"Serving {len(server.dispenser)} responses on {server.url}")
    try:
        server.serve_until_exhausted()
    except KeyboardInterrupt:
        logger.info("Interrupted, closing server")
        server.close()
        return 130
    except TransportShutdownError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
