"""Pytest configuration and fixtures for E2E tests."""
import sys
from pathlib import Path

import pytest

# Add helpers to path
sys.path.insert(0, str(Path(__file__).parent / "helpers"))

from seqhttp.server import request_logger


@pytest.fixture
def serve():
    """
    Start scripted servers on ephemeral ports.

    Every server started through the fixture is stopped at teardown, even
    when a test fails before consuming its whole script.

    Yields:
        Callable taking (entries, headers=None, server_class=...) and
        returning a RunningServer
    """
    from scripted_server import serve_script

    started = []

    def _serve(entries, headers=None, **kwargs):
        running = serve_script(entries, headers, **kwargs)
        started.append(running)
        return running

    yield _serve

    for running in started:
        running.stop()


@pytest.fixture(autouse=True)
def restore_request_logger():
    """Undo the CLI's request logger setup so caplog keeps working."""
    handlers = list(request_logger.handlers)
    propagate = request_logger.propagate
    level = request_logger.level
    yield
    request_logger.handlers[:] = handlers
    request_logger.propagate = propagate
    request_logger.setLevel(level)
