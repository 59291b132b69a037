"""
The response catalog: the script expanded into the exact sequence of
responses the server will hand out, one per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Tuple

from .exceptions import ConfigurationError
from .headers import HeaderSet, HeaderValues, compose

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptedResponse:
    """A fully resolved response, shared read-only by the request that gets it."""

    status_code: int
    body: bytes = b""
    headers: HeaderSet = field(default_factory=HeaderSet)


@dataclass(frozen=True)
class ScriptEntry:
    """One line of the script, before repeat expansion and header resolution."""

    status_code: int
    body: bytes = b""
    headers: HeaderSet = field(default_factory=HeaderSet)
    repeat: int = 1


def build_catalog(
    entries: Iterable[ScriptEntry],
    global_headers: Optional[Mapping[str, HeaderValues]] = None,
) -> Tuple[ScriptedResponse, ...]:
    """
    Expand a script into the immutable catalog of responses.

    Each entry's headers are composed over `global_headers` and the resolved
    response is repeated `entry.repeat` times, in script order. Repeats of
    one entry share the same ScriptedResponse object.

    Args:
        entries: Script entries in serving order
        global_headers: Headers applied to every response unless overridden

    Returns:
        Tuple of ScriptedResponse

    Raises:
        ConfigurationError: If the expanded catalog is empty
    """
    base = HeaderSet(global_headers)
    catalog = []
    for entry in entries:
        response = ScriptedResponse(
            status_code=entry.status_code,
            body=bytes(entry.body),
            headers=compose(base, entry.headers),
        )
        catalog.extend([response] * entry.repeat)

    if not catalog:
        raise ConfigurationError("the script does not contain any response")

    logger.debug("Built catalog of %d responses", len(catalog))
    return tuple(catalog)
