"""
Header sets and the header composition rule.

A HeaderSet is an immutable, case-insensitive, multi-valued mapping that
keeps insertion order. Response headers are resolved once at startup by
composing the global header set with each response's own headers, where the
per-response values replace (never extend) same-named global ones.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from .exceptions import HeaderParseError

# RFC 7230 token characters allowed in a field name.
_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~"
    "0123456789"
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
)

HeaderValues = Union[str, Sequence[str]]


def canonical_name(name: str) -> str:
    """
    Canonicalise a header name the MIME way.

    The first letter and every letter following a hyphen are upper-cased,
    the rest lower-cased: "content-type" becomes "Content-Type".
    """
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


class HeaderSet(Mapping[str, Tuple[str, ...]]):
    """Immutable multi-valued header mapping with case-insensitive keys."""

    __slots__ = ("_entries",)

    def __init__(self, headers: Union[Mapping[str, HeaderValues], Iterable[Tuple[str, str]], None] = None):
        # lower-cased name -> (first-seen spelling, values)
        entries: Dict[str, Tuple[str, Tuple[str, ...]]] = {}
        if headers is not None:
            if isinstance(headers, Mapping):
                for name, values in headers.items():
                    if isinstance(values, str):
                        values = (values,)
                    _merge(entries, name, tuple(values))
            else:
                for name, value in headers:
                    _merge(entries, name, (value,))
        self._entries = entries

    def __getitem__(self, name: str) -> Tuple[str, ...]:
        return self._entries[name.lower()][1]

    def __iter__(self) -> Iterator[str]:
        return (spelling for spelling, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        if not isinstance(other, HeaderSet):
            other = HeaderSet(other)
        if len(self) != len(other):
            return False
        return all(name in other and other[name] == values for name, values in self.items())

    def __hash__(self) -> int:
        return hash(frozenset((key, values) for key, (_, values) in self._entries.items()))

    def __repr__(self) -> str:
        return f"HeaderSet({dict(self.items())!r})"

    def first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value for `name`, or `default` if it is absent."""
        values = self.get(name)
        return values[0] if values else default

    def pairs(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) for every value, in insertion order."""
        for name, values in self.items():
            for value in values:
                yield name, value


def _merge(entries: Dict[str, Tuple[str, Tuple[str, ...]]], name: str, values: Tuple[str, ...]) -> None:
    key = name.lower()
    if key in entries:
        spelling, existing = entries[key]
        entries[key] = (spelling, existing + values)
    else:
        entries[key] = (name, values)


def compose(base: Mapping[str, HeaderValues], override: Mapping[str, HeaderValues]) -> HeaderSet:
    """
    Resolve a response's headers against a base (global) header set.

    Every name present in `override` replaces the values of the same name
    (matched case-insensitively) in `base`, keeping the position the name
    had in `base`. Names only in `base` are carried through, names only in
    `override` are appended. Neither input is modified.

    Args:
        base: Global headers applied to every response
        override: Headers of one scripted response

    Returns:
        A new HeaderSet
    """
    base = base if isinstance(base, HeaderSet) else HeaderSet(base)
    override = override if isinstance(override, HeaderSet) else HeaderSet(override)

    resolved: Dict[str, Tuple[str, ...]] = {}
    for name, values in base.items():
        resolved[name] = override[name] if name in override else values
    for name, values in override.items():
        if name not in base:
            resolved[name] = values
    return HeaderSet(resolved)


def parse_header_line(line: str) -> Tuple[str, str]:
    """Split one 'Name: value' line into a canonical name and a trimmed value."""
    if "\r" in line or "\n" in line:
        raise HeaderParseError(line, "line breaks are not allowed")
    name, sep, value = line.partition(":")
    if not sep:
        raise HeaderParseError(line, "missing ':'")
    if not name:
        raise HeaderParseError(line, "empty header name")
    bad = [ch for ch in name if ch not in _TOKEN_CHARS]
    if bad:
        raise HeaderParseError(line, f"invalid character {bad[0]!r} in header name")
    return canonical_name(name), value.strip(" \t")


def parse_header_lines(lines: Iterable[str]) -> HeaderSet:
    """
    Parse 'Name: value' lines into a HeaderSet.

    Repeated names accumulate their values in order. Empty lines carry no
    header and are skipped.

    Raises:
        HeaderParseError: If any line is malformed
    """
    return HeaderSet([parse_header_line(line) for line in lines if line])
