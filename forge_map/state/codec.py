"""
forge_map/state/codec.py - Compact, reversible URL encoding of an exploration.

Each shareable category (projects, users, groups) becomes one query
parameter whose value is the comma-joined list of forge ids compressed with
lz-string's URI-safe encoding, the format the web front-end reads and
writes. Topics are not part of a shared link.

    decode_state(encode_state(S)) == S   (order preserved)

An empty category decodes back to [].
"""

import logging
import urllib.parse
from dataclasses import dataclass, field
from typing import Mapping

from lzstring import LZString

logger = logging.getLogger(__name__)

TRACKED_CATEGORIES = ("projects", "users", "groups")

_LZ = LZString()


class InvalidStateToken(ValueError):
    """A shared-link parameter could not be decompressed or parsed."""


@dataclass
class ExplorationState:
    """Materialized forge ids per shareable category."""

    projects: list[int] = field(default_factory=list)
    users: list[int] = field(default_factory=list)
    groups: list[int] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.projects or self.users or self.groups)


def compress_text(text: str) -> str:
    """Compress text into an lz-string URI component."""
    return _LZ.compressToEncodedURIComponent(text)


def decompress_text(token: str) -> str:
    """Inverse of compress_text. A blank token decodes to the empty string."""
    if not token:
        return ""
    try:
        text = _LZ.decompressFromEncodedURIComponent(token)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise InvalidStateToken(f"Cannot decompress state token {token!r}: {exc!r}") from exc
    if text is None:
        raise InvalidStateToken(f"Cannot decompress state token {token!r}")
    return text


def _split_ids(text: str) -> list[int]:
    if text == "":
        return []
    try:
        return [int(piece) for piece in text.split(",")]
    except ValueError as exc:
        raise InvalidStateToken(f"Non-numeric id in state list {text!r}") from exc


def encode_state(state: ExplorationState) -> dict[str, str]:
    """One compressed query-parameter value per tracked category."""
    return {
        name: compress_text(",".join(str(int(i)) for i in getattr(state, name)))
        for name in TRACKED_CATEGORIES
    }


def decode_state(params: Mapping[str, str]) -> ExplorationState:
    """Rebuild an ExplorationState from query parameters.

    Missing categories decode as empty; unknown parameters are ignored.
    """
    state = ExplorationState()
    for name in TRACKED_CATEGORIES:
        if name in params:
            setattr(state, name, _split_ids(decompress_text(params[name])))
    return state


def build_share_url(base_url: str, state: ExplorationState, route: str = "favoris") -> str:
    """Full shareable URL: <base_url>/<route>?projects=..&users=..&groups=.."""
    query = urllib.parse.urlencode(encode_state(state))
    return f"{base_url.rstrip('/')}/{route.strip('/')}?{query}"


def parse_share_url(url: str) -> ExplorationState:
    """Decode the exploration state carried by a shared URL."""
    query = urllib.parse.urlsplit(url).query
    params = dict(urllib.parse.parse_qsl(query, keep_blank_values=True))
    state = decode_state(params)
    logger.debug(
        "Decoded shared state: %d project(s), %d user(s), %d group(s)",
        len(state.projects), len(state.users), len(state.groups),
    )
    return state
