"""Stable opaque identities for reconciled resources.

Identities are parsed with anchored patterns over a fixed grammar: a namespace
and kind token, then either one capture for the rest of the string or two
captures around a fixed infix. The first capture of a two-key kind is
non-greedy, so the second key may itself contain the infix.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from jsreconcile.shared import api_subjects as subj
from jsreconcile.shared.errors import InvalidIdentity


class ResourceKind(str, Enum):
    STREAM = "stream"
    CONSUMER = "consumer"
    STREAM_TEMPLATE = "stream_template"
    KV_BUCKET = "kv_bucket"
    KV_ENTRY = "kv_entry"


@dataclass(frozen=True)
class ResourceIdentity:
    kind: ResourceKind
    keys: Tuple[str, ...]

    def encode(self) -> str:
        return encode(self.kind, *self.keys)

    def __str__(self) -> str:
        return self.encode()


_ARITY = {
    ResourceKind.STREAM: 1,
    ResourceKind.CONSUMER: 2,
    ResourceKind.STREAM_TEMPLATE: 1,
    ResourceKind.KV_BUCKET: 1,
    ResourceKind.KV_ENTRY: 2,
}

_NS = re.escape(subj.IDENTITY_NAMESPACE)
_PATTERNS = {
    ResourceKind.STREAM: re.compile(rf"{_NS}{re.escape(subj.STREAM_TOKEN)}(?P<name>.+)", re.S),
    ResourceKind.CONSUMER: re.compile(
        rf"{_NS}{re.escape(subj.STREAM_TOKEN)}(?P<stream>.+?){re.escape(subj.CONSUMER_INFIX)}(?P<durable>.+)",
        re.S,
    ),
    ResourceKind.STREAM_TEMPLATE: re.compile(
        rf"{_NS}{re.escape(subj.STREAM_TEMPLATE_TOKEN)}(?P<name>.+)", re.S
    ),
    ResourceKind.KV_BUCKET: re.compile(rf"{_NS}{re.escape(subj.KV_TOKEN)}(?P<bucket>.+)", re.S),
    ResourceKind.KV_ENTRY: re.compile(
        rf"{_NS}{re.escape(subj.KV_TOKEN)}(?P<bucket>.+?){re.escape(subj.ENTRY_INFIX)}(?P<key>.+)",
        re.S,
    ),
}

# Two-key kinds first: their patterns are strictly narrower than the
# one-key kind sharing the same prefix.
_DECODE_ORDER = (
    ResourceKind.CONSUMER,
    ResourceKind.KV_ENTRY,
    ResourceKind.STREAM_TEMPLATE,
    ResourceKind.STREAM,
    ResourceKind.KV_BUCKET,
)


def encode(kind: ResourceKind, *keys: str) -> str:
    kind = ResourceKind(kind)
    if len(keys) != _ARITY[kind]:
        raise InvalidIdentity(
            "/".join(keys), f"{kind.value} takes {_ARITY[kind]} key(s), got {len(keys)}"
        )
    if any(not isinstance(k, str) or not k for k in keys):
        raise InvalidIdentity("/".join(map(str, keys)), f"{kind.value} keys must be non-empty strings")

    ns = subj.IDENTITY_NAMESPACE
    if kind is ResourceKind.STREAM:
        return f"{ns}{subj.STREAM_TOKEN}{keys[0]}"
    if kind is ResourceKind.CONSUMER:
        return f"{ns}{subj.STREAM_TOKEN}{keys[0]}{subj.CONSUMER_INFIX}{keys[1]}"
    if kind is ResourceKind.STREAM_TEMPLATE:
        return f"{ns}{subj.STREAM_TEMPLATE_TOKEN}{keys[0]}"
    if kind is ResourceKind.KV_BUCKET:
        return f"{ns}{subj.KV_TOKEN}{keys[0]}"
    return f"{ns}{subj.KV_TOKEN}{keys[0]}{subj.ENTRY_INFIX}{keys[1]}"


def parse(kind: ResourceKind, identity: str) -> ResourceIdentity:
    """Decode ``identity`` as a specific kind.

    This is the authoritative decode used by the lifecycle, which always knows
    the kind it is operating on.
    """

    kind = ResourceKind(kind)
    if not isinstance(identity, str):
        raise InvalidIdentity(str(identity), "identity must be a string")
    match = _PATTERNS[kind].fullmatch(identity)
    if match is None:
        raise InvalidIdentity(identity, f"not a {kind.value} identity")
    return ResourceIdentity(kind, tuple(match.groups()))


def decode(identity: str) -> ResourceIdentity:
    """Decode an identity of unknown kind.

    A stream whose own name contains ``_CONSUMER_`` is reported as a consumer
    here; callers that know the kind should use :func:`parse`.
    """

    if not isinstance(identity, str):
        raise InvalidIdentity(str(identity), "identity must be a string")
    for kind in _DECODE_ORDER:
        match = _PATTERNS[kind].fullmatch(identity)
        if match is not None:
            return ResourceIdentity(kind, tuple(match.groups()))
    raise InvalidIdentity(identity)
