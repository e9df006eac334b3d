"""Closed policy vocabularies.

Member values are the wire spellings used by the JetStream API, and the
declared spellings accepted from callers are the same strings. Adding a value
here is the single place a new server-side policy has to be admitted.
"""

from __future__ import annotations

from enum import Enum
from typing import Type, TypeVar

from jsreconcile.shared.errors import InvalidEnumValue


class StorageType(str, Enum):
    FILE = "file"
    MEMORY = "memory"


class RetentionPolicy(str, Enum):
    LIMITS = "limits"
    INTEREST = "interest"
    WORK_QUEUE = "workqueue"


class DiscardPolicy(str, Enum):
    OLD = "old"
    NEW = "new"


class Compression(str, Enum):
    NONE = "none"
    S2 = "s2"


class ReplayPolicy(str, Enum):
    INSTANT = "instant"
    ORIGINAL = "original"


class AckPolicy(str, Enum):
    EXPLICIT = "explicit"
    ALL = "all"
    NONE = "none"


class DeliverPolicy(str, Enum):
    ALL = "all"
    LAST = "last"
    NEW = "new"
    BY_START_SEQUENCE = "by_start_sequence"
    BY_START_TIME = "by_start_time"
    LAST_PER_SUBJECT = "last_per_subject"


class PriorityPolicy(str, Enum):
    NONE = "none"
    OVERFLOW = "overflow"
    PINNED_CLIENT = "pinned_client"


E = TypeVar("E", bound=Enum)


def resolve_policy(field: str, value: str, enum: Type[E]) -> E:
    """Resolve a declared policy name, failing with the accepted spellings."""

    try:
        return enum(value)
    except ValueError:
        raise InvalidEnumValue(field, value, [m.value for m in enum]) from None
