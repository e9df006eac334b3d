"""Resolution of a consumer's starting position."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from jsreconcile.shared.errors import AmbiguousStartPolicy
from jsreconcile.shared.models.desired import ConsumerDesired
from jsreconcile.shared.models.policies import DeliverPolicy
from jsreconcile.shared.timefmt import parse_rfc3339


@dataclass(frozen=True)
class StartPolicy:
    policy: DeliverPolicy
    sequence: Optional[int] = None
    timestamp: Optional[datetime] = None


ALL_MESSAGES = StartPolicy(DeliverPolicy.ALL)


def resolve_consumer_start(desired: ConsumerDesired) -> StartPolicy:
    """Pick the single start position a consumer declares.

    Nothing set means deliver everything. More than one set is rejected
    rather than ranked.
    """

    chosen: List[str] = []
    if desired.stream_sequence > 0:
        chosen.append("stream_sequence")
    if desired.start_time:
        chosen.append("start_time")
    if desired.deliver_all:
        chosen.append("deliver_all")
    if desired.deliver_last:
        chosen.append("deliver_last")
    if desired.deliver_new:
        chosen.append("deliver_new")
    if desired.deliver_last_per_subject:
        chosen.append("deliver_last_per_subject")

    if len(chosen) > 1:
        raise AmbiguousStartPolicy(chosen)
    if not chosen:
        return ALL_MESSAGES

    field = chosen[0]
    if field == "stream_sequence":
        return StartPolicy(DeliverPolicy.BY_START_SEQUENCE, sequence=desired.stream_sequence)
    if field == "start_time":
        return StartPolicy(
            DeliverPolicy.BY_START_TIME,
            timestamp=parse_rfc3339("start_time", desired.start_time),
        )
    if field == "deliver_last":
        return StartPolicy(DeliverPolicy.LAST)
    if field == "deliver_new":
        return StartPolicy(DeliverPolicy.NEW)
    if field == "deliver_last_per_subject":
        return StartPolicy(DeliverPolicy.LAST_PER_SUBJECT)
    return ALL_MESSAGES
