"""Configuration objects in the shape the JetStream API accepts and returns.

Durations are integer nanoseconds. ``None`` means the attribute is disabled or
left to the server default and is omitted from the request body.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from jsreconcile.shared.models.policies import (
    AckPolicy,
    Compression,
    DeliverPolicy,
    DiscardPolicy,
    PriorityPolicy,
    ReplayPolicy,
    RetentionPolicy,
    StorageType,
)
from jsreconcile.shared.timefmt import parse_rfc3339

NANOS_PER_SECOND = 1_000_000_000


def _wire_time(value: Any) -> Any:
    # the server reports nanoseconds, more precision than datetime holds
    if isinstance(value, str):
        return parse_rfc3339("timestamp", value)
    return value


WireTime = Annotated[datetime, BeforeValidator(_wire_time)]


def seconds_to_nanos(value: int) -> Optional[int]:
    """Map a declared duration to the wire; zero and below disable it."""

    if value <= 0:
        return None
    return value * NANOS_PER_SECOND


def nanos_to_seconds(value: Optional[int]) -> int:
    if not value or value < 0:
        return 0
    return value // NANOS_PER_SECOND


class _Wire(BaseModel):
    # Fields added by newer servers are ignored.
    model_config = ConfigDict(extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class SubjectTransformWire(_Wire):
    src: str
    dest: str


class ExternalStreamWire(_Wire):
    api: str
    deliver: Optional[str] = None


class StreamSourceWire(_Wire):
    name: str
    opt_start_seq: Optional[int] = None
    opt_start_time: Optional[WireTime] = None
    filter_subject: Optional[str] = None
    subject_transforms: Optional[List[SubjectTransformWire]] = None
    external: Optional[ExternalStreamWire] = None


class PlacementWire(_Wire):
    cluster: Optional[str] = None
    tags: Optional[List[str]] = None


class RePublishWire(_Wire):
    src: Optional[str] = None
    dest: str
    headers_only: Optional[bool] = None


class ConsumerLimitsWire(_Wire):
    inactive_threshold: Optional[int] = None
    max_ack_pending: Optional[int] = None


class StreamConfigWire(_Wire):
    name: str
    description: Optional[str] = None
    subjects: Optional[List[str]] = None
    retention: RetentionPolicy = RetentionPolicy.LIMITS
    max_consumers: int = -1
    max_msgs: int = -1
    max_bytes: int = -1
    max_age: Optional[int] = None
    max_msgs_per_subject: int = -1
    max_msg_size: int = -1
    discard: DiscardPolicy = DiscardPolicy.OLD
    discard_new_per_subject: Optional[bool] = None
    storage: StorageType = StorageType.FILE
    num_replicas: int = 1
    no_ack: Optional[bool] = None
    duplicate_window: Optional[int] = None
    placement: Optional[PlacementWire] = None
    mirror: Optional[StreamSourceWire] = None
    sources: Optional[List[StreamSourceWire]] = None
    compression: Optional[Compression] = None
    subject_transform: Optional[SubjectTransformWire] = None
    republish: Optional[RePublishWire] = None
    sealed: Optional[bool] = None
    deny_delete: Optional[bool] = None
    deny_purge: Optional[bool] = None
    allow_rollup_hdrs: Optional[bool] = None
    allow_direct: Optional[bool] = None
    mirror_direct: Optional[bool] = None
    allow_msg_ttl: Optional[bool] = None
    subject_delete_marker_ttl: Optional[int] = None
    consumer_limits: Optional[ConsumerLimitsWire] = None
    metadata: Optional[Dict[str, str]] = None


class ConsumerConfigWire(_Wire):
    durable_name: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    deliver_subject: Optional[str] = None
    deliver_group: Optional[str] = None
    deliver_policy: DeliverPolicy = DeliverPolicy.ALL
    opt_start_seq: Optional[int] = None
    opt_start_time: Optional[WireTime] = None
    ack_policy: AckPolicy = AckPolicy.EXPLICIT
    ack_wait: Optional[int] = None
    max_deliver: Optional[int] = None
    backoff: Optional[List[int]] = None
    filter_subject: Optional[str] = None
    filter_subjects: Optional[List[str]] = None
    replay_policy: ReplayPolicy = ReplayPolicy.INSTANT
    rate_limit_bps: Optional[int] = None
    sample_freq: Optional[str] = None
    max_waiting: Optional[int] = None
    max_ack_pending: Optional[int] = None
    flow_control: Optional[bool] = None
    idle_heartbeat: Optional[int] = None
    headers_only: Optional[bool] = None
    max_batch: Optional[int] = None
    max_expires: Optional[int] = None
    max_bytes: Optional[int] = None
    inactive_threshold: Optional[int] = None
    num_replicas: Optional[int] = None
    mem_storage: Optional[bool] = None
    priority_groups: Optional[List[str]] = None
    priority_policy: Optional[PriorityPolicy] = None
    priority_timeout: Optional[int] = None
    metadata: Optional[Dict[str, str]] = None

    @property
    def is_push(self) -> bool:
        return bool(self.deliver_subject)


class StreamTemplateConfigWire(_Wire):
    name: str
    max_streams: int
    config: StreamConfigWire


class KVEntryWire(_Wire):
    bucket: str
    key: str
    value: bytes = b""
    revision: int = Field(default=0, ge=0)
