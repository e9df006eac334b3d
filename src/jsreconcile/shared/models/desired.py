"""Declared (desired) state per resource kind.

Durations are whole seconds. ``0`` disables an optional timer; ``-1`` is
accepted as the same sentinel for ``max_age`` and ``ttl``. Policy names stay
plain strings here and are resolved by the mapper so that an unknown name is
reported as :class:`~jsreconcile.shared.errors.InvalidEnumValue`.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jsreconcile.shared.timefmt import canonical_rfc3339


class _Desired(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _disabled_sentinel(v: int) -> int:
    return 0 if v == -1 else v


class SubjectTransform(_Desired):
    source: str
    destination: str


class ExternalReference(_Desired):
    api: str
    deliver: str = ""


class StreamSource(_Desired):
    name: str
    start_seq: int = Field(default=0, ge=0)
    start_time: str = ""
    filter_subject: str = ""
    subject_transforms: List[SubjectTransform] = Field(default_factory=list)
    external: Optional[ExternalReference] = None

    @field_validator("start_time")
    @classmethod
    def _canonical_start_time(cls, v: str) -> str:
        return canonical_rfc3339("start_time", v)


class StreamDesired(_Desired):
    name: str
    description: str = ""
    subjects: List[str] = Field(default_factory=list)
    storage: str = "file"
    retention: str = "limits"
    discard: str = "old"
    discard_new_per_subject: bool = False
    max_consumers: int = -1
    max_msgs: int = -1
    max_bytes: int = -1
    max_age: int = 0
    max_msg_size: int = -1
    max_msgs_per_subject: int = -1
    duplicate_window: int = Field(default=120, ge=0)
    replicas: int = 1
    ack: bool = True
    compression: str = "none"
    placement_cluster: str = ""
    placement_tags: List[str] = Field(default_factory=list)
    mirror: Optional[StreamSource] = None
    sources: List[StreamSource] = Field(default_factory=list)
    subject_transform: Optional[SubjectTransform] = None
    republish_source: str = ""
    republish_destination: str = ""
    republish_headers_only: bool = False
    deny_delete: bool = False
    deny_purge: bool = False
    allow_rollup_hdrs: bool = False
    allow_direct: bool = False
    mirror_direct: bool = False
    allow_msg_ttl: bool = False
    subject_delete_marker_ttl: int = Field(default=0, ge=0)
    max_ack_pending: int = Field(default=0, ge=0)
    inactive_threshold: int = Field(default=0, ge=0)
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("max_age")
    @classmethod
    def _max_age_sentinel(cls, v: int) -> int:
        return _disabled_sentinel(v)


class ConsumerDesired(_Desired):
    stream_name: str
    durable_name: str
    description: str = ""
    delivery_subject: str = ""
    delivery_group: str = ""
    deliver_all: bool = False
    deliver_last: bool = False
    deliver_new: bool = False
    deliver_last_per_subject: bool = False
    stream_sequence: int = Field(default=0, ge=0)
    start_time: str = ""
    ack_policy: str = "explicit"
    ack_wait: int = Field(default=30, ge=0)
    max_delivery: int = -1
    filter_subject: str = ""
    filter_subjects: List[str] = Field(default_factory=list)
    replay_policy: str = "instant"
    sample_freq: int = 0
    ratelimit: int = Field(default=0, ge=0)
    max_ack_pending: int = 20000
    max_waiting: int = Field(default=0, ge=0)
    heartbeat: int = Field(default=0, ge=0)
    flow_control: bool = False
    headers_only: bool = False
    max_batch: int = Field(default=0, ge=0)
    max_expires: int = Field(default=0, ge=0)
    max_bytes: int = Field(default=0, ge=0)
    inactive_threshold: int = Field(default=0, ge=0)
    replicas: int = Field(default=0, ge=0)
    memory: bool = False
    backoff: List[int] = Field(default_factory=list)
    priority_groups: List[str] = Field(default_factory=list)
    priority_policy: str = "none"
    priority_timeout: int = Field(default=0, ge=0)
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("start_time")
    @classmethod
    def _canonical_start_time(cls, v: str) -> str:
        return canonical_rfc3339("start_time", v)


class StreamTemplateDesired(_Desired):
    name: str
    max_streams: int
    subjects: List[str] = Field(default_factory=list)
    storage: str = "file"
    retention: str = "limits"
    discard: str = "old"
    max_consumers: int = -1
    max_msgs: int = -1
    max_bytes: int = -1
    max_age: int = 0
    max_msg_size: int = -1
    duplicate_window: int = Field(default=120, ge=0)
    replicas: int = 1
    ack: bool = True

    @field_validator("max_age")
    @classmethod
    def _max_age_sentinel(cls, v: int) -> int:
        return _disabled_sentinel(v)


class KVBucketDesired(_Desired):
    bucket: str
    description: str = ""
    history: int = 5
    ttl: int = 0
    max_value_size: int = -1
    max_bucket_size: int = -1
    replicas: int = 1
    storage: str = "file"
    compression: bool = False
    placement_cluster: str = ""
    placement_tags: List[str] = Field(default_factory=list)
    limit_marker_ttl: int = Field(default=0, ge=0)
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("ttl")
    @classmethod
    def _ttl_sentinel(cls, v: int) -> int:
        return _disabled_sentinel(v)


class KVEntryDesired(_Desired):
    bucket: str
    key: str
    value: str
    # computed by the server, ignored on write
    revision: int = 0
