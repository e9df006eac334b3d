"""Pre-flight checks mirroring constraints the JetStream server enforces.

Checks never stop at the first problem; every violation found is returned so a
caller sees the whole list in one pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from jsreconcile.shared.identity import ResourceKind
from jsreconcile.shared.models.desired import KVBucketDesired, StreamDesired
from jsreconcile.shared.models.policies import DiscardPolicy, PriorityPolicy
from jsreconcile.shared.models.wire import (
    NANOS_PER_SECOND,
    ConsumerConfigWire,
    KVEntryWire,
    StreamConfigWire,
    StreamTemplateConfigWire,
)

ERROR = "error"
WARNING = "warning"

DEFAULT_ACK_WAIT_NANOS = 30 * NANOS_PER_SECOND
MAX_REPLICAS = 5
MAX_KV_HISTORY = 64

_NAME_FORBIDDEN_RE = re.compile(r"[\s.*>/\\]")
_KV_KEY_RE = re.compile(r"[-/_=.a-zA-Z0-9]+")


@dataclass(frozen=True)
class Violation:
    field: str
    message: str
    severity: str = ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class ServerLimits:
    """Ceilings reported by the connected server or cluster."""

    max_request_batch: Optional[int] = None


def _check_name(field: str, name: Optional[str], out: List[Violation]) -> None:
    if not name:
        out.append(Violation(field, "name is required"))
    elif _NAME_FORBIDDEN_RE.search(name):
        out.append(Violation(field, f"{name!r} may not contain whitespace, '.', '*', '>', '/' or '\\'"))


def _check_replicas(field: str, replicas: int, out: List[Violation]) -> None:
    if not 1 <= replicas <= MAX_REPLICAS:
        out.append(Violation(field, f"replicas must be between 1 and {MAX_REPLICAS}"))


def _check_placement(desired: Union[StreamDesired, KVBucketDesired, None], out: List[Violation]) -> None:
    if desired is not None and desired.placement_tags and not desired.placement_cluster:
        out.append(
            Violation("placement_tags", "placement tags are ignored without a placement cluster", WARNING)
        )


def validate_stream(
    cfg: StreamConfigWire, desired: Optional[StreamDesired] = None, field_prefix: str = ""
) -> List[Violation]:
    out: List[Violation] = []
    _check_name(f"{field_prefix}name", cfg.name, out)
    _check_replicas(f"{field_prefix}replicas", cfg.num_replicas, out)

    if cfg.mirror is not None and cfg.subjects:
        out.append(Violation(f"{field_prefix}subjects", "a mirror stream may not declare subjects"))
    if cfg.max_age and cfg.duplicate_window and cfg.duplicate_window > cfg.max_age:
        out.append(Violation(f"{field_prefix}duplicate_window", "duplicate window exceeds max age"))
    if cfg.discard_new_per_subject:
        if cfg.discard is not DiscardPolicy.NEW:
            out.append(Violation(f"{field_prefix}discard_new_per_subject", "requires discard policy 'new'"))
        if cfg.max_msgs_per_subject <= 0:
            out.append(
                Violation(f"{field_prefix}discard_new_per_subject", "requires max_msgs_per_subject to be set")
            )
    if cfg.mirror_direct and cfg.mirror is None:
        out.append(Violation(f"{field_prefix}mirror_direct", "only a mirror stream can set mirror_direct"))
    if cfg.subject_delete_marker_ttl and not cfg.allow_msg_ttl:
        out.append(
            Violation(f"{field_prefix}subject_delete_marker_ttl", "requires per-message TTLs to be allowed")
        )
    _check_placement(desired, out)
    return out


def validate_consumer(cfg: ConsumerConfigWire, limits: Optional[ServerLimits] = None) -> List[Violation]:
    out: List[Violation] = []
    _check_name("durable_name", cfg.durable_name, out)

    if cfg.backoff:
        ack_wait = cfg.ack_wait or DEFAULT_ACK_WAIT_NANOS
        if cfg.backoff[0] != ack_wait:
            out.append(Violation("backoff", "first backoff value has to equal ack wait"))
        if cfg.max_deliver is not None and 0 < cfg.max_deliver <= len(cfg.backoff):
            out.append(Violation("max_delivery", "max delivery must be greater than the number of backoff values"))

    if cfg.sample_freq:
        freq = int(cfg.sample_freq.rstrip("%"))
        if not 0 <= freq <= 100:
            out.append(Violation("sample_freq", "sample frequency must be between 0 and 100"))

    if cfg.is_push:
        for name, value in (
            ("max_batch", cfg.max_batch),
            ("max_expires", cfg.max_expires),
            ("max_bytes", cfg.max_bytes),
            ("priority_groups", cfg.priority_groups),
        ):
            if value:
                out.append(Violation(name, "only valid for pull consumers"))
        if cfg.flow_control and not cfg.idle_heartbeat:
            out.append(Violation("flow_control", "flow control requires a heartbeat"))
    else:
        for name, value in (
            ("flow_control", cfg.flow_control),
            ("heartbeat", cfg.idle_heartbeat),
            ("delivery_group", cfg.deliver_group),
        ):
            if value:
                out.append(Violation(name, "only valid for push consumers"))

    policy = cfg.priority_policy or PriorityPolicy.NONE
    if cfg.priority_groups and policy is PriorityPolicy.NONE:
        out.append(Violation("priority_policy", "priority groups require a priority policy"))
    if policy is not PriorityPolicy.NONE and not cfg.priority_groups:
        out.append(Violation("priority_groups", "a priority policy requires at least one priority group"))
    if cfg.priority_timeout and policy is not PriorityPolicy.PINNED_CLIENT:
        out.append(Violation("priority_timeout", "only valid with the pinned_client priority policy"))

    if limits is not None and limits.max_request_batch and cfg.max_batch:
        if cfg.max_batch > limits.max_request_batch:
            out.append(
                Violation(
                    "max_batch",
                    f"max request batch exceeds server limit of {limits.max_request_batch}",
                )
            )
    return out


def validate_template(cfg: StreamTemplateConfigWire) -> List[Violation]:
    out: List[Violation] = []
    _check_name("name", cfg.name, out)
    if cfg.max_streams <= 0:
        out.append(Violation("max_streams", "max_streams must be greater than zero"))
    if not cfg.config.subjects:
        out.append(Violation("subjects", "a stream template requires at least one subject"))
    _check_replicas("replicas", cfg.config.num_replicas, out)
    if cfg.config.max_age and cfg.config.duplicate_window and cfg.config.duplicate_window > cfg.config.max_age:
        out.append(Violation("duplicate_window", "duplicate window exceeds max age"))
    return out


def validate_kv_bucket(cfg: StreamConfigWire, desired: Optional[KVBucketDesired] = None) -> List[Violation]:
    out: List[Violation] = []
    bucket = desired.bucket if desired is not None else cfg.name
    _check_name("bucket", bucket, out)
    _check_replicas("replicas", cfg.num_replicas, out)
    if not 1 <= cfg.max_msgs_per_subject <= MAX_KV_HISTORY:
        out.append(Violation("history", f"history must be between 1 and {MAX_KV_HISTORY}"))
    _check_placement(desired, out)
    return out


def validate_kv_entry(cfg: KVEntryWire) -> List[Violation]:
    out: List[Violation] = []
    _check_name("bucket", cfg.bucket, out)
    if not _KV_KEY_RE.fullmatch(cfg.key) or cfg.key.startswith(".") or cfg.key.endswith("."):
        out.append(Violation("key", f"{cfg.key!r} is not a valid key"))
    return out


def validate(
    kind: ResourceKind,
    cfg,
    desired=None,
    limits: Optional[ServerLimits] = None,
) -> List[Violation]:
    """Run every local check for ``kind``; no network access."""

    kind = ResourceKind(kind)
    if kind is ResourceKind.STREAM:
        return validate_stream(cfg, desired)
    if kind is ResourceKind.CONSUMER:
        return validate_consumer(cfg, limits)
    if kind is ResourceKind.STREAM_TEMPLATE:
        return validate_template(cfg)
    if kind is ResourceKind.KV_BUCKET:
        return validate_kv_bucket(cfg, desired)
    return validate_kv_entry(cfg)


def validate_mirror_origin(cfg: StreamConfigWire, origin: StreamConfigWire) -> List[Violation]:
    """Checks that need the configuration of a mirror's origin stream."""

    out: List[Violation] = []
    if cfg.mirror_direct and not origin.allow_direct:
        out.append(
            Violation("mirror_direct", f"origin stream {origin.name} has direct get disabled")
        )
    return out


def validate_consumer_against_stream(cfg: ConsumerConfigWire, stream: StreamConfigWire) -> List[Violation]:
    """Checks that need the owning stream's consumer limits."""

    out: List[Violation] = []
    limits = stream.consumer_limits
    if limits is None:
        return out
    if limits.inactive_threshold:
        if not cfg.inactive_threshold:
            out.append(
                Violation(
                    "inactive_threshold",
                    "inactive_threshold must be set if it's configured in stream limits",
                )
            )
        elif cfg.inactive_threshold > limits.inactive_threshold:
            out.append(Violation("inactive_threshold", "inactive_threshold exceeds the stream limit"))
    if limits.max_ack_pending and cfg.max_ack_pending is not None:
        if cfg.max_ack_pending <= 0 or cfg.max_ack_pending > limits.max_ack_pending:
            out.append(Violation("max_ack_pending", "max_ack_pending exceeds the stream limit"))
    return out
