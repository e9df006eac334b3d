"""Translation between declared state and JetStream API configuration.

Both directions are pure. ``*_to_remote`` raises before anything is sent;
``*_from_remote`` projects what the server reports back into declared form so
the next pass can compare like with like.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from jsreconcile.reconciler.precedence import resolve_consumer_start
from jsreconcile.shared import api_subjects as subj
from jsreconcile.shared.errors import InvalidConfiguration
from jsreconcile.shared.identity import ResourceKind
from jsreconcile.shared.models.desired import (
    ConsumerDesired,
    ExternalReference,
    KVBucketDesired,
    KVEntryDesired,
    StreamDesired,
    StreamSource,
    StreamTemplateDesired,
    SubjectTransform,
)
from jsreconcile.shared.models.policies import (
    AckPolicy,
    Compression,
    DeliverPolicy,
    DiscardPolicy,
    PriorityPolicy,
    ReplayPolicy,
    RetentionPolicy,
    StorageType,
    resolve_policy,
)
from jsreconcile.shared.models.wire import (
    ConsumerConfigWire,
    ConsumerLimitsWire,
    ExternalStreamWire,
    KVEntryWire,
    NANOS_PER_SECOND,
    PlacementWire,
    RePublishWire,
    StreamConfigWire,
    StreamSourceWire,
    StreamTemplateConfigWire,
    SubjectTransformWire,
    nanos_to_seconds,
    seconds_to_nanos,
)
from jsreconcile.shared.timefmt import format_rfc3339, parse_rfc3339

Desired = Union[StreamDesired, ConsumerDesired, StreamTemplateDesired, KVBucketDesired, KVEntryDesired]
Remote = Union[StreamConfigWire, ConsumerConfigWire, StreamTemplateConfigWire, KVEntryWire]


def sanitize_metadata(metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Drop keys the server manages itself."""

    if not metadata:
        return {}
    return {k: v for k, v in metadata.items() if not k.startswith(subj.RESERVED_METADATA_PREFIX)}


def _metadata_to_remote(metadata: Dict[str, str]) -> Optional[Dict[str, str]]:
    return sanitize_metadata(metadata) or None


def _placement_to_remote(cluster: str, tags: List[str]) -> Optional[PlacementWire]:
    if not cluster:
        return None
    return PlacementWire(cluster=cluster, tags=list(tags) or None)


def _placement_from_remote(placement: Optional[PlacementWire]) -> Dict[str, object]:
    if placement is None or not placement.cluster:
        return {"placement_cluster": "", "placement_tags": []}
    return {"placement_cluster": placement.cluster, "placement_tags": list(placement.tags or [])}


# --- sources / mirror -------------------------------------------------------


def _transform_to_remote(t: SubjectTransform) -> SubjectTransformWire:
    return SubjectTransformWire(src=t.source, dest=t.destination)


def _transform_from_remote(t: SubjectTransformWire) -> SubjectTransform:
    return SubjectTransform(source=t.src, destination=t.dest)


def _source_to_remote(field: str, src: StreamSource) -> StreamSourceWire:
    external = None
    if src.external is not None:
        external = ExternalStreamWire(api=src.external.api, deliver=src.external.deliver or None)
    return StreamSourceWire(
        name=src.name,
        opt_start_seq=src.start_seq or None,
        opt_start_time=parse_rfc3339(f"{field}.start_time", src.start_time) if src.start_time else None,
        filter_subject=src.filter_subject or None,
        subject_transforms=[_transform_to_remote(t) for t in src.subject_transforms] or None,
        external=external,
    )


def _source_from_remote(src: StreamSourceWire) -> StreamSource:
    external = None
    if src.external is not None:
        external = ExternalReference(api=src.external.api, deliver=src.external.deliver or "")
    return StreamSource(
        name=src.name,
        start_seq=src.opt_start_seq or 0,
        start_time=format_rfc3339(src.opt_start_time) if src.opt_start_time else "",
        filter_subject=src.filter_subject or "",
        subject_transforms=[_transform_from_remote(t) for t in src.subject_transforms or []],
        external=external,
    )


# --- streams ----------------------------------------------------------------


def stream_to_remote(desired: StreamDesired) -> StreamConfigWire:
    if desired.mirror is not None and desired.sources:
        raise InvalidConfiguration("only one of sources and mirror may be specified")
    if not desired.subjects and desired.mirror is None and not desired.sources:
        raise InvalidConfiguration("subjects are required for streams without mirrors or sources")
    if desired.republish_source and not desired.republish_destination:
        raise InvalidConfiguration("republish_source requires republish_destination")

    compression = resolve_policy("compression", desired.compression, Compression)

    republish = None
    if desired.republish_destination:
        republish = RePublishWire(
            src=desired.republish_source or None,
            dest=desired.republish_destination,
            headers_only=desired.republish_headers_only or None,
        )

    limits = None
    if desired.max_ack_pending or desired.inactive_threshold:
        limits = ConsumerLimitsWire(
            inactive_threshold=seconds_to_nanos(desired.inactive_threshold),
            max_ack_pending=desired.max_ack_pending or None,
        )

    return StreamConfigWire(
        name=desired.name,
        description=desired.description or None,
        subjects=list(desired.subjects) or None,
        retention=resolve_policy("retention", desired.retention, RetentionPolicy),
        max_consumers=desired.max_consumers,
        max_msgs=desired.max_msgs,
        max_bytes=desired.max_bytes,
        max_age=seconds_to_nanos(desired.max_age),
        max_msgs_per_subject=desired.max_msgs_per_subject,
        max_msg_size=desired.max_msg_size,
        discard=resolve_policy("discard", desired.discard, DiscardPolicy),
        discard_new_per_subject=desired.discard_new_per_subject or None,
        storage=resolve_policy("storage", desired.storage, StorageType),
        num_replicas=desired.replicas,
        no_ack=(not desired.ack) or None,
        duplicate_window=seconds_to_nanos(desired.duplicate_window),
        placement=_placement_to_remote(desired.placement_cluster, desired.placement_tags),
        mirror=_source_to_remote("mirror", desired.mirror) if desired.mirror is not None else None,
        sources=[_source_to_remote(f"sources[{i}]", s) for i, s in enumerate(desired.sources)] or None,
        compression=compression if compression is not Compression.NONE else None,
        subject_transform=(
            _transform_to_remote(desired.subject_transform) if desired.subject_transform else None
        ),
        republish=republish,
        deny_delete=desired.deny_delete or None,
        deny_purge=desired.deny_purge or None,
        allow_rollup_hdrs=desired.allow_rollup_hdrs or None,
        allow_direct=desired.allow_direct or None,
        mirror_direct=desired.mirror_direct or None,
        allow_msg_ttl=desired.allow_msg_ttl or None,
        subject_delete_marker_ttl=seconds_to_nanos(desired.subject_delete_marker_ttl),
        consumer_limits=limits,
        metadata=_metadata_to_remote(desired.metadata),
    )


def stream_from_remote(remote: StreamConfigWire) -> StreamDesired:
    limits = remote.consumer_limits or ConsumerLimitsWire()
    republish = remote.republish
    return StreamDesired(
        name=remote.name,
        description=remote.description or "",
        subjects=list(remote.subjects or []),
        storage=remote.storage.value,
        retention=remote.retention.value,
        discard=remote.discard.value,
        discard_new_per_subject=bool(remote.discard_new_per_subject),
        max_consumers=remote.max_consumers,
        max_msgs=remote.max_msgs,
        max_bytes=remote.max_bytes,
        max_age=nanos_to_seconds(remote.max_age),
        max_msg_size=remote.max_msg_size,
        max_msgs_per_subject=remote.max_msgs_per_subject,
        duplicate_window=nanos_to_seconds(remote.duplicate_window),
        replicas=remote.num_replicas,
        ack=not remote.no_ack,
        compression=(remote.compression or Compression.NONE).value,
        mirror=_source_from_remote(remote.mirror) if remote.mirror is not None else None,
        sources=[_source_from_remote(s) for s in remote.sources or []],
        subject_transform=(
            _transform_from_remote(remote.subject_transform) if remote.subject_transform else None
        ),
        republish_source=(republish.src or "") if republish else "",
        republish_destination=republish.dest if republish else "",
        republish_headers_only=bool(republish.headers_only) if republish else False,
        deny_delete=bool(remote.deny_delete),
        deny_purge=bool(remote.deny_purge),
        allow_rollup_hdrs=bool(remote.allow_rollup_hdrs),
        allow_direct=bool(remote.allow_direct),
        mirror_direct=bool(remote.mirror_direct),
        allow_msg_ttl=bool(remote.allow_msg_ttl),
        subject_delete_marker_ttl=nanos_to_seconds(remote.subject_delete_marker_ttl),
        max_ack_pending=limits.max_ack_pending or 0,
        inactive_threshold=nanos_to_seconds(limits.inactive_threshold),
        metadata=sanitize_metadata(remote.metadata),
        **_placement_from_remote(remote.placement),
    )


# --- consumers --------------------------------------------------------------


def consumer_to_remote(desired: ConsumerDesired) -> ConsumerConfigWire:
    if desired.max_waiting and desired.delivery_subject:
        raise InvalidConfiguration("max_waiting is only valid for pull consumers, not with delivery_subject")
    if desired.filter_subject and desired.filter_subjects:
        raise InvalidConfiguration("only one of filter_subject and filter_subjects may be specified")

    start = resolve_consumer_start(desired)
    ack_policy = resolve_policy("ack_policy", desired.ack_policy, AckPolicy)
    replay_policy = resolve_policy("replay_policy", desired.replay_policy, ReplayPolicy)
    priority_policy = resolve_policy("priority_policy", desired.priority_policy, PriorityPolicy)

    filter_subject = desired.filter_subject or None
    filter_subjects = None
    if len(desired.filter_subjects) == 1:
        filter_subject = desired.filter_subjects[0]
    elif desired.filter_subjects:
        filter_subjects = list(desired.filter_subjects)

    return ConsumerConfigWire(
        durable_name=desired.durable_name,
        description=desired.description or None,
        deliver_subject=desired.delivery_subject or None,
        deliver_group=desired.delivery_group or None,
        deliver_policy=start.policy,
        opt_start_seq=start.sequence,
        opt_start_time=start.timestamp,
        ack_policy=ack_policy,
        ack_wait=seconds_to_nanos(desired.ack_wait),
        max_deliver=desired.max_delivery,
        backoff=[s * NANOS_PER_SECOND for s in desired.backoff] or None,
        filter_subject=filter_subject,
        filter_subjects=filter_subjects,
        replay_policy=replay_policy,
        rate_limit_bps=desired.ratelimit or None,
        sample_freq=f"{desired.sample_freq}%" if desired.sample_freq else None,
        max_waiting=desired.max_waiting or None,
        max_ack_pending=desired.max_ack_pending,
        flow_control=desired.flow_control or None,
        idle_heartbeat=seconds_to_nanos(desired.heartbeat),
        headers_only=desired.headers_only or None,
        max_batch=desired.max_batch or None,
        max_expires=seconds_to_nanos(desired.max_expires),
        max_bytes=desired.max_bytes or None,
        inactive_threshold=seconds_to_nanos(desired.inactive_threshold),
        num_replicas=desired.replicas or None,
        mem_storage=desired.memory or None,
        priority_groups=list(desired.priority_groups) or None,
        priority_policy=priority_policy if priority_policy is not PriorityPolicy.NONE else None,
        priority_timeout=seconds_to_nanos(desired.priority_timeout),
        metadata=_metadata_to_remote(desired.metadata),
    )


def _parse_sample_freq(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return int(raw.strip().rstrip("%"))
    except ValueError:
        raise InvalidConfiguration(f"sample_freq {raw!r} reported by the server is not a percentage") from None


def consumer_from_remote(stream_name: str, remote: ConsumerConfigWire) -> ConsumerDesired:
    policy = remote.deliver_policy
    filter_subjects = list(remote.filter_subjects or [])
    return ConsumerDesired(
        stream_name=stream_name,
        durable_name=remote.durable_name or remote.name or "",
        description=remote.description or "",
        delivery_subject=remote.deliver_subject or "",
        delivery_group=remote.deliver_group or "",
        # "all" is the unset default and projects to no flag at all
        deliver_last=policy is DeliverPolicy.LAST,
        deliver_new=policy is DeliverPolicy.NEW,
        deliver_last_per_subject=policy is DeliverPolicy.LAST_PER_SUBJECT,
        stream_sequence=(remote.opt_start_seq or 0) if policy is DeliverPolicy.BY_START_SEQUENCE else 0,
        start_time=(
            format_rfc3339(remote.opt_start_time)
            if policy is DeliverPolicy.BY_START_TIME and remote.opt_start_time
            else ""
        ),
        ack_policy=remote.ack_policy.value,
        ack_wait=nanos_to_seconds(remote.ack_wait),
        max_delivery=remote.max_deliver if remote.max_deliver is not None else -1,
        filter_subject=remote.filter_subject or "",
        filter_subjects=filter_subjects,
        replay_policy=remote.replay_policy.value,
        sample_freq=_parse_sample_freq(remote.sample_freq),
        ratelimit=remote.rate_limit_bps or 0,
        max_ack_pending=remote.max_ack_pending if remote.max_ack_pending is not None else 0,
        max_waiting=remote.max_waiting or 0,
        heartbeat=nanos_to_seconds(remote.idle_heartbeat),
        flow_control=bool(remote.flow_control),
        headers_only=bool(remote.headers_only),
        max_batch=remote.max_batch or 0,
        max_expires=nanos_to_seconds(remote.max_expires),
        max_bytes=remote.max_bytes or 0,
        inactive_threshold=nanos_to_seconds(remote.inactive_threshold),
        replicas=remote.num_replicas or 0,
        memory=bool(remote.mem_storage),
        backoff=[nanos_to_seconds(b) for b in remote.backoff or []],
        priority_groups=list(remote.priority_groups or []),
        priority_policy=(remote.priority_policy or PriorityPolicy.NONE).value,
        priority_timeout=nanos_to_seconds(remote.priority_timeout),
        metadata=sanitize_metadata(remote.metadata),
    )


# --- stream templates -------------------------------------------------------


def server_duplicate_window(max_age: int) -> int:
    """The window a server applies when none is declared, in seconds."""

    if max_age > 0:
        return min(subj.DEFAULT_DUPLICATE_WINDOW_SEC, max_age)
    return subj.DEFAULT_DUPLICATE_WINDOW_SEC


def template_to_remote(desired: StreamTemplateDesired) -> StreamTemplateConfigWire:
    # the server names each derived stream itself
    config = StreamConfigWire(
        name="",
        subjects=list(desired.subjects) or None,
        retention=resolve_policy("retention", desired.retention, RetentionPolicy),
        max_consumers=desired.max_consumers,
        max_msgs=desired.max_msgs,
        max_bytes=desired.max_bytes,
        max_age=seconds_to_nanos(desired.max_age),
        max_msg_size=desired.max_msg_size,
        discard=resolve_policy("discard", desired.discard, DiscardPolicy),
        storage=resolve_policy("storage", desired.storage, StorageType),
        num_replicas=desired.replicas,
        no_ack=(not desired.ack) or None,
        duplicate_window=seconds_to_nanos(
            desired.duplicate_window or server_duplicate_window(desired.max_age)
        ),
    )
    return StreamTemplateConfigWire(name=desired.name, max_streams=desired.max_streams, config=config)


def template_from_remote(remote: StreamTemplateConfigWire) -> StreamTemplateDesired:
    cfg = remote.config
    return StreamTemplateDesired(
        name=remote.name,
        max_streams=remote.max_streams,
        subjects=list(cfg.subjects or []),
        storage=cfg.storage.value,
        retention=cfg.retention.value,
        discard=cfg.discard.value,
        max_consumers=cfg.max_consumers,
        max_msgs=cfg.max_msgs,
        max_bytes=cfg.max_bytes,
        max_age=nanos_to_seconds(cfg.max_age),
        max_msg_size=cfg.max_msg_size,
        duplicate_window=nanos_to_seconds(cfg.duplicate_window),
        replicas=cfg.num_replicas,
        ack=not cfg.no_ack,
    )


# --- key/value --------------------------------------------------------------


def kv_stream_name(bucket: str) -> str:
    return f"{subj.KV_STREAM_PREFIX}{bucket}"


def kv_bucket_to_remote(desired: KVBucketDesired) -> StreamConfigWire:
    """Materialise a bucket as the stream a KV client would create for it."""

    storage = resolve_policy("storage", desired.storage, StorageType)
    duplicate_window = subj.KV_MAX_DUPLICATE_WINDOW_SEC
    if desired.ttl > 0:
        duplicate_window = min(duplicate_window, desired.ttl)
    return StreamConfigWire(
        name=kv_stream_name(desired.bucket),
        description=desired.description or None,
        subjects=[subj.KV_SUBJECT_TEMPLATE.format(bucket=desired.bucket)],
        retention=RetentionPolicy.LIMITS,
        max_msgs_per_subject=desired.history,
        max_bytes=desired.max_bucket_size,
        max_msg_size=desired.max_value_size,
        max_age=seconds_to_nanos(desired.ttl),
        discard=DiscardPolicy.NEW,
        storage=storage,
        num_replicas=desired.replicas,
        duplicate_window=seconds_to_nanos(duplicate_window),
        placement=_placement_to_remote(desired.placement_cluster, desired.placement_tags),
        compression=Compression.S2 if desired.compression else None,
        allow_rollup_hdrs=True,
        deny_delete=True,
        allow_direct=True,
        allow_msg_ttl=True if desired.limit_marker_ttl else None,
        subject_delete_marker_ttl=seconds_to_nanos(desired.limit_marker_ttl),
        metadata=_metadata_to_remote(desired.metadata),
    )


def kv_bucket_from_remote(remote: StreamConfigWire) -> KVBucketDesired:
    if not remote.name.startswith(subj.KV_STREAM_PREFIX):
        raise InvalidConfiguration(f"stream {remote.name!r} does not back a KV bucket")
    return KVBucketDesired(
        bucket=remote.name[len(subj.KV_STREAM_PREFIX):],
        description=remote.description or "",
        history=remote.max_msgs_per_subject,
        ttl=nanos_to_seconds(remote.max_age),
        max_value_size=remote.max_msg_size,
        max_bucket_size=remote.max_bytes,
        replicas=remote.num_replicas,
        storage=remote.storage.value,
        compression=remote.compression is Compression.S2,
        limit_marker_ttl=nanos_to_seconds(remote.subject_delete_marker_ttl),
        metadata=sanitize_metadata(remote.metadata),
        **_placement_from_remote(remote.placement),
    )


def kv_entry_to_remote(desired: KVEntryDesired) -> KVEntryWire:
    return KVEntryWire(bucket=desired.bucket, key=desired.key, value=desired.value.encode("utf-8"))


def kv_entry_from_remote(remote: KVEntryWire) -> KVEntryDesired:
    return KVEntryDesired(
        bucket=remote.bucket,
        key=remote.key,
        value=remote.value.decode("utf-8"),
        revision=remote.revision,
    )


# --- dispatch ---------------------------------------------------------------

_TO_REMOTE = {
    ResourceKind.STREAM: stream_to_remote,
    ResourceKind.CONSUMER: consumer_to_remote,
    ResourceKind.STREAM_TEMPLATE: template_to_remote,
    ResourceKind.KV_BUCKET: kv_bucket_to_remote,
    ResourceKind.KV_ENTRY: kv_entry_to_remote,
}


def to_remote_config(kind: ResourceKind, desired: Desired) -> Remote:
    return _TO_REMOTE[ResourceKind(kind)](desired)  # type: ignore[operator]
