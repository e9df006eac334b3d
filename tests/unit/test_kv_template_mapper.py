from __future__ import annotations

import pytest

from jsreconcile.reconciler.mapper import (
    kv_bucket_from_remote,
    kv_bucket_to_remote,
    kv_entry_from_remote,
    kv_entry_to_remote,
    template_from_remote,
    template_to_remote,
    to_remote_config,
)
from jsreconcile.shared.errors import InvalidConfiguration
from jsreconcile.shared.identity import ResourceKind
from jsreconcile.shared.models.desired import KVBucketDesired, KVEntryDesired, StreamTemplateDesired
from jsreconcile.shared.models.policies import Compression, DiscardPolicy
from jsreconcile.shared.models.wire import StreamConfigWire, StreamTemplateConfigWire

NS = 1_000_000_000


def test_bucket_is_materialised_as_backing_stream() -> None:
    cfg = kv_bucket_to_remote(KVBucketDesired(bucket="config"))

    assert cfg.name == "KV_config"
    assert cfg.subjects == ["$KV.config.>"]
    assert cfg.max_msgs_per_subject == 5
    assert cfg.discard is DiscardPolicy.NEW
    assert cfg.allow_rollup_hdrs and cfg.deny_delete and cfg.allow_direct
    assert cfg.duplicate_window == 120 * NS
    assert cfg.max_age is None


def test_bucket_duplicate_window_is_capped_by_ttl() -> None:
    assert kv_bucket_to_remote(KVBucketDesired(bucket="b", ttl=30)).duplicate_window == 30 * NS
    assert kv_bucket_to_remote(KVBucketDesired(bucket="b", ttl=3600)).duplicate_window == 120 * NS


def test_bucket_limit_marker_enables_message_ttls() -> None:
    cfg = kv_bucket_to_remote(KVBucketDesired(bucket="b", limit_marker_ttl=10, compression=True))
    assert cfg.allow_msg_ttl is True
    assert cfg.subject_delete_marker_ttl == 10 * NS
    assert cfg.compression is Compression.S2


@pytest.mark.parametrize(
    "desired",
    [
        KVBucketDesired(bucket="config"),
        KVBucketDesired(
            bucket="sessions",
            description="login sessions",
            history=10,
            ttl=900,
            max_value_size=4096,
            max_bucket_size=1 << 20,
            replicas=3,
            storage="memory",
            compression=True,
            placement_cluster="east",
            placement_tags=["fast"],
            limit_marker_ttl=60,
            metadata={"team": "auth"},
        ),
    ],
)
def test_bucket_projection_inverts_mapping(desired: KVBucketDesired) -> None:
    served = StreamConfigWire.model_validate(kv_bucket_to_remote(desired).to_wire())
    assert kv_bucket_from_remote(served) == desired


def test_non_kv_stream_cannot_project_as_bucket() -> None:
    with pytest.raises(InvalidConfiguration):
        kv_bucket_from_remote(StreamConfigWire(name="ORDERS"))


def test_entry_value_is_utf8_bytes() -> None:
    wire = kv_entry_to_remote(KVEntryDesired(bucket="config", key="feature.x", value="on ✓"))
    assert wire.value == "on ✓".encode("utf-8")
    assert kv_entry_from_remote(wire.model_copy(update={"revision": 4})) == KVEntryDesired(
        bucket="config", key="feature.x", value="on ✓", revision=4
    )


def test_template_stream_config_is_unnamed() -> None:
    desired = StreamTemplateDesired(name="T", max_streams=10, subjects=["tmpl.*"], max_age=60)
    cfg = template_to_remote(desired)

    assert cfg.config.name == ""
    assert cfg.to_wire()["config"]["name"] == ""
    assert cfg.max_streams == 10
    assert cfg.config.max_age == 60 * NS


def test_template_projection_inverts_mapping() -> None:
    desired = StreamTemplateDesired(
        name="T",
        max_streams=3,
        subjects=["tmpl.*"],
        storage="memory",
        retention="interest",
        discard="new",
        max_msgs=100,
        duplicate_window=30,
        max_age=60,
        replicas=1,
        ack=False,
    )
    served = StreamTemplateConfigWire.model_validate(template_to_remote(desired).to_wire())
    assert template_from_remote(served) == desired


@pytest.mark.parametrize("max_age, expected", [(0, 120), (60, 60), (3600, 120)])
def test_template_unset_duplicate_window_takes_server_default(max_age: int, expected: int) -> None:
    desired = StreamTemplateDesired(name="T", max_streams=1, subjects=["t.*"], max_age=max_age, duplicate_window=0)
    assert template_to_remote(desired).config.duplicate_window == expected * NS


def test_dispatch_by_kind() -> None:
    desired = KVEntryDesired(bucket="b", key="k", value="v")
    assert to_remote_config(ResourceKind.KV_ENTRY, desired) == kv_entry_to_remote(desired)
