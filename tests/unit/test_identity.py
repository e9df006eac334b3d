from __future__ import annotations

import pytest

from jsreconcile.shared.errors import InvalidIdentity
from jsreconcile.shared.identity import ResourceIdentity, ResourceKind, decode, encode, parse


@pytest.mark.parametrize(
    "kind, keys, expected",
    [
        (ResourceKind.STREAM, ("ORDERS",), "JETSTREAM_STREAM_ORDERS"),
        (ResourceKind.CONSUMER, ("ORDERS", "audit"), "JETSTREAM_STREAM_ORDERS_CONSUMER_audit"),
        (ResourceKind.STREAM_TEMPLATE, ("T1",), "JETSTREAM_STREAMTEMPLATE_T1"),
        (ResourceKind.KV_BUCKET, ("config",), "JETSTREAM_KV_config"),
        (ResourceKind.KV_ENTRY, ("config", "a.b"), "JETSTREAM_KV_config_ENTRY_a.b"),
    ],
)
def test_encode_formats_are_stable(kind, keys, expected) -> None:
    assert encode(kind, *keys) == expected
    assert decode(expected) == ResourceIdentity(kind, keys)
    assert parse(kind, expected) == ResourceIdentity(kind, keys)


@pytest.mark.parametrize(
    "kind, keys",
    [
        (ResourceKind.STREAM, ("STREAM_X",)),
        (ResourceKind.STREAM, ("a_b_c",)),
        (ResourceKind.CONSUMER, ("ORDERS", "x_CONSUMER_y")),
        (ResourceKind.CONSUMER, ("STREAM_ORDERS", "STREAM_c")),
        (ResourceKind.STREAM_TEMPLATE, ("STREAM_T",)),
        (ResourceKind.KV_BUCKET, ("KV_nested",)),
        (ResourceKind.KV_ENTRY, ("cfg", "k_ENTRY_v")),
        (ResourceKind.KV_ENTRY, ("cfg", "_ENTRY_")),
    ],
)
def test_keys_containing_structural_tokens_round_trip(kind, keys) -> None:
    identity = encode(kind, *keys)

    assert parse(kind, identity).keys == keys
    assert decode(identity) == ResourceIdentity(kind, keys)


def test_kind_specific_parse_resolves_stream_named_like_consumer() -> None:
    identity = encode(ResourceKind.STREAM, "A_CONSUMER_B")

    assert parse(ResourceKind.STREAM, identity).keys == ("A_CONSUMER_B",)
    # without the kind the identity reads as a consumer
    assert decode(identity).kind is ResourceKind.CONSUMER


def test_identity_str_encodes() -> None:
    ident = ResourceIdentity(ResourceKind.CONSUMER, ("S", "C"))
    assert str(ident) == "JETSTREAM_STREAM_S_CONSUMER_C"


@pytest.mark.parametrize(
    "identity",
    ["", "STREAM_ORDERS", "JETSTREAM_STREAM_", "JETSTREAM_OBJECT_x", "jetstream_stream_x", "JETSTREAM_KV_"],
)
def test_decode_rejects_malformed(identity: str) -> None:
    with pytest.raises(InvalidIdentity):
        decode(identity)


def test_parse_rejects_wrong_kind() -> None:
    with pytest.raises(InvalidIdentity):
        parse(ResourceKind.KV_BUCKET, "JETSTREAM_STREAM_ORDERS")
    with pytest.raises(InvalidIdentity):
        parse(ResourceKind.CONSUMER, "JETSTREAM_STREAM_ORDERS")


def test_encode_rejects_wrong_arity_and_empty_keys() -> None:
    with pytest.raises(InvalidIdentity):
        encode(ResourceKind.CONSUMER, "only-stream")
    with pytest.raises(InvalidIdentity):
        encode(ResourceKind.STREAM, "")
