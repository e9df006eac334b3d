from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from jsreconcile.reconciler.lifecycle import Reconciler
from jsreconcile.reconciler.remote.interfaces import IRemoteApi
from jsreconcile.reconciler.remote.session import shared_remote
from jsreconcile.reconciler.validator import ServerLimits
from jsreconcile.shared.errors import ResourceAlreadyExists
from jsreconcile.shared.models.wire import (
    ConsumerConfigWire,
    KVEntryWire,
    StreamConfigWire,
    StreamTemplateConfigWire,
)

SERVER_METADATA = {"_nats.req.level": "0", "_nats.ver": "2.11.0"}
NS = 1_000_000_000


class FakeRemote(IRemoteApi):
    """In-memory JetStream stand-in.

    Configs are stored after a JSON round trip, and the server-managed metadata
    keys are injected the way a real server does. With ``fill_defaults`` the
    duplicate window left unset is filled in as a server would.
    """

    def __init__(self, fill_defaults: bool = False) -> None:
        self.fill_defaults = fill_defaults
        self.streams: Dict[str, StreamConfigWire] = {}
        self.consumers: Dict[Tuple[str, str], ConsumerConfigWire] = {}
        self.templates: Dict[str, StreamTemplateConfigWire] = {}
        self.entries: Dict[Tuple[str, str], KVEntryWire] = {}
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self._revision = 0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        exc = self.fail_on.get(name)
        if exc is not None:
            raise exc

    def _with_defaults(self, config: StreamConfigWire) -> StreamConfigWire:
        if not self.fill_defaults or config.duplicate_window:
            return config
        window = 120 * NS
        if config.max_age:
            window = min(window, config.max_age)
        return config.model_copy(update={"duplicate_window": window})

    def _stored_stream(self, config: StreamConfigWire) -> StreamConfigWire:
        stored = self._with_defaults(StreamConfigWire.model_validate(config.to_wire()))
        metadata = dict(stored.metadata or {})
        metadata.update(SERVER_METADATA)
        return stored.model_copy(update={"metadata": metadata})

    # streams
    async def exists_stream(self, name: str) -> bool:
        self._record("exists_stream")
        return name in self.streams

    async def load_stream(self, name: str) -> StreamConfigWire:
        self._record("load_stream")
        return self.streams[name]

    async def create_stream(self, config: StreamConfigWire) -> None:
        self._record("create_stream")
        if config.name in self.streams:
            raise ResourceAlreadyExists("stream", config.name)
        self.streams[config.name] = self._stored_stream(config)

    async def update_stream(self, name: str, config: StreamConfigWire) -> None:
        self._record("update_stream")
        self.streams[name] = self._stored_stream(config)

    async def delete_stream(self, name: str) -> None:
        self._record("delete_stream")
        del self.streams[name]

    # consumers
    async def exists_consumer(self, stream: str, durable: str) -> bool:
        self._record("exists_consumer")
        return (stream, durable) in self.consumers

    async def load_consumer(self, stream: str, durable: str) -> ConsumerConfigWire:
        self._record("load_consumer")
        return self.consumers[(stream, durable)]

    async def create_consumer(self, stream: str, config: ConsumerConfigWire) -> None:
        self._record("create_consumer")
        if stream not in self.streams:
            raise RuntimeError(f"stream {stream} not found")
        key = (stream, config.durable_name or "")
        if key in self.consumers:
            raise ResourceAlreadyExists("consumer", "/".join(key))
        self.consumers[key] = ConsumerConfigWire.model_validate(config.to_wire())

    async def update_consumer(self, stream: str, durable: str, config: ConsumerConfigWire) -> None:
        self._record("update_consumer")
        self.consumers[(stream, durable)] = ConsumerConfigWire.model_validate(config.to_wire())

    async def delete_consumer(self, stream: str, durable: str) -> None:
        self._record("delete_consumer")
        del self.consumers[(stream, durable)]

    # stream templates
    async def exists_stream_template(self, name: str) -> bool:
        self._record("exists_stream_template")
        return name in self.templates

    async def load_stream_template(self, name: str) -> StreamTemplateConfigWire:
        self._record("load_stream_template")
        return self.templates[name]

    async def create_stream_template(self, config: StreamTemplateConfigWire) -> None:
        self._record("create_stream_template")
        stored = StreamTemplateConfigWire.model_validate(config.to_wire())
        self.templates[config.name] = stored.model_copy(update={"config": self._with_defaults(stored.config)})

    async def delete_stream_template(self, name: str) -> None:
        self._record("delete_stream_template")
        del self.templates[name]

    # KV buckets
    async def exists_kv_bucket(self, bucket: str) -> bool:
        self._record("exists_kv_bucket")
        return f"KV_{bucket}" in self.streams

    async def load_kv_bucket(self, bucket: str) -> StreamConfigWire:
        self._record("load_kv_bucket")
        return self.streams[f"KV_{bucket}"]

    async def create_kv_bucket(self, config: StreamConfigWire) -> None:
        self._record("create_kv_bucket")
        self.streams[config.name] = self._stored_stream(config)

    async def update_kv_bucket(self, bucket: str, config: StreamConfigWire) -> None:
        self._record("update_kv_bucket")
        self.streams[f"KV_{bucket}"] = self._stored_stream(config)

    async def delete_kv_bucket(self, bucket: str) -> None:
        self._record("delete_kv_bucket")
        del self.streams[f"KV_{bucket}"]

    # KV entries
    async def exists_kv_entry(self, bucket: str, key: str) -> bool:
        self._record("exists_kv_entry")
        return (bucket, key) in self.entries

    async def load_kv_entry(self, bucket: str, key: str) -> KVEntryWire:
        self._record("load_kv_entry")
        return self.entries[(bucket, key)]

    async def put_kv_entry(self, entry: KVEntryWire) -> int:
        self._record("put_kv_entry")
        if f"KV_{entry.bucket}" not in self.streams:
            raise RuntimeError(f"bucket {entry.bucket} not found")
        self._revision += 1
        self.entries[(entry.bucket, entry.key)] = entry.model_copy(update={"revision": self._revision})
        return self._revision

    async def delete_kv_entry(self, bucket: str, key: str) -> None:
        self._record("delete_kv_entry")
        del self.entries[(bucket, key)]


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests under tests/integration as `integration`.

    Keeps `pytest -m 'not integration'` reliable even if a file misses a decorator.
    """

    for item in items:
        if "tests/integration" in str(getattr(item, "fspath", "")):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def filling_remote() -> FakeRemote:
    return FakeRemote(fill_defaults=True)


@pytest.fixture
def server_limits() -> Optional[ServerLimits]:
    return None


@pytest.fixture
def reconciler(fake_remote: FakeRemote, server_limits: Any) -> Reconciler:
    return Reconciler(shared_remote(fake_remote), server_limits)
