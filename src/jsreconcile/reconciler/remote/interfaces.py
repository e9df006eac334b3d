from abc import ABC, abstractmethod

from jsreconcile.shared.models.wire import (
    ConsumerConfigWire,
    KVEntryWire,
    StreamConfigWire,
    StreamTemplateConfigWire,
)


class IRemoteApi(ABC):
    """
    Operations the lifecycle needs from a JetStream deployment.
    Implementations raise on transport or server errors; absence is reported
    through the ``exists_*`` checks, never by raising from them.
    """

    # streams
    @abstractmethod
    async def exists_stream(self, name: str) -> bool: ...

    @abstractmethod
    async def load_stream(self, name: str) -> StreamConfigWire: ...

    @abstractmethod
    async def create_stream(self, config: StreamConfigWire) -> None: ...

    @abstractmethod
    async def update_stream(self, name: str, config: StreamConfigWire) -> None: ...

    @abstractmethod
    async def delete_stream(self, name: str) -> None: ...

    # consumers
    @abstractmethod
    async def exists_consumer(self, stream: str, durable: str) -> bool: ...

    @abstractmethod
    async def load_consumer(self, stream: str, durable: str) -> ConsumerConfigWire: ...

    @abstractmethod
    async def create_consumer(self, stream: str, config: ConsumerConfigWire) -> None:
        """Create only; raises ResourceAlreadyExists if the durable is taken."""

    @abstractmethod
    async def update_consumer(self, stream: str, durable: str, config: ConsumerConfigWire) -> None: ...

    @abstractmethod
    async def delete_consumer(self, stream: str, durable: str) -> None: ...

    # stream templates have no in-place update
    @abstractmethod
    async def exists_stream_template(self, name: str) -> bool: ...

    @abstractmethod
    async def load_stream_template(self, name: str) -> StreamTemplateConfigWire: ...

    @abstractmethod
    async def create_stream_template(self, config: StreamTemplateConfigWire) -> None: ...

    @abstractmethod
    async def delete_stream_template(self, name: str) -> None: ...

    # KV buckets, configured through their backing stream
    @abstractmethod
    async def exists_kv_bucket(self, bucket: str) -> bool: ...

    @abstractmethod
    async def load_kv_bucket(self, bucket: str) -> StreamConfigWire: ...

    @abstractmethod
    async def create_kv_bucket(self, config: StreamConfigWire) -> None: ...

    @abstractmethod
    async def update_kv_bucket(self, bucket: str, config: StreamConfigWire) -> None: ...

    @abstractmethod
    async def delete_kv_bucket(self, bucket: str) -> None: ...

    # KV entries
    @abstractmethod
    async def exists_kv_entry(self, bucket: str, key: str) -> bool: ...

    @abstractmethod
    async def load_kv_entry(self, bucket: str, key: str) -> KVEntryWire: ...

    @abstractmethod
    async def put_kv_entry(self, entry: KVEntryWire) -> int:
        """Store a value and return the new revision."""

    @abstractmethod
    async def delete_kv_entry(self, bucket: str, key: str) -> None: ...
