"""IRemoteApi over a live nats-py connection.

Streams, consumers and templates go through the JetStream JSON API directly so
the request body is exactly the mapped configuration. KV entries use the
nats-py KeyValue client.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from nats.js.errors import APIError, BucketNotFoundError, KeyNotFoundError, NotFoundError

from jsreconcile.reconciler.mapper import kv_stream_name
from jsreconcile.reconciler.remote.interfaces import IRemoteApi
from jsreconcile.shared import api_subjects as subj
from jsreconcile.shared.errors import ResourceAlreadyExists
from jsreconcile.shared.identity import ResourceKind, encode
from jsreconcile.shared.models.wire import (
    ConsumerConfigWire,
    KVEntryWire,
    StreamConfigWire,
    StreamTemplateConfigWire,
)

logger = logging.getLogger(__name__)


class NatsRemoteApi(IRemoteApi):
    def __init__(
        self,
        nc: Any,
        *,
        timeout: float = 5.0,
        api_prefix: str = subj.DEFAULT_API_PREFIX,
        pedantic: bool = True,
    ) -> None:
        self._nc = nc
        self._timeout = timeout
        self._prefix = api_prefix.rstrip(".")
        self._pedantic = pedantic
        self._js: Any = None

    async def _request(self, subject: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = json.dumps(body).encode("utf-8") if body is not None else b""
        msg = await self._nc.request(f"{self._prefix}.{subject}", payload, timeout=self._timeout)
        resp = json.loads(msg.data)
        if "error" in resp:
            raise APIError.from_error(resp["error"])
        return resp

    def _with_pedantic(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if self._pedantic:
            body["pedantic"] = True
        return body

    def _jetstream(self) -> Any:
        if self._js is None:
            self._js = self._nc.jetstream(prefix=self._prefix)
        return self._js

    # --- streams ------------------------------------------------------------

    async def exists_stream(self, name: str) -> bool:
        try:
            await self._request(subj.STREAM_INFO.format(stream=name))
        except NotFoundError:
            return False
        return True

    async def load_stream(self, name: str) -> StreamConfigWire:
        resp = await self._request(subj.STREAM_INFO.format(stream=name))
        return StreamConfigWire.model_validate(resp["config"])

    async def create_stream(self, config: StreamConfigWire) -> None:
        try:
            await self._request(
                subj.STREAM_CREATE.format(stream=config.name), self._with_pedantic(config.to_wire())
            )
        except APIError as exc:
            if exc.err_code == subj.ERR_STREAM_NAME_IN_USE:
                raise ResourceAlreadyExists(
                    ResourceKind.STREAM.value, encode(ResourceKind.STREAM, config.name)
                ) from exc
            raise

    async def update_stream(self, name: str, config: StreamConfigWire) -> None:
        await self._request(subj.STREAM_UPDATE.format(stream=name), self._with_pedantic(config.to_wire()))

    async def delete_stream(self, name: str) -> None:
        await self._request(subj.STREAM_DELETE.format(stream=name))

    # --- consumers ----------------------------------------------------------

    async def exists_consumer(self, stream: str, durable: str) -> bool:
        try:
            await self._request(subj.CONSUMER_INFO.format(stream=stream, consumer=durable))
        except NotFoundError:
            return False
        return True

    async def load_consumer(self, stream: str, durable: str) -> ConsumerConfigWire:
        resp = await self._request(subj.CONSUMER_INFO.format(stream=stream, consumer=durable))
        return ConsumerConfigWire.model_validate(resp["config"])

    async def _put_consumer(self, stream: str, config: ConsumerConfigWire, action: str) -> None:
        body = self._with_pedantic({"stream_name": stream, "config": config.to_wire(), "action": action})
        await self._request(subj.CONSUMER_CREATE.format(stream=stream, consumer=config.durable_name), body)

    async def create_consumer(self, stream: str, config: ConsumerConfigWire) -> None:
        try:
            await self._put_consumer(stream, config, "create")
        except APIError as exc:
            if exc.err_code == subj.ERR_CONSUMER_ALREADY_EXISTS:
                raise ResourceAlreadyExists(
                    ResourceKind.CONSUMER.value,
                    encode(ResourceKind.CONSUMER, stream, config.durable_name or ""),
                ) from exc
            raise

    async def update_consumer(self, stream: str, durable: str, config: ConsumerConfigWire) -> None:
        await self._put_consumer(stream, config.model_copy(update={"durable_name": durable}), "update")

    async def delete_consumer(self, stream: str, durable: str) -> None:
        await self._request(subj.CONSUMER_DELETE.format(stream=stream, consumer=durable))

    # --- stream templates ---------------------------------------------------

    async def exists_stream_template(self, name: str) -> bool:
        try:
            await self._request(subj.STREAM_TEMPLATE_INFO.format(template=name))
        except NotFoundError:
            return False
        return True

    async def load_stream_template(self, name: str) -> StreamTemplateConfigWire:
        resp = await self._request(subj.STREAM_TEMPLATE_INFO.format(template=name))
        return StreamTemplateConfigWire.model_validate(resp["config"])

    async def create_stream_template(self, config: StreamTemplateConfigWire) -> None:
        await self._request(subj.STREAM_TEMPLATE_CREATE.format(template=config.name), config.to_wire())

    async def delete_stream_template(self, name: str) -> None:
        await self._request(subj.STREAM_TEMPLATE_DELETE.format(template=name))

    # --- KV buckets ---------------------------------------------------------

    async def exists_kv_bucket(self, bucket: str) -> bool:
        return await self.exists_stream(kv_stream_name(bucket))

    async def load_kv_bucket(self, bucket: str) -> StreamConfigWire:
        return await self.load_stream(kv_stream_name(bucket))

    async def create_kv_bucket(self, config: StreamConfigWire) -> None:
        await self.create_stream(config)

    async def update_kv_bucket(self, bucket: str, config: StreamConfigWire) -> None:
        await self.update_stream(kv_stream_name(bucket), config)

    async def delete_kv_bucket(self, bucket: str) -> None:
        await self.delete_stream(kv_stream_name(bucket))

    # --- KV entries ---------------------------------------------------------

    async def exists_kv_entry(self, bucket: str, key: str) -> bool:
        try:
            kv = await self._jetstream().key_value(bucket)
            await kv.get(key)
        except (BucketNotFoundError, KeyNotFoundError, NotFoundError):
            return False
        return True

    async def load_kv_entry(self, bucket: str, key: str) -> KVEntryWire:
        kv = await self._jetstream().key_value(bucket)
        entry = await kv.get(key)
        return KVEntryWire(bucket=bucket, key=key, value=entry.value or b"", revision=entry.revision or 0)

    async def put_kv_entry(self, entry: KVEntryWire) -> int:
        kv = await self._jetstream().key_value(entry.bucket)
        revision = await kv.put(entry.key, entry.value)
        logger.debug("kv_entry_put bucket=%s key=%s revision=%s", entry.bucket, entry.key, revision)
        return revision

    async def delete_kv_entry(self, bucket: str, key: str) -> None:
        kv = await self._jetstream().key_value(bucket)
        await kv.delete(key)
