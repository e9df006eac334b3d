"""Create/Read/Update/Delete per resource kind.

Every entry point maps and validates before touching the network, acquires a
remote for the duration of the call only, and passes remote failures through
as :class:`RemoteError` with the resource identity attached. Nothing is retried
here; the one exception is a consumer create that finds the durable already
present, which becomes an in-place update of the same identity.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from jsreconcile.reconciler import mapper
from jsreconcile.reconciler.metrics import OUTCOME_ABSENT, OUTCOME_ERROR, OUTCOME_OK, record_call
from jsreconcile.reconciler.precedence import resolve_consumer_start
from jsreconcile.reconciler.remote.interfaces import IRemoteApi
from jsreconcile.reconciler.remote.session import RemoteFactory, session_factory
from jsreconcile.reconciler.validator import (
    ServerLimits,
    Violation,
    validate,
    validate_consumer_against_stream,
    validate_mirror_origin,
)
from jsreconcile.shared.config.connection import ConnectionConfig
from jsreconcile.shared.errors import (
    ImmutableFieldChanged,
    ReconcileError,
    RemoteError,
    ResourceAlreadyExists,
    ResourceNotFound,
    ValidationFailed,
)
from jsreconcile.shared.identity import ResourceKind, encode, parse
from jsreconcile.shared.models.desired import (
    ConsumerDesired,
    KVBucketDesired,
    KVEntryDesired,
    StreamDesired,
    StreamTemplateDesired,
)

logger = logging.getLogger(__name__)

D = TypeVar("D")
Keys = Tuple[str, ...]


@dataclass
class _Call:
    outcome: str = OUTCOME_OK


class ResourceLifecycle(ABC, Generic[D]):
    kind: ResourceKind
    # declared fields that make up the identity, in key order
    identity_fields: Tuple[str, ...] = ()
    # declared fields that can only change by replacing the resource
    immutable_fields: Tuple[str, ...] = ()

    def __init__(self, remote_factory: RemoteFactory, limits: Optional[ServerLimits] = None) -> None:
        self._remote = remote_factory
        self._limits = limits

    # --- per-kind hooks -----------------------------------------------------

    @abstractmethod
    async def _exists(self, remote: IRemoteApi, keys: Keys) -> bool: ...

    @abstractmethod
    async def _load(self, remote: IRemoteApi, keys: Keys) -> D: ...

    @abstractmethod
    async def _create(self, remote: IRemoteApi, cfg: Any, keys: Keys) -> None: ...

    @abstractmethod
    async def _update(self, remote: IRemoteApi, cfg: Any, keys: Keys) -> None: ...

    @abstractmethod
    async def _delete(self, remote: IRemoteApi, keys: Keys) -> None: ...

    async def _related_violations(self, remote: IRemoteApi, cfg: Any, keys: Keys) -> List[Violation]:
        return []

    def _immutable_changes(self, current: D, desired: D) -> Optional[str]:
        for name in self.immutable_fields:
            if getattr(current, name) != getattr(desired, name):
                return name
        return None

    # --- shared plumbing ----------------------------------------------------

    def keys_of(self, desired: D) -> Keys:
        return tuple(getattr(desired, name) for name in self.identity_fields)

    def identity_of(self, desired: D) -> str:
        return encode(self.kind, *self.keys_of(desired))

    def _raise_for(self, violations: List[Violation], identity: str) -> None:
        for v in violations:
            if not v.is_error:
                logger.warning("validation_warning kind=%s identity=%s %s", self.kind.value, identity, v)
        errors = [v for v in violations if v.is_error]
        if errors:
            raise ValidationFailed(errors)

    def _checked(self, desired: D) -> Any:
        """Map and validate locally; raises before any network call."""

        cfg = mapper.to_remote_config(self.kind, desired)  # type: ignore[arg-type]
        violations = validate(self.kind, cfg, desired=desired, limits=self._limits)
        self._raise_for(violations, self.identity_of(desired))
        return cfg

    @contextmanager
    def _tracked(self, operation: str, identity: str) -> Iterator[_Call]:
        call = _Call()
        started = time.monotonic()
        try:
            yield call
        except ResourceNotFound:
            call.outcome = OUTCOME_ABSENT
            raise
        except ReconcileError:
            call.outcome = OUTCOME_ERROR
            raise
        except Exception as exc:
            call.outcome = OUTCOME_ERROR
            raise RemoteError(self.kind.value, identity, exc) from exc
        finally:
            record_call(self.kind.value, operation, call.outcome, time.monotonic() - started)

    # --- entry points -------------------------------------------------------

    async def create(self, desired: D) -> str:
        identity = self.identity_of(desired)
        with self._tracked("create", identity):
            cfg = self._checked(desired)
            async with self._remote() as remote:
                self._raise_for(await self._related_violations(remote, cfg, self.keys_of(desired)), identity)
                await self._create(remote, cfg, self.keys_of(desired))
        logger.info("resource_created kind=%s identity=%s", self.kind.value, identity)
        return identity

    async def read(self, identity: str) -> D:
        keys = parse(self.kind, identity).keys
        with self._tracked("read", identity):
            async with self._remote() as remote:
                if not await self._exists(remote, keys):
                    logger.info("resource_absent kind=%s identity=%s", self.kind.value, identity)
                    raise ResourceNotFound(self.kind.value, identity)
                return await self._load(remote, keys)

    async def update(self, identity: str, desired: D) -> D:
        keys = parse(self.kind, identity).keys
        with self._tracked("update", identity):
            for name, key, wanted in zip(self.identity_fields, keys, self.keys_of(desired)):
                if key != wanted:
                    raise ImmutableFieldChanged(name)
            cfg = self._checked(desired)
            async with self._remote() as remote:
                if not await self._exists(remote, keys):
                    logger.info("resource_absent kind=%s identity=%s", self.kind.value, identity)
                    raise ResourceNotFound(self.kind.value, identity)
                current = await self._load(remote, keys)
                changed = self._immutable_changes(current, desired)
                if changed is not None:
                    raise ImmutableFieldChanged(changed)
                self._raise_for(await self._related_violations(remote, cfg, keys), identity)
                await self._update(remote, cfg, keys)
                converged = await self._load(remote, keys)
        logger.info("resource_updated kind=%s identity=%s", self.kind.value, identity)
        return converged

    async def delete(self, identity: str) -> None:
        keys = parse(self.kind, identity).keys
        with self._tracked("delete", identity) as call:
            async with self._remote() as remote:
                if not await self._exists(remote, keys):
                    call.outcome = OUTCOME_ABSENT
                    logger.info("resource_absent kind=%s identity=%s", self.kind.value, identity)
                    return
                await self._delete(remote, keys)
        logger.info("resource_deleted kind=%s identity=%s", self.kind.value, identity)


class StreamLifecycle(ResourceLifecycle[StreamDesired]):
    kind = ResourceKind.STREAM
    identity_fields = ("name",)
    immutable_fields = ("storage",)

    async def _exists(self, remote, keys):
        return await remote.exists_stream(keys[0])

    async def _load(self, remote, keys):
        return mapper.stream_from_remote(await remote.load_stream(keys[0]))

    async def _create(self, remote, cfg, keys):
        await remote.create_stream(cfg)

    async def _update(self, remote, cfg, keys):
        await remote.update_stream(keys[0], cfg)

    async def _delete(self, remote, keys):
        await remote.delete_stream(keys[0])

    async def _related_violations(self, remote, cfg, keys):
        if not cfg.mirror_direct or cfg.mirror is None or cfg.mirror.external is not None:
            return []
        if not await remote.exists_stream(cfg.mirror.name):
            return []
        return validate_mirror_origin(cfg, await remote.load_stream(cfg.mirror.name))


class ConsumerLifecycle(ResourceLifecycle[ConsumerDesired]):
    kind = ResourceKind.CONSUMER
    identity_fields = ("stream_name", "durable_name")
    immutable_fields = (
        "delivery_group",
        "ack_policy",
        "replay_policy",
        "ratelimit",
        "heartbeat",
        "flow_control",
        "replicas",
        "memory",
    )

    async def _exists(self, remote, keys):
        return await remote.exists_consumer(*keys)

    async def _load(self, remote, keys):
        return mapper.consumer_from_remote(keys[0], await remote.load_consumer(*keys))

    async def _create(self, remote, cfg, keys):
        try:
            await remote.create_consumer(keys[0], cfg)
        except ResourceAlreadyExists:
            logger.info("consumer_exists_updating identity=%s", encode(self.kind, *keys))
            await remote.update_consumer(keys[0], keys[1], cfg)

    async def _update(self, remote, cfg, keys):
        await remote.update_consumer(keys[0], keys[1], cfg)

    async def _delete(self, remote, keys):
        await remote.delete_consumer(*keys)

    def _immutable_changes(self, current, desired):
        if resolve_consumer_start(current) != resolve_consumer_start(desired):
            return "deliver_policy"
        return super()._immutable_changes(current, desired)

    async def _related_violations(self, remote, cfg, keys):
        stream = keys[0]
        if not await remote.exists_stream(stream):
            return []
        return validate_consumer_against_stream(cfg, await remote.load_stream(stream))


class StreamTemplateLifecycle(ResourceLifecycle[StreamTemplateDesired]):
    kind = ResourceKind.STREAM_TEMPLATE
    identity_fields = ("name",)
    immutable_fields = tuple(StreamTemplateDesired.model_fields)

    async def _exists(self, remote, keys):
        return await remote.exists_stream_template(keys[0])

    async def _load(self, remote, keys):
        return mapper.template_from_remote(await remote.load_stream_template(keys[0]))

    async def _create(self, remote, cfg, keys):
        await remote.create_stream_template(cfg)

    async def _update(self, remote, cfg, keys):
        # every attribute is immutable, so a passing update has nothing to send
        return None

    async def _delete(self, remote, keys):
        await remote.delete_stream_template(keys[0])

    def _immutable_changes(self, current, desired):
        # compare in the form the server reports, with its defaults filled in
        normalised = mapper.template_from_remote(mapper.template_to_remote(desired))
        return super()._immutable_changes(current, normalised)


class KVBucketLifecycle(ResourceLifecycle[KVBucketDesired]):
    kind = ResourceKind.KV_BUCKET
    identity_fields = ("bucket",)
    immutable_fields = ("storage",)

    async def _exists(self, remote, keys):
        return await remote.exists_kv_bucket(keys[0])

    async def _load(self, remote, keys):
        return mapper.kv_bucket_from_remote(await remote.load_kv_bucket(keys[0]))

    async def _create(self, remote, cfg, keys):
        # stream creation is idempotent for identical configs, so check existence first
        if await remote.exists_kv_bucket(keys[0]):
            raise ResourceAlreadyExists(self.kind.value, encode(self.kind, *keys))
        await remote.create_kv_bucket(cfg)

    async def _update(self, remote, cfg, keys):
        await remote.update_kv_bucket(keys[0], cfg)

    async def _delete(self, remote, keys):
        await remote.delete_kv_bucket(keys[0])


class KVEntryLifecycle(ResourceLifecycle[KVEntryDesired]):
    kind = ResourceKind.KV_ENTRY
    identity_fields = ("bucket", "key")

    async def _exists(self, remote, keys):
        return await remote.exists_kv_entry(*keys)

    async def _load(self, remote, keys):
        return mapper.kv_entry_from_remote(await remote.load_kv_entry(*keys))

    async def _create(self, remote, cfg, keys):
        await remote.put_kv_entry(cfg)

    async def _update(self, remote, cfg, keys):
        await remote.put_kv_entry(cfg)

    async def _delete(self, remote, keys):
        await remote.delete_kv_entry(*keys)


class Reconciler:
    """One lifecycle per resource kind over a shared remote factory."""

    def __init__(self, remote_factory: RemoteFactory, limits: Optional[ServerLimits] = None) -> None:
        self.streams = StreamLifecycle(remote_factory, limits)
        self.consumers = ConsumerLifecycle(remote_factory, limits)
        self.stream_templates = StreamTemplateLifecycle(remote_factory, limits)
        self.kv_buckets = KVBucketLifecycle(remote_factory, limits)
        self.kv_entries = KVEntryLifecycle(remote_factory, limits)
        self._by_kind: Dict[ResourceKind, ResourceLifecycle[Any]] = {
            lc.kind: lc
            for lc in (self.streams, self.consumers, self.stream_templates, self.kv_buckets, self.kv_entries)
        }

    @classmethod
    def from_config(cls, config: ConnectionConfig, limits: Optional[ServerLimits] = None) -> "Reconciler":
        return cls(session_factory(config), limits)

    def lifecycle(self, kind: ResourceKind) -> ResourceLifecycle[Any]:
        return self._by_kind[ResourceKind(kind)]
