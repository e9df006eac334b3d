from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Callable

import nats

from jsreconcile.reconciler.remote.interfaces import IRemoteApi
from jsreconcile.reconciler.remote.nats_remote import NatsRemoteApi
from jsreconcile.shared.config.connection import ConnectionConfig, build_connect_options

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[], AsyncContextManager[IRemoteApi]]


@dataclass
class Session:
    """A connection owned by exactly one caller."""

    nc: Any
    remote: IRemoteApi

    async def close(self) -> None:
        try:
            await self.nc.drain()
        except Exception:
            logger.debug("session_drain_failed", exc_info=True)
        try:
            await self.nc.close()
        except Exception:
            logger.debug("session_close_failed", exc_info=True)


async def connect(config: ConnectionConfig) -> Session:
    nc = await nats.connect(**build_connect_options(config))
    remote = NatsRemoteApi(
        nc,
        timeout=config.request_timeout_s,
        api_prefix=config.api_prefix,
        pedantic=config.pedantic,
    )
    return Session(nc=nc, remote=remote)


def session_factory(config: ConnectionConfig) -> RemoteFactory:
    """Open a fresh connection per lifecycle call and always close it."""

    @asynccontextmanager
    async def _open() -> AsyncIterator[IRemoteApi]:
        session = await connect(config)
        try:
            yield session.remote
        finally:
            await session.close()

    return _open


def shared_remote(remote: IRemoteApi) -> RemoteFactory:
    """Reuse a remote the caller already owns; it is left open."""

    @asynccontextmanager
    async def _borrow() -> AsyncIterator[IRemoteApi]:
        yield remote

    return _borrow
