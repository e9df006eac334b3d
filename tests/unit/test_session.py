from __future__ import annotations

from typing import Any, Dict

import pytest

from jsreconcile.reconciler.remote import session as session_mod
from jsreconcile.reconciler.remote.nats_remote import NatsRemoteApi
from jsreconcile.shared.config.connection import ConnectionConfig


class _FakeNC:
    def __init__(self, fail_drain: bool = False) -> None:
        self.fail_drain = fail_drain
        self.closed = False

    async def drain(self) -> None:
        if self.fail_drain:
            raise RuntimeError("drain failed")

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_session_factory_closes_on_error(monkeypatch: pytest.MonkeyPatch) -> None:
    nc = _FakeNC()
    seen: Dict[str, Any] = {}

    async def _connect(**opts: Any) -> _FakeNC:
        seen.update(opts)
        return nc

    monkeypatch.setattr(session_mod.nats, "connect", _connect)
    factory = session_mod.session_factory(
        ConnectionConfig(nats_url="nats://x:4222", request_timeout_s=3.0, pedantic=False)
    )

    with pytest.raises(ValueError):
        async with factory() as remote:
            assert isinstance(remote, NatsRemoteApi)
            raise ValueError("boom")

    assert nc.closed
    assert seen["servers"] == ["nats://x:4222"]


@pytest.mark.asyncio
async def test_close_survives_drain_failure(caplog) -> None:
    caplog.set_level("DEBUG")
    nc = _FakeNC(fail_drain=True)

    await session_mod.Session(nc=nc, remote=NatsRemoteApi(nc)).close()

    assert nc.closed
    assert "session_drain_failed" in caplog.text


@pytest.mark.asyncio
async def test_shared_remote_is_not_closed() -> None:
    nc = _FakeNC()
    remote = NatsRemoteApi(nc)

    async with session_mod.shared_remote(remote)() as borrowed:
        assert borrowed is remote

    assert not nc.closed
