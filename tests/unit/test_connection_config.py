from __future__ import annotations

import ssl

import pytest

from jsreconcile.shared.config.connection import (
    ConnectionConfig,
    build_connect_options,
    load_connection_config,
)
from jsreconcile.shared.errors import InvalidConfiguration

_ENV = (
    "NATS_URL",
    "NATS_CREDS",
    "NATS_USER",
    "NATS_PASSWORD",
    "NATS_TOKEN",
    "NATS_NKEY_SEED",
    "NATS_TLS_CA_FILE",
    "NATS_TLS_CERT_FILE",
    "NATS_TLS_KEY_FILE",
    "NATS_CONNECT_TIMEOUT_SEC",
    "JS_REQUEST_TIMEOUT_SEC",
    "JS_API_PREFIX",
    "JS_PEDANTIC",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = ConnectionConfig()
    assert cfg.nats_url == "nats://localhost:4222"
    assert cfg.api_prefix == "$JS.API"
    assert cfg.pedantic is True
    assert cfg.request_timeout_s == 5.0


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NATS_URL", "nats://a:4222,nats://b:4222")
    monkeypatch.setenv("NATS_TOKEN", "s3cret")
    monkeypatch.setenv("JS_PEDANTIC", "off")
    monkeypatch.setenv("NATS_CONNECT_TIMEOUT_SEC", "1.5")

    cfg = ConnectionConfig()
    opts = build_connect_options(cfg)

    assert cfg.pedantic is False
    assert opts["servers"] == ["nats://a:4222", "nats://b:4222"]
    assert opts["token"] == "s3cret"
    assert opts["connect_timeout"] == 1.5
    assert opts["allow_reconnect"] is False
    assert "tls" not in opts


def test_credentials_options() -> None:
    opts = build_connect_options(
        ConnectionConfig(creds_file="/c/user.creds", user="u", password="p", nkey_seed_file="/c/seed.nk")
    )
    assert opts["user_credentials"] == "/c/user.creds"
    assert (opts["user"], opts["password"]) == ("u", "p")
    assert opts["nkeys_seed"] == "/c/seed.nk"


def test_cert_without_key_is_invalid() -> None:
    with pytest.raises(InvalidConfiguration):
        build_connect_options(ConnectionConfig(tls_cert_file="/c/cert.pem"))


def test_ca_only_builds_tls_context(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def _fake_context(cafile=None):
        seen["cafile"] = cafile
        return ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

    monkeypatch.setattr(ssl, "create_default_context", _fake_context)
    opts = build_connect_options(ConnectionConfig(tls_ca_file="/c/ca.pem"))

    assert isinstance(opts["tls"], ssl.SSLContext)
    assert seen["cafile"] == "/c/ca.pem"


def test_yaml_overlay(tmp_path) -> None:
    path = tmp_path / "jsreconcile.yaml"
    path.write_text("nats:\n  nats_url: nats://yaml:4222\n  request_timeout_s: 9\n", encoding="utf-8")

    cfg = load_connection_config(str(path))

    assert cfg.nats_url == "nats://yaml:4222"
    assert cfg.request_timeout_s == 9
    assert cfg.api_prefix == "$JS.API"


def test_yaml_unknown_key(tmp_path) -> None:
    path = tmp_path / "jsreconcile.yaml"
    path.write_text("nats:\n  url: nats://x\n", encoding="utf-8")

    with pytest.raises(InvalidConfiguration, match="url"):
        load_connection_config(str(path))


def test_no_path_returns_base() -> None:
    base = ConnectionConfig(nats_url="nats://base:4222")
    assert load_connection_config(None, base) is base
