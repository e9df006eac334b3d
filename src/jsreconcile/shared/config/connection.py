from __future__ import annotations

import os
import ssl
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

import yaml

from jsreconcile.shared.api_subjects import DEFAULT_API_PREFIX
from jsreconcile.shared.errors import InvalidConfiguration


def _parse_bool_env(name: str, default: str) -> bool:
    raw = os.getenv(name)
    value = (raw if raw is not None else default).strip().lower()
    return value not in {"", "0", "false", "no", "off"}


def _env(name: str, default: str = "") -> Any:
    return field(default_factory=lambda: os.getenv(name, default))


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """How to reach the JetStream deployment. Defaults come from the environment."""

    nats_url: str = _env("NATS_URL", "nats://localhost:4222")
    creds_file: str = _env("NATS_CREDS")
    user: str = _env("NATS_USER")
    password: str = _env("NATS_PASSWORD")
    token: str = _env("NATS_TOKEN")
    nkey_seed_file: str = _env("NATS_NKEY_SEED")
    tls_ca_file: str = _env("NATS_TLS_CA_FILE")
    tls_cert_file: str = _env("NATS_TLS_CERT_FILE")
    tls_key_file: str = _env("NATS_TLS_KEY_FILE")
    connect_timeout_s: float = field(default_factory=lambda: float(os.getenv("NATS_CONNECT_TIMEOUT_SEC", "5.0")))
    request_timeout_s: float = field(default_factory=lambda: float(os.getenv("JS_REQUEST_TIMEOUT_SEC", "5.0")))
    api_prefix: str = _env("JS_API_PREFIX", DEFAULT_API_PREFIX)
    pedantic: bool = field(default_factory=lambda: _parse_bool_env("JS_PEDANTIC", "1"))


def load_connection_config(path: Optional[str] = None, base: Optional[ConnectionConfig] = None) -> ConnectionConfig:
    """Overlay the ``nats:`` section of a YAML file on the environment defaults."""

    cfg = base or ConnectionConfig()
    if not path:
        return cfg
    with open(path, "rt") as f:
        document = yaml.safe_load(f.read()) or {}
    section = document.get("nats") or {}
    if not isinstance(section, dict):
        raise InvalidConfiguration(f"{path}: 'nats' must be a mapping")
    known = {f.name for f in fields(ConnectionConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise InvalidConfiguration(f"{path}: unknown nats settings: {', '.join(unknown)}")
    return replace(cfg, **section)


def _tls_context(cfg: ConnectionConfig) -> Optional[ssl.SSLContext]:
    if bool(cfg.tls_cert_file) != bool(cfg.tls_key_file):
        raise InvalidConfiguration("tls_cert_file and tls_key_file must be set together")
    if not (cfg.tls_ca_file or cfg.tls_cert_file):
        return None
    ctx = ssl.create_default_context(cafile=cfg.tls_ca_file or None)
    if cfg.tls_cert_file:
        ctx.load_cert_chain(cfg.tls_cert_file, cfg.tls_key_file)
    return ctx


def build_connect_options(cfg: ConnectionConfig) -> Dict[str, Any]:
    """Keyword arguments for ``nats.connect``."""

    opts: Dict[str, Any] = dict(
        servers=[s.strip() for s in cfg.nats_url.split(",") if s.strip()],
        connect_timeout=cfg.connect_timeout_s,
        allow_reconnect=False,
    )
    if cfg.creds_file:
        opts["user_credentials"] = cfg.creds_file
    if cfg.user:
        opts["user"] = cfg.user
        opts["password"] = cfg.password
    if cfg.token:
        opts["token"] = cfg.token
    if cfg.nkey_seed_file:
        opts["nkeys_seed"] = cfg.nkey_seed_file
    tls = _tls_context(cfg)
    if tls is not None:
        opts["tls"] = tls
    return opts
