"""Canonical JetStream API subjects and identity tokens.

Keep these as the single source of truth so the identity codec, the mapper and
the NATS adapter never drift apart.
"""

from __future__ import annotations

# Identity tokens
IDENTITY_NAMESPACE = "JETSTREAM_"
STREAM_TOKEN = "STREAM_"
STREAM_TEMPLATE_TOKEN = "STREAMTEMPLATE_"
KV_TOKEN = "KV_"
CONSUMER_INFIX = "_CONSUMER_"
ENTRY_INFIX = "_ENTRY_"

# Metadata keys with this prefix are written by the server itself
RESERVED_METADATA_PREFIX = "_nats."

# KV buckets are materialised as streams
KV_STREAM_PREFIX = "KV_"
KV_SUBJECT_TEMPLATE = "$KV.{bucket}.>"
KV_MAX_DUPLICATE_WINDOW_SEC = 120
DEFAULT_DUPLICATE_WINDOW_SEC = 120

# JetStream API (relative to the API prefix, "$JS.API" by default)
DEFAULT_API_PREFIX = "$JS.API"
API_INFO = "INFO"
STREAM_CREATE = "STREAM.CREATE.{stream}"
STREAM_UPDATE = "STREAM.UPDATE.{stream}"
STREAM_INFO = "STREAM.INFO.{stream}"
STREAM_DELETE = "STREAM.DELETE.{stream}"
CONSUMER_CREATE = "CONSUMER.CREATE.{stream}.{consumer}"
CONSUMER_INFO = "CONSUMER.INFO.{stream}.{consumer}"
CONSUMER_DELETE = "CONSUMER.DELETE.{stream}.{consumer}"
STREAM_TEMPLATE_CREATE = "STREAM.TEMPLATE.CREATE.{template}"
STREAM_TEMPLATE_INFO = "STREAM.TEMPLATE.INFO.{template}"
STREAM_TEMPLATE_DELETE = "STREAM.TEMPLATE.DELETE.{template}"

# Server error codes the adapter branches on
ERR_CONSUMER_ALREADY_EXISTS = 10148
ERR_CONSUMER_DOES_NOT_EXIST = 10149
ERR_STREAM_NAME_IN_USE = 10058
