"""Error taxonomy for the reconciliation engine.

Every error carries a stable ``error_code`` so the surrounding tool can branch
on it without parsing messages.
"""

from __future__ import annotations

from typing import Iterable, Sequence


class ReconcileError(Exception):
    """Base class for every error raised by the engine."""

    error_code = "RECONCILE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidIdentity(ReconcileError):
    error_code = "INVALID_IDENTITY"

    def __init__(self, identity: str, reason: str = "does not match any known identity pattern"):
        super().__init__(f"invalid identity {identity!r}: {reason}")
        self.identity = identity


class InvalidEnumValue(ReconcileError):
    error_code = "INVALID_ENUM_VALUE"

    def __init__(self, field: str, value: object, accepted: Iterable[str]):
        self.field = field
        self.value = value
        self.accepted = tuple(accepted)
        super().__init__(
            f"invalid value {value!r} for {field}: accepted values are {', '.join(self.accepted)}"
        )


class InvalidConfiguration(ReconcileError):
    error_code = "INVALID_CONFIGURATION"


class AmbiguousStartPolicy(ReconcileError):
    error_code = "AMBIGUOUS_START_POLICY"

    def __init__(self, fields: Sequence[str]):
        self.fields = tuple(fields)
        super().__init__(f"only one start policy may be set, got: {', '.join(self.fields)}")


class InvalidTimestamp(ReconcileError):
    error_code = "INVALID_TIMESTAMP"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field}: {value!r} is not an RFC3339 timestamp")


class ImmutableFieldChanged(ReconcileError):
    error_code = "IMMUTABLE_FIELD_CHANGED"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} cannot be changed in place, the resource must be replaced")


class ValidationFailed(ReconcileError):
    error_code = "VALIDATION_FAILED"

    def __init__(self, violations: Sequence[object]):
        self.violations = tuple(violations)
        super().__init__("; ".join(str(v) for v in self.violations))


class ResourceNotFound(ReconcileError):
    error_code = "NOT_FOUND"

    def __init__(self, kind: str, identity: str):
        self.kind = kind
        self.identity = identity
        super().__init__(f"{kind} {identity} does not exist")


class ResourceAlreadyExists(ReconcileError):
    error_code = "ALREADY_EXISTS"

    def __init__(self, kind: str, identity: str):
        self.kind = kind
        self.identity = identity
        super().__init__(f"{kind} {identity} already exists")


class RemoteError(ReconcileError):
    """A failure reported by the remote API, with resource context attached."""

    error_code = "REMOTE_ERROR"

    def __init__(self, kind: str, identity: str, cause: BaseException):
        self.kind = kind
        self.identity = identity
        self.cause = cause
        super().__init__(f"{kind} {identity}: {type(cause).__name__}: {cause}")
