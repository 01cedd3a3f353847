from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """
    Base for errors surfaced to callers of an entry point.

    `kind` is the stable machine-readable code that ends up in the error
    envelope's `error` key.
    """
    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class Unauthenticated(ServiceError):
    kind = "unauthenticated"
    status_code = 401


class NotFound(ServiceError):
    kind = "not_found"
    status_code = 404


class PreconditionFailed(ServiceError):
    kind = "precondition_failed"
    status_code = 412


class PolicyRejected(ServiceError):
    """Upstream generation refused on content-safety grounds; caller may rephrase and retry."""
    kind = "policy_rejected"
    status_code = 422


class Internal(ServiceError):
    kind = "internal_error"
    status_code = 500


class InvalidTransition(Internal):
    kind = "invalid_transition"
